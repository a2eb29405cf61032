"""
yt-dlp Strategy

Optional extractor (enabled with USE_YTDLP=true). Uses yt-dlp's metadata
extraction only; the download itself is done by the video downloader.
"""

import asyncio
from typing import Any, Dict, Optional

import yt_dlp

from core.config import Config
from core.errors import (
    InvalidURLError,
    MediaNotFoundError,
    PrivateOrRestrictedError,
    UnsupportedMediaError,
)
from core.models import MediaReference
from core.url_utils import is_fetchable_media_url
from fetchers.base import FetchStrategy, parse_duration


def classify_ytdlp_error(message: str) -> Exception:
    """Map a yt-dlp error message to a source-classification error"""
    lowered = message.lower()
    if 'unsupported url' in lowered:
        return InvalidURLError("URL not supported by extractor", details={'reason': message[:300]})
    if 'private' in lowered or 'login' in lowered or 'log in' in lowered:
        return PrivateOrRestrictedError("This content is private or requires login",
                                        details={'reason': message[:300]})
    if 'not available' in lowered or 'removed' in lowered or '404' in lowered:
        return MediaNotFoundError("Media not found or has been removed", details={'reason': message[:300]})
    if 'no video formats' in lowered:
        return UnsupportedMediaError("Post has no video", details={'reason': message[:300]})
    return MediaNotFoundError(f"yt-dlp extraction failed: {message[:300]}")


def select_video_url(info: Dict[str, Any]) -> Optional[str]:
    """Direct URL from yt-dlp info: top-level url, else the best format carrying video"""
    url = info.get('url')
    if is_fetchable_media_url(url) and info.get('vcodec') != 'none':
        return url

    formats = info.get('formats') or []
    with_video = [
        fmt for fmt in formats
        if fmt.get('vcodec') not in (None, 'none') and is_fetchable_media_url(fmt.get('url'))
        and fmt.get('protocol', 'https') in ('http', 'https')
    ]
    # Prefer formats that also carry audio, then higher resolution
    with_video.sort(key=lambda fmt: (fmt.get('acodec') not in (None, 'none'), fmt.get('height') or 0))
    if with_video:
        return with_video[-1]['url']
    return None


class YtDlpStrategy(FetchStrategy):
    """Resolve media metadata through yt-dlp's Instagram extractor"""

    name = "yt_dlp"

    def __init__(self, enabled: Optional[bool] = None, socket_timeout: float = Config.DEFAULT_TIMEOUT):
        super().__init__(Config.use_ytdlp() if enabled is None else enabled)
        self.socket_timeout = socket_timeout

    async def fetch(self, url: str) -> MediaReference:
        return await asyncio.to_thread(self._extract_sync, url)

    def _extract_sync(self, url: str) -> MediaReference:
        ydl_opts = {
            'format': 'best[ext=mp4]/best',
            'quiet': True,
            'no_warnings': True,
            'skip_download': True,
            'noplaylist': True,
            'socket_timeout': self.socket_timeout,
            'http_headers': {'User-Agent': Config.BROWSER_USER_AGENT},
        }

        self.logger.info(f"🔧 [YT-DLP] Extracting metadata for {url}")
        try:
            with yt_dlp.YoutubeDL(ydl_opts) as ydl:
                info = ydl.extract_info(url, download=False)
        except yt_dlp.utils.DownloadError as e:
            raise classify_ytdlp_error(str(e)) from e

        if not info:
            raise MediaNotFoundError("yt-dlp returned no metadata")

        if info.get('_type') == 'playlist':
            entries = [entry for entry in (info.get('entries') or []) if entry]
            if not entries:
                raise MediaNotFoundError("yt-dlp returned an empty playlist")
            info = entries[0]

        video_url = select_video_url(info)
        if not video_url:
            raise UnsupportedMediaError("No downloadable video format found")

        self.logger.info("✅ [YT-DLP] Resolved direct video URL")
        return MediaReference(
            source_url=url,
            video_url=video_url,
            title=info.get('title'),
            caption=info.get('description'),
            thumbnail_url=info.get('thumbnail'),
            duration=parse_duration(info.get('duration')),
            strategy=self.name,
        )
