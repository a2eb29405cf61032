"""
Video Downloader

Streams a resolved media URL to a local file, enforcing a size cap and an
overall time limit. Partial files are removed on any failure.
"""

import asyncio
import logging
import os
import secrets
import time
from pathlib import Path
from typing import Optional

import requests

from core.config import Config
from core.errors import DownloadError
from core.models import TemporaryArtifact

logger = logging.getLogger(__name__)


class VideoDownloader:
    """Download videos with requests streaming"""

    def __init__(self, session: Optional[requests.Session] = None,
                 max_size_mb: int = Config.MAX_VIDEO_SIZE_MB,
                 timeout: float = Config.DOWNLOAD_TIMEOUT,
                 chunk_size: int = Config.DOWNLOAD_CHUNK_SIZE):
        self.session = session or requests.Session()
        self.max_bytes = max_size_mb * 1024 * 1024
        self.timeout = timeout
        self.chunk_size = chunk_size

    @staticmethod
    def default_output_path(directory: Optional[Path] = None) -> Path:
        directory = Path(directory) if directory else Config.get_temp_dir() / "videos"
        directory.mkdir(parents=True, exist_ok=True)
        return directory / f"video_{int(time.time() * 1000)}_{secrets.token_hex(4)}.mp4"

    async def download(self, url: str, output_path: Optional[Path] = None) -> TemporaryArtifact:
        """
        Download a video to local disk

        Args:
            url: Direct media URL
            output_path: Destination file (a unique temp path when omitted)

        Returns:
            TemporaryArtifact for the downloaded file, with its byte size

        Raises:
            DownloadError: Non-2xx response, oversize or truncated transfer, timeout
        """
        path = Path(output_path) if output_path else self.default_output_path()
        path.parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"⬇️ [DOWNLOAD] Downloading video to {path.name}")
        started = time.monotonic()
        size = await asyncio.to_thread(self._download_sync, url, path)
        elapsed = time.monotonic() - started

        logger.info(f"✅ [DOWNLOAD] {size / 1024 / 1024:.2f}MB in {elapsed:.1f}s")
        return TemporaryArtifact(identifier=str(path), producer="download", size_bytes=size)

    def _download_sync(self, url: str, path: Path) -> int:
        try:
            return self._stream_to_file(url, path)
        except DownloadError:
            self._remove_partial(path)
            raise
        except requests.Timeout as e:
            self._remove_partial(path)
            raise DownloadError("Download timeout - video took too long to download") from e
        except (requests.RequestException, OSError) as e:
            self._remove_partial(path)
            raise DownloadError(f"Failed to download video: {e}") from e

    def _stream_to_file(self, url: str, path: Path) -> int:
        headers = {
            'User-Agent': Config.BROWSER_USER_AGENT,
            'Referer': 'https://www.instagram.com/',
            'Accept': '*/*',
        }
        started = time.monotonic()

        with self.session.get(url, headers=headers, stream=True, timeout=(10, self.timeout)) as response:
            if not 200 <= response.status_code < 300:
                raise DownloadError(f"Download failed with HTTP {response.status_code}",
                                    details={'status': response.status_code})

            expected = int(response.headers.get('content-length') or 0)
            if expected > self.max_bytes:
                raise DownloadError(
                    f"Video too large: {expected / 1024 / 1024:.1f}MB (max {self.max_bytes / 1024 / 1024:.0f}MB)"
                )

            written = 0
            next_progress = 10
            with open(path, 'wb') as f:
                for chunk in response.iter_content(chunk_size=self.chunk_size):
                    if not chunk:
                        continue
                    f.write(chunk)
                    written += len(chunk)

                    if written > self.max_bytes:
                        raise DownloadError(
                            f"Video exceeded {self.max_bytes / 1024 / 1024:.0f}MB while downloading"
                        )
                    if time.monotonic() - started > self.timeout:
                        raise DownloadError("Download timeout - video took too long to download")

                    if expected:
                        percent = written * 100 // expected
                        if percent >= next_progress:
                            logger.info(f"   📊 [DOWNLOAD] {percent}% ({written / 1024 / 1024:.1f}MB)")
                            next_progress = (percent // 10) * 10 + 10

        if written == 0:
            raise DownloadError("Downloaded file is empty")
        if expected and written < expected:
            raise DownloadError(f"Truncated download: got {written} of {expected} bytes",
                                details={'expected': expected, 'received': written})
        return written

    @staticmethod
    def _remove_partial(path: Path) -> None:
        try:
            if os.path.exists(path):
                os.unlink(path)
                logger.info(f"🧹 [DOWNLOAD] Removed partial file {path.name}")
        except OSError as e:
            logger.warning(f"⚠️ [DOWNLOAD] Could not remove partial file {path}: {e}")
