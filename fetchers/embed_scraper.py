"""
Embed Page Strategy

Lightweight HTTP scrape of the post's public embed page. No browser, no
JavaScript: the embed HTML usually carries the video URL in its inline data.
"""

import asyncio
import json
import re
from typing import Optional

import requests

from core.config import Config
from core.errors import MediaNotFoundError, PrivateOrRestrictedError
from core.models import MediaReference
from core.url_utils import extract_shortcode, is_fetchable_media_url, unescape_media_url
from fetchers.base import FetchStrategy
from fetchers.browser_strategy import detect_access_wall

EMBED_URL_TEMPLATE = "https://www.instagram.com/p/{shortcode}/embed/captioned/"

VIDEO_URL_PATTERN = re.compile(r'"video_url"\s*:\s*"([^"]+)"')
CONTENT_URL_PATTERN = re.compile(r'"contentUrl"\s*:\s*"(https:[^"]+?\.mp4[^"]*)"')
SRC_MP4_PATTERN = re.compile(r'"src"\s*:\s*"(https:[^"]+?\.mp4[^"]*)"')
CAPTION_PATTERN = re.compile(r'"caption"\s*:\s*"((?:[^"\\]|\\.)*)"')
DISPLAY_URL_PATTERN = re.compile(r'"display_url"\s*:\s*"([^"]+)"')
DURATION_PATTERN = re.compile(r'"video_duration"\s*:\s*([\d.]+)')

TITLE_MAX_CHARS = 100


def _decode_json_string(value: str) -> str:
    try:
        return json.loads(f'"{value}"')
    except json.JSONDecodeError:
        return value.replace('\\n', '\n').replace('\\"', '"')


def parse_embed_page(html: str, source_url: str) -> Optional[MediaReference]:
    """
    Extract a MediaReference from embed page HTML

    Returns:
        MediaReference, or None when no fetchable video URL is present
    """
    video_url = None
    for pattern in (VIDEO_URL_PATTERN, CONTENT_URL_PATTERN, SRC_MP4_PATTERN):
        match = pattern.search(html)
        if match:
            candidate = unescape_media_url(match.group(1))
            if is_fetchable_media_url(candidate):
                video_url = candidate
                break

    if not video_url:
        return None

    caption = None
    caption_match = CAPTION_PATTERN.search(html)
    if caption_match:
        caption = _decode_json_string(caption_match.group(1)).strip() or None

    thumbnail = None
    display_match = DISPLAY_URL_PATTERN.search(html)
    if display_match:
        thumbnail = unescape_media_url(display_match.group(1))

    duration = None
    duration_match = DURATION_PATTERN.search(html)
    if duration_match:
        duration = float(duration_match.group(1)) or None

    return MediaReference(
        source_url=source_url,
        video_url=video_url,
        title=caption[:TITLE_MAX_CHARS] if caption else None,
        caption=caption,
        thumbnail_url=thumbnail,
        duration=duration,
        strategy=EmbedPageStrategy.name,
    )


class EmbedPageStrategy(FetchStrategy):
    """Fetch the embed page with requests and regex out the video URL"""

    name = "embed_page"

    def __init__(self, session: Optional[requests.Session] = None, enabled: bool = True,
                 timeout: float = Config.SHORT_TIMEOUT):
        super().__init__(enabled)
        self.timeout = timeout
        if session is None:
            session = requests.Session()
            session.headers.update(Config.get_default_headers())
        self.session = session

    async def fetch(self, url: str) -> MediaReference:
        return await asyncio.to_thread(self._fetch_sync, url)

    def _fetch_sync(self, url: str) -> MediaReference:
        shortcode = extract_shortcode(url)
        if not shortcode:
            raise MediaNotFoundError("Post URL has no shortcode for the embed page", details={'url': url})

        embed_url = EMBED_URL_TEMPLATE.format(shortcode=shortcode)
        self.logger.info(f"📄 [EMBED] Fetching {embed_url}")

        try:
            response = self.session.get(embed_url, timeout=self.timeout)
        except requests.RequestException as e:
            raise MediaNotFoundError(f"Embed page request failed: {e}") from e

        if response.status_code == 404:
            raise MediaNotFoundError("Embed page not found", details={'status': 404})
        if response.status_code == 403:
            # Instagram also answers 403 to rate-limited clients; only a visible
            # private/login wall is treated as definitive
            if detect_access_wall(response.text or ''):
                raise PrivateOrRestrictedError("This content is private or requires login")
            raise MediaNotFoundError("Embed page access denied", details={'status': 403})
        if response.status_code >= 400:
            raise MediaNotFoundError(f"Embed page returned HTTP {response.status_code}",
                                     details={'status': response.status_code})

        reference = parse_embed_page(response.text, url)
        if reference is None:
            if detect_access_wall(response.text):
                raise PrivateOrRestrictedError("This content is private or requires login")
            raise MediaNotFoundError("No video URL in embed page")

        self.logger.info("✅ [EMBED] Found video URL in embed page")
        return reference
