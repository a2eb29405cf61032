#!/usr/bin/env python3
"""
Browser Strategy

Loads the post in the pooled headless browser and pulls the direct video URL
out of the rendered page. Sources are tried from most to least reliable:
inline script data, JSON-LD, the live <video> element, then a plain HTML parse.
"""

import asyncio
import json
import re
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from core.browser_pool import BrowserPool
from core.config import Config
from core.errors import MediaNotFoundError, PrivateOrRestrictedError
from core.models import MediaReference
from core.url_utils import is_fetchable_media_url, unescape_media_url
from fetchers.base import FetchStrategy, parse_duration

BLOCKED_RESOURCE_TYPES = {'image', 'stylesheet', 'font', 'media'}
BLOCKED_URL_PATTERNS = ('analytics', '/ads/', 'tracking', 'doubleclick', 'facebook.com/tr')

ACCESS_WALL_MARKERS = (
    'This account is private',
    'Log in to see photos',
    'Log in to see videos',
)

SCRIPT_VIDEO_PATTERNS = [
    re.compile(r'"video_url"\s*:\s*"([^"]+)"'),
    re.compile(r'"src"\s*:\s*"(https:[^"]+?\.mp4[^"]*)"'),
    re.compile(r'"video_versions"\s*:\s*\[[^\]]*?"url"\s*:\s*"([^"]+)"'),
    re.compile(r'"playback_url"\s*:\s*"([^"]+)"'),
    re.compile(r'"contentUrl"\s*:\s*"(https:[^"]+)"'),
]

SCRIPTS_JS = "() => Array.from(document.querySelectorAll('script')).map(s => s.textContent || '')"
JSON_LD_JS = (
    "() => Array.from(document.querySelectorAll('script[type=\"application/ld+json\"]'))"
    ".map(s => s.textContent || '')"
)
VIDEO_ELEMENT_JS = """() => {
    const video = document.querySelector('video');
    if (!video) return null;
    const source = video.querySelector('source');
    return {
        src: video.currentSrc || video.src || (source ? source.src : null),
        duration: Number.isFinite(video.duration) ? video.duration : null,
        poster: video.poster || null
    };
}"""
BODY_TEXT_JS = "() => document.body ? document.body.innerText : ''"


def detect_access_wall(text: str) -> bool:
    """True when the page text shows a private-account or login wall"""
    if not text:
        return False
    return any(marker in text for marker in ACCESS_WALL_MARKERS)


def extract_from_scripts(scripts: List[str]) -> Optional[str]:
    """First fetchable video URL matched by the inline script patterns"""
    for pattern in SCRIPT_VIDEO_PATTERNS:
        for script in scripts:
            if not script:
                continue
            for match in pattern.finditer(script):
                candidate = unescape_media_url(match.group(1))
                if is_fetchable_media_url(candidate):
                    return candidate
    return None


def extract_from_json_ld(blocks: List[str]) -> Optional[Dict[str, Any]]:
    """
    Find a VideoObject in JSON-LD blocks

    Returns:
        Dict with video_url, title, caption, thumbnail_url, duration, or None
    """
    for block in blocks:
        try:
            data = json.loads(block)
        except (json.JSONDecodeError, TypeError):
            continue

        candidates = data if isinstance(data, list) else [data]
        expanded = []
        for item in candidates:
            if isinstance(item, dict) and isinstance(item.get('@graph'), list):
                expanded.extend(item['@graph'])
            expanded.append(item)

        for item in expanded:
            if not isinstance(item, dict):
                continue
            video = item if item.get('@type') == 'VideoObject' else item.get('video')
            if isinstance(video, list):
                video = video[0] if video else None
            if not isinstance(video, dict):
                continue

            content_url = video.get('contentUrl')
            if not content_url or not is_fetchable_media_url(unescape_media_url(content_url)):
                continue

            thumbnail = video.get('thumbnailUrl')
            if isinstance(thumbnail, list):
                thumbnail = thumbnail[0] if thumbnail else None

            return {
                'video_url': unescape_media_url(content_url),
                'title': video.get('name'),
                'caption': video.get('description'),
                'thumbnail_url': thumbnail,
                'duration': parse_duration(video.get('duration')),
            }
    return None


def extract_from_html(html: str) -> Optional[str]:
    """Fallback parse of raw HTML: og:video meta tags, then <video>/<source> tags"""
    if not html:
        return None

    soup = BeautifulSoup(html, 'html.parser')

    for prop in ('og:video:secure_url', 'og:video', 'og:video:url'):
        tag = soup.find('meta', attrs={'property': prop})
        if tag and tag.get('content'):
            candidate = unescape_media_url(tag['content'])
            if is_fetchable_media_url(candidate):
                return candidate

    for tag in soup.find_all(['video', 'source']):
        candidate = tag.get('src')
        if candidate:
            candidate = unescape_media_url(candidate)
            if is_fetchable_media_url(candidate):
                return candidate

    return None


def extract_page_metadata(html: str) -> Dict[str, Optional[str]]:
    """Title, caption and thumbnail from Open Graph meta tags"""
    metadata = {'title': None, 'caption': None, 'thumbnail_url': None}
    if not html:
        return metadata

    soup = BeautifulSoup(html, 'html.parser')
    mapping = {'og:title': 'title', 'og:description': 'caption', 'og:image': 'thumbnail_url'}
    for prop, key in mapping.items():
        tag = soup.find('meta', attrs={'property': prop})
        if tag and tag.get('content'):
            metadata[key] = tag['content'].strip()
    return metadata


class BrowserStrategy(FetchStrategy):
    """Resolve media by rendering the post page in the pooled browser"""

    name = "browser"

    def __init__(self, pool: BrowserPool, enabled: Optional[bool] = None,
                 navigation_timeout: float = Config.BROWSER_NAVIGATION_TIMEOUT,
                 settle_delay: float = Config.BROWSER_SETTLE_DELAY):
        super().__init__(Config.use_browser_strategy() if enabled is None else enabled)
        self.pool = pool
        self.navigation_timeout = navigation_timeout
        self.settle_delay = settle_delay

    @staticmethod
    async def _route_request(route) -> None:
        request = route.request
        if request.resource_type in BLOCKED_RESOURCE_TYPES or any(
            pattern in request.url for pattern in BLOCKED_URL_PATTERNS
        ):
            await route.abort()
        else:
            await route.continue_()

    async def fetch(self, url: str) -> MediaReference:
        page = await self.pool.acquire()
        try:
            await page.route("**/*", self._route_request)

            self.logger.info(f"🌐 [BROWSER] Loading {url}")
            response = await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=int(self.navigation_timeout * 1000)
            )
            if response is not None and response.status == 404:
                raise MediaNotFoundError("Post page returned 404")

            await asyncio.sleep(self.settle_delay)

            body_text = await page.evaluate(BODY_TEXT_JS)
            if detect_access_wall(body_text or ''):
                raise PrivateOrRestrictedError("This content is private or requires login")

            html = await page.content()
            metadata = extract_page_metadata(html)
            duration = None

            video_url = extract_from_scripts(await page.evaluate(SCRIPTS_JS) or [])
            if video_url:
                self.logger.info("✅ [BROWSER] Found video URL in inline scripts")

            if not video_url:
                ld = extract_from_json_ld(await page.evaluate(JSON_LD_JS) or [])
                if ld:
                    self.logger.info("✅ [BROWSER] Found video URL in JSON-LD")
                    video_url = ld['video_url']
                    duration = ld['duration']
                    for key in ('title', 'caption', 'thumbnail_url'):
                        metadata[key] = metadata[key] or ld.get(key)

            element = await page.evaluate(VIDEO_ELEMENT_JS)
            if element:
                duration = duration or parse_duration(element.get('duration'))
                metadata['thumbnail_url'] = metadata['thumbnail_url'] or element.get('poster')
                if not video_url and is_fetchable_media_url(element.get('src')):
                    self.logger.info("✅ [BROWSER] Found video URL on <video> element")
                    video_url = element['src']

            if not video_url:
                video_url = extract_from_html(html)
                if video_url:
                    self.logger.info("✅ [BROWSER] Found video URL in page HTML")

            if not video_url:
                raise MediaNotFoundError("No fetchable video URL found on the rendered page")

            return MediaReference(
                source_url=url,
                video_url=video_url,
                title=metadata['title'],
                caption=metadata['caption'],
                thumbnail_url=metadata['thumbnail_url'],
                duration=duration,
                strategy=self.name,
            )
        finally:
            await self.pool.release(page)
