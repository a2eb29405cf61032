"""
Hosted Conversion API Strategy

Last-resort strategy: asks a Cobalt-compatible API to resolve the post.
Transient failures (network errors, 429, 5xx, "rate-limit" status) are
retried on a fixed backoff schedule; classification errors are not.
"""

import asyncio
from typing import Any, Dict, Optional, Sequence

import requests

from core.config import Config
from core.errors import (
    MediaNotFoundError,
    PrivateOrRestrictedError,
    UnsupportedMediaError,
)
from core.models import MediaReference
from core.url_utils import is_fetchable_media_url
from fetchers.base import FetchStrategy


class TransientAPIError(Exception):
    """Retryable hosted API failure"""


def parse_cobalt_response(payload: Dict[str, Any]) -> str:
    """
    Pull the direct video URL out of a Cobalt response body

    Raises:
        TransientAPIError: status is "rate-limit"
        UnsupportedMediaError: the API reports an unsupported post
        MediaNotFoundError: error status or no video item
    """
    status = str(payload.get('status', '')).lower()

    if status == 'rate-limit':
        raise TransientAPIError("Hosted API rate limit")

    if status == 'error':
        error = payload.get('error') or payload.get('text') or ''
        error_text = str(error.get('code', error) if isinstance(error, dict) else error)
        if 'unsupported' in error_text.lower():
            raise UnsupportedMediaError("This media type is not supported",
                                        details={'reason': error_text})
        raise MediaNotFoundError(f"Hosted API error: {error_text or 'unknown'}")

    url = payload.get('url')
    if is_fetchable_media_url(url):
        return url

    for item in payload.get('picker') or []:
        if 'video' in str(item.get('type', '')).lower() and is_fetchable_media_url(item.get('url')):
            return item['url']

    raise MediaNotFoundError("No video URL found in hosted API response")


class CobaltStrategy(FetchStrategy):
    """POST the post URL to the hosted API and read back a direct media URL"""

    name = "cobalt"

    def __init__(self, api_url: Optional[str] = None, session: Optional[requests.Session] = None,
                 enabled: bool = True, timeout: float = Config.DEFAULT_TIMEOUT,
                 retry_delays: Sequence[float] = Config.COBALT_RETRY_DELAYS):
        super().__init__(enabled)
        self.api_url = (api_url or Config.get_cobalt_api_url()).rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout
        self.retry_delays = tuple(retry_delays)

    def _build_request(self, url: str) -> Dict[str, Any]:
        return {
            'url': url,
            'vCodec': 'h264',
            'vQuality': '720',
            'aFormat': 'mp3',
            'filenamePattern': 'basic',
            'isAudioOnly': False,
        }

    async def fetch(self, url: str) -> MediaReference:
        attempts = len(self.retry_delays) + 1
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            try:
                video_url = await asyncio.to_thread(self._request_sync, url)
            except TransientAPIError as e:
                last_error = e
                self.logger.warning(f"⚠️ [COBALT] Attempt {attempt}/{attempts} failed: {e}")
                if attempt < attempts:
                    await asyncio.sleep(self.retry_delays[attempt - 1])
                continue

            self.logger.info(f"✅ [COBALT] Resolved video URL on attempt {attempt}")
            return MediaReference(source_url=url, video_url=video_url, strategy=self.name)

        raise MediaNotFoundError(f"Hosted API failed after {attempts} attempts", last_error=last_error)

    def _request_sync(self, url: str) -> str:
        try:
            response = self.session.post(
                self.api_url,
                json=self._build_request(url),
                headers={'Accept': 'application/json', 'Content-Type': 'application/json'},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransientAPIError(f"Network error: {e}") from e

        status = response.status_code
        if status == 429 or status >= 500:
            raise TransientAPIError(f"HTTP {status}")

        body_text = response.text or ''
        if status == 403:
            raise PrivateOrRestrictedError("This content is private or restricted")
        if status == 404:
            raise MediaNotFoundError("Media not found or has been deleted", details={'status': 404})
        if status == 400:
            lowered = body_text.lower()
            if 'unsupported' in lowered:
                raise UnsupportedMediaError("This media type is not supported")
            if 'jwt' in lowered or 'auth' in lowered:
                raise MediaNotFoundError("Hosted API requires authentication", details={'status': 400})
            raise MediaNotFoundError("Hosted API rejected the request", details={'status': 400})
        if status >= 400:
            raise MediaNotFoundError(f"Hosted API returned HTTP {status}", details={'status': status})

        try:
            payload = response.json()
        except ValueError as e:
            raise TransientAPIError("Hosted API returned a non-JSON body") from e

        return parse_cobalt_response(payload)
