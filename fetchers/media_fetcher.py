#!/usr/bin/env python3
"""
Media Fetcher

Validates a post URL once, then runs the fetch strategies in priority order
and returns the first MediaReference with a fetchable video URL.
"""

import dataclasses
import logging
from typing import List, Optional

import requests

from core.browser_pool import BrowserPool
from core.config import Config
from core.errors import (
    DEFINITIVE_FETCH_ERRORS,
    MediaNotFoundError,
    UnsupportedMediaError,
    describe_error,
)
from core.models import MediaReference
from core.url_utils import canonicalize_post_url, is_fetchable_media_url, validate_post_url
from fetchers.base import FetchStrategy
from fetchers.browser_strategy import BrowserStrategy
from fetchers.cobalt_strategy import CobaltStrategy
from fetchers.embed_scraper import EmbedPageStrategy
from fetchers.ytdlp_strategy import YtDlpStrategy

logger = logging.getLogger(__name__)


class MediaFetcher:
    """Ordered fallback chain of fetch strategies"""

    def __init__(self, strategies: List[FetchStrategy]):
        self.strategies = list(strategies)

    @classmethod
    def from_config(cls, pool: BrowserPool, session: Optional[requests.Session] = None) -> 'MediaFetcher':
        """
        Build the standard chain: browser, embed page, yt-dlp (if enabled),
        hosted API. Enablement flags come from Config.
        """
        if session is None:
            session = requests.Session()
            session.headers.update(Config.get_default_headers())

        return cls([
            BrowserStrategy(pool),
            EmbedPageStrategy(session=session),
            YtDlpStrategy(),
            CobaltStrategy(session=session),
        ])

    def enabled_strategies(self) -> List[FetchStrategy]:
        return [strategy for strategy in self.strategies if strategy.is_enabled()]

    async def fetch(self, url: str) -> MediaReference:
        """
        Resolve a post URL to a MediaReference

        Args:
            url: Post URL as supplied by the caller

        Returns:
            MediaReference from the first strategy that succeeds

        Raises:
            InvalidURLError: URL failed validation, or a strategy classified it invalid
            PrivateOrRestrictedError: A strategy found the post private; no other strategy is tried
            UnsupportedMediaError: The chain was exhausted and a strategy reported the post unsupported
            MediaNotFoundError: Every strategy failed; carries the last underlying error
        """
        canonical = canonicalize_post_url(validate_post_url(url))
        strategies = self.enabled_strategies()
        logger.info(f"🔎 [FETCH] Resolving {canonical} with {len(strategies)} strategies")

        last_error: Optional[Exception] = None
        unsupported: Optional[UnsupportedMediaError] = None

        for index, strategy in enumerate(strategies, 1):
            logger.info(f"🔄 [FETCH] Strategy {index}/{len(strategies)}: {strategy.name}")
            try:
                reference = await strategy.fetch(canonical)
            except DEFINITIVE_FETCH_ERRORS as e:
                logger.warning(f"⛔ [FETCH] {strategy.name} classified the post: {describe_error(e)}")
                raise
            except Exception as e:
                last_error = e
                if isinstance(e, UnsupportedMediaError):
                    unsupported = e
                logger.warning(f"⚠️ [FETCH] {strategy.name} failed: {describe_error(e)}")
                continue

            if not is_fetchable_media_url(reference.video_url):
                last_error = MediaNotFoundError(
                    f"{strategy.name} returned a non-fetchable URL",
                    details={'video_url': (reference.video_url or '')[:80]}
                )
                logger.warning(f"⚠️ [FETCH] {strategy.name} returned a non-fetchable URL, skipping")
                continue

            logger.info(f"✅ [FETCH] Resolved via {strategy.name}")
            return dataclasses.replace(reference, source_url=canonical, strategy=strategy.name)

        if unsupported is not None:
            raise unsupported

        raise MediaNotFoundError(
            f"Could not fetch media after trying {len(strategies)} strategies",
            last_error=last_error,
            details={'strategies': [strategy.name for strategy in strategies]},
        )
