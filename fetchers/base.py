"""
Common interface for fetch strategies

A strategy resolves a canonical post URL to a MediaReference or raises one of
the source-classification errors. Strategies are independent of each other
and never assume another one ran first.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

from core.models import MediaReference

ISO_DURATION_PATTERN = re.compile(
    r'^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$',
    re.IGNORECASE
)


class FetchStrategy(ABC):
    """Base class for one way of resolving a post URL to a direct media URL"""

    name = "base"

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.logger = logging.getLogger(f"{__name__}.{self.name}")

    def is_enabled(self) -> bool:
        return self.enabled

    @abstractmethod
    async def fetch(self, url: str) -> MediaReference:
        """
        Resolve a canonical post URL

        Raises:
            MediaNotFoundError: No media URL could be found
            PrivateOrRestrictedError: The post is private or behind a login wall
            UnsupportedMediaError: The post has no downloadable video
            InvalidURLError: The source rejected the URL shape
        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} enabled={self.enabled}>"


def parse_duration(value) -> Optional[float]:
    """
    Parse a duration given as seconds or as an ISO-8601 string (PT1M5S)

    Returns:
        Seconds, or None when the value is missing or unparseable
    """
    if value is None or value == '':
        return None
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else None

    text = str(value).strip()
    try:
        seconds = float(text)
        return seconds if seconds > 0 else None
    except ValueError:
        pass

    match = ISO_DURATION_PATTERN.match(text)
    if not match or not any(match.groupdict().values()):
        return None

    parts = {key: float(val) for key, val in match.groupdict().items() if val}
    total = (
        parts.get('days', 0) * 86400
        + parts.get('hours', 0) * 3600
        + parts.get('minutes', 0) * 60
        + parts.get('seconds', 0)
    )
    return total if total > 0 else None
