"""
Shared pytest fixtures for the reel backend tests

This file contains fixtures that are available to all test files.
"""

from typing import Dict
from unittest.mock import AsyncMock, Mock

import pytest

from core.models import Entity, EntityType, SourceType


@pytest.fixture
def sample_post_urls() -> Dict[str, str]:
    """Sample post URLs for testing"""
    return {
        'reel': 'https://www.instagram.com/reel/C8abc123xyz/',
        'reel_no_slash': 'https://www.instagram.com/reel/C8abc123xyz',
        'reel_with_params': 'https://www.instagram.com/reel/C8abc123xyz/?igsh=MWQ1ZGUxMzBkMA==&utm_source=ig_web',
        'reels': 'https://instagram.com/reels/C8abc123xyz/',
        'post': 'https://www.instagram.com/p/C8abc123xyz/',
        'tv': 'https://www.instagram.com/tv/C8abc123xyz/',
        'story': 'https://www.instagram.com/stories/some.creator/3312345678901234567/',
        'http': 'http://www.instagram.com/reel/C8abc123xyz/',
        'uppercase': 'HTTPS://WWW.INSTAGRAM.COM/REEL/C8abc123xyz/',
    }


@pytest.fixture
def invalid_urls() -> Dict[str, str]:
    """URLs that must be rejected before any fetch"""
    return {
        'empty': '',
        'youtube': 'https://www.youtube.com/watch?v=dQw4w9WgXcQ',
        'profile': 'https://www.instagram.com/some.creator/',
        'no_scheme': 'www.instagram.com/reel/C8abc123xyz/',
        'lookalike': 'https://instagram.com.evil.example/reel/C8abc123xyz/',
        'not_a_url': 'not a valid url at all',
    }


@pytest.fixture
def sample_caption() -> str:
    """Realistic caption with hashtags, mentions, a URL and calls to action"""
    return (
        "3 AI tools that save me 10 hours every week! "
        "Notion AI for planning, Gamma for slides and Perplexity for research. "
        "Full list on notion.so/templates. "
        "Follow @productivity.lab for more tips. Link in bio\n"
        "#productivity #aitools #notion"
    )


@pytest.fixture
def sample_video_url() -> str:
    return "https://scontent.cdninstagram.com/v/t50.2886-16/123_n.mp4?efg=abc&oh=xyz"


@pytest.fixture
def make_entity():
    """Factory for Entity instances"""
    def _make(value: str, source: SourceType = SourceType.AUDIO,
              entity_type: EntityType = EntityType.TOOLS_PLATFORMS,
              timestamp=None, confidence: float = 0.85) -> Entity:
        return Entity(
            type=entity_type,
            value=value,
            context=f"mentions {value}",
            source_type=source,
            timestamp=timestamp,
            confidence=confidence,
        )
    return _make


@pytest.fixture
def fake_browser_factory():
    """
    Factory for fake Playwright browsers

    Each browser reports connected, hands out AsyncMock pages and records
    the handler registered for the "disconnected" event.
    """
    def _make() -> Mock:
        browser = Mock()
        browser.handlers = {}
        browser.is_connected.return_value = True
        browser.on.side_effect = lambda event, handler: browser.handlers.__setitem__(event, handler)

        def new_page(**kwargs):
            page = Mock()
            page.add_init_script = AsyncMock()
            page.close = AsyncMock()
            page.is_closed.return_value = False
            return page

        browser.new_page = AsyncMock(side_effect=new_page)
        browser.close = AsyncMock()
        return browser
    return _make
