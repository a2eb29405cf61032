#!/usr/bin/env python3
"""
URL Utilities for post URLs and resolved media URLs

Validation and canonicalization happen once, before any fetch strategy runs,
so every strategy sees the same canonical post URL.
"""

import re
from typing import Optional
from urllib.parse import urlparse, urlunparse

from core.errors import InvalidURLError

POST_URL_PATTERN = re.compile(
    r'^https?://(www\.)?instagram\.com/(reel|reels|p|tv|stories)/[\w.-]+(/[\w.-]+)?/?(\?.*)?(#.*)?$',
    re.IGNORECASE
)

SHORTCODE_PATTERN = re.compile(r'/(?:reel|reels|p|tv)/([\w-]+)', re.IGNORECASE)


def normalize_url(url: str) -> str:
    """
    Remove query parameters and fragment from a URL

    Examples:
        >>> normalize_url("https://www.instagram.com/reel/Cx1/?igsh=abc")
        'https://www.instagram.com/reel/Cx1/'
    """
    try:
        parsed = urlparse(url)
        return urlunparse((parsed.scheme, parsed.netloc, parsed.path, '', '', ''))
    except ValueError:
        return url


def validate_post_url(url: Optional[str]) -> str:
    """
    Check that a URL looks like a post URL

    Args:
        url: User-supplied post URL

    Returns:
        The stripped URL

    Raises:
        InvalidURLError: If the URL is empty or does not match the post shape
    """
    if not url or not isinstance(url, str):
        raise InvalidURLError("Post URL is required", details={'url': url})

    candidate = url.strip()
    if not POST_URL_PATTERN.match(candidate):
        raise InvalidURLError(
            "Invalid Instagram URL. Expected a reel, post or story link",
            details={'url': candidate}
        )
    return candidate


def canonicalize_post_url(url: str) -> str:
    """
    Canonical form of a validated post URL: https scheme, no query or
    fragment, trailing slash.

    Examples:
        >>> canonicalize_post_url("http://instagram.com/reel/Cx1?utm_source=ig_web")
        'https://instagram.com/reel/Cx1/'
    """
    parsed = urlparse(url.strip())
    path = parsed.path if parsed.path.endswith('/') else parsed.path + '/'
    return urlunparse(('https', parsed.netloc.lower(), path, '', '', ''))


def extract_shortcode(url: str) -> Optional[str]:
    """Post shortcode from a /reel/, /reels/, /p/ or /tv/ URL"""
    match = SHORTCODE_PATTERN.search(url)
    return match.group(1) if match else None


def unescape_media_url(url: str) -> str:
    """Undo JSON and HTML escaping found in URLs scraped from page source"""
    return (
        url.replace('\\u0026', '&')
        .replace('\\/', '/')
        .replace('&amp;', '&')
    )


def is_fetchable_media_url(url: Optional[str]) -> bool:
    """
    True for absolute http(s) URLs. blob: URLs only exist inside the page
    that created them and are rejected.
    """
    if not url:
        return False
    lowered = url.strip().lower()
    if lowered.startswith('blob:'):
        return False
    return lowered.startswith('http://') or lowered.startswith('https://')
