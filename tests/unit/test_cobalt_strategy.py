"""
Unit tests for fetchers/cobalt_strategy.py

Tests response parsing, status code classification and the retry schedule
with a mocked requests session.
"""

import asyncio
from unittest.mock import Mock

import pytest
import requests

from core.errors import MediaNotFoundError, PrivateOrRestrictedError, UnsupportedMediaError
from fetchers.cobalt_strategy import CobaltStrategy, TransientAPIError, parse_cobalt_response

POST_URL = "https://www.instagram.com/reel/C8abc123xyz/"


def make_response(status_code=200, payload=None, text=None):
    response = Mock()
    response.status_code = status_code
    response.text = text if text is not None else str(payload)
    if payload is None:
        response.json.side_effect = ValueError("not json")
    else:
        response.json.return_value = payload
    return response


def make_strategy(*responses):
    session = Mock()
    session.post.side_effect = list(responses)
    return CobaltStrategy(api_url="https://cobalt.example/", session=session, retry_delays=(0, 0, 0)), session


class TestParseCobaltResponse:
    """Tests for parse_cobalt_response()"""

    @pytest.mark.unit
    def test_direct_url(self, sample_video_url):
        """Should return the top-level url"""
        assert parse_cobalt_response({'status': 'redirect', 'url': sample_video_url}) == sample_video_url

    @pytest.mark.unit
    def test_picker_selects_first_video(self, sample_video_url):
        """Should pick the first picker item whose type contains video"""
        payload = {'status': 'picker', 'picker': [
            {'type': 'photo', 'url': 'https://cdn.example.com/a.jpg'},
            {'type': 'video', 'url': sample_video_url},
            {'type': 'video', 'url': 'https://cdn.example.com/other.mp4'},
        ]}
        assert parse_cobalt_response(payload) == sample_video_url

    @pytest.mark.unit
    def test_rate_limit_status_is_transient(self):
        """Should raise TransientAPIError for a rate-limit status"""
        with pytest.raises(TransientAPIError):
            parse_cobalt_response({'status': 'rate-limit'})

    @pytest.mark.unit
    def test_error_status_classification(self):
        """Should map unsupported errors to UnsupportedMedia and others to MediaNotFound"""
        with pytest.raises(UnsupportedMediaError):
            parse_cobalt_response({'status': 'error', 'error': {'code': 'error.api.service.unsupported'}})
        with pytest.raises(MediaNotFoundError):
            parse_cobalt_response({'status': 'error', 'text': 'fetch.fail'})

    @pytest.mark.unit
    def test_picker_without_video(self):
        """Should raise MediaNotFound when no picker item is a video"""
        with pytest.raises(MediaNotFoundError):
            parse_cobalt_response({'status': 'picker', 'picker': [{'type': 'photo', 'url': 'https://x/a.jpg'}]})


class TestCobaltStrategy:
    """Tests for CobaltStrategy.fetch()"""

    @pytest.mark.unit
    def test_success_builds_reference(self, sample_video_url):
        """Should POST the request body and return a MediaReference"""
        strategy, session = make_strategy(make_response(200, {'status': 'redirect', 'url': sample_video_url}))

        result = asyncio.run(strategy.fetch(POST_URL))

        assert result.video_url == sample_video_url
        assert result.strategy == "cobalt"
        body = session.post.call_args.kwargs['json']
        assert body['url'] == POST_URL
        assert body['vCodec'] == 'h264'
        assert body['isAudioOnly'] is False

    @pytest.mark.unit
    def test_retries_transient_failures(self, sample_video_url):
        """Should retry 429, 5xx and network errors and then succeed"""
        strategy, session = make_strategy(
            make_response(429, text="slow down"),
            requests.ConnectionError("reset"),
            make_response(502, text="bad gateway"),
            make_response(200, {'status': 'tunnel', 'url': sample_video_url}),
        )

        result = asyncio.run(strategy.fetch(POST_URL))

        assert result.video_url == sample_video_url
        assert session.post.call_count == 4

    @pytest.mark.unit
    def test_gives_up_after_retry_budget(self):
        """Should raise MediaNotFound after 4 transient failures"""
        strategy, session = make_strategy(*[make_response(503, text="down") for _ in range(4)])

        with pytest.raises(MediaNotFoundError) as exc_info:
            asyncio.run(strategy.fetch(POST_URL))

        assert session.post.call_count == 4
        assert isinstance(exc_info.value.last_error, TransientAPIError)

    @pytest.mark.unit
    def test_forbidden_is_private_without_retry(self):
        """Should raise PrivateOrRestricted on 403 and not retry"""
        strategy, session = make_strategy(make_response(403, text="forbidden"))
        with pytest.raises(PrivateOrRestrictedError):
            asyncio.run(strategy.fetch(POST_URL))
        assert session.post.call_count == 1

    @pytest.mark.unit
    def test_status_code_classification(self):
        """Should map 404 to MediaNotFound and an unsupported 400 to UnsupportedMedia"""
        strategy, _ = make_strategy(make_response(404, text="not found"))
        with pytest.raises(MediaNotFoundError):
            asyncio.run(strategy.fetch(POST_URL))

        strategy, _ = make_strategy(make_response(400, text='{"error": "unsupported link"}'))
        with pytest.raises(UnsupportedMediaError):
            asyncio.run(strategy.fetch(POST_URL))

    @pytest.mark.unit
    def test_non_json_body_is_retried(self, sample_video_url):
        """Should treat an HTML error page with status 200 as transient"""
        strategy, session = make_strategy(
            make_response(200, None, text="<html>maintenance</html>"),
            make_response(200, {'status': 'redirect', 'url': sample_video_url}),
        )
        assert asyncio.run(strategy.fetch(POST_URL)).video_url == sample_video_url
        assert session.post.call_count == 2
