"""
Unit tests for processors/caption_analyzer.py
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from core.errors import CaptionAnalysisError
from core.models import CaptionAnalysis, EntityType, SourceType
from processors.caption_analyzer import (
    CaptionAnalyzer,
    analyze_caption_with_regex,
    caption_to_entities,
    parse_caption_analysis,
)


def make_claude(result=None, error=None):
    claude = Mock()
    claude.call_json = AsyncMock(return_value=result, side_effect=error)
    return claude


class TestRegexAnalysis:
    """Tests for analyze_caption_with_regex()"""

    @pytest.mark.unit
    def test_extracts_caption_fields(self, sample_caption):
        """Should find hashtags, mentions, URLs and calls to action"""
        analysis = analyze_caption_with_regex(sample_caption)

        assert analysis.method == "regex"
        assert analysis.hashtags == ["#productivity", "#aitools", "#notion"]
        assert analysis.topics == ["productivity", "aitools", "notion"]
        assert analysis.mentions == ["@productivity.lab"]
        assert analysis.urls == ["notion.so/templates"]
        assert analysis.calls_to_action == ["Link in bio"]
        assert analysis.has_important_info is True
        assert analysis.key_points[0] == "3 AI tools that save me 10 hours every week"
        assert analysis.summary == analysis.key_points[0]

    @pytest.mark.unit
    def test_sentiment(self):
        """Should classify sentiment from keyword lists"""
        assert analyze_caption_with_regex("I love this workflow").sentiment == "positive"
        assert analyze_caption_with_regex("The worst way to plan").sentiment == "negative"
        assert analyze_caption_with_regex("Plan your week on Sunday").sentiment == "neutral"

    @pytest.mark.unit
    def test_plain_caption_has_no_important_info(self):
        """Should flag has_important_info False when nothing structured is present"""
        analysis = analyze_caption_with_regex("just a quiet morning")
        assert analysis.has_important_info is False
        assert analysis.urls == [] and analysis.hashtags == []


class TestParseCaptionAnalysis:
    """Tests for parse_caption_analysis()"""

    @pytest.mark.unit
    def test_defaults_missing_fields(self):
        """Should default missing lists and normalize sentiment"""
        analysis = parse_caption_analysis({
            'key_points': ["Use Notion AI for planning", 42, None],
            'hashtags': ["#notion"],
            'sentiment': "Ecstatic",
            'summary': "  Three AI tools  ",
        })
        assert analysis.key_points == ["Use Notion AI for planning", "42"]
        assert analysis.topics == ["notion"]
        assert analysis.sentiment == "neutral"
        assert analysis.summary == "Three AI tools"
        assert analysis.mentions == []
        assert analysis.method == "ai"

    @pytest.mark.unit
    def test_rejects_non_object(self):
        """Should raise CaptionAnalysisError for None or a list"""
        with pytest.raises(CaptionAnalysisError):
            parse_caption_analysis(None)
        with pytest.raises(CaptionAnalysisError):
            parse_caption_analysis(["not", "an", "object"])


class TestCaptionToEntities:
    """Tests for caption_to_entities()"""

    @pytest.mark.unit
    def test_maps_urls_mentions_and_top_key_points(self):
        """Should emit metadata entities for URLs, mentions and at most 3 key points"""
        analysis = CaptionAnalysis(
            urls=["notion.so/templates"],
            mentions=["@productivity.lab"],
            key_points=["one point", "two point", "three point", "four point"],
        )
        entities = caption_to_entities(analysis)

        assert [e.type for e in entities] == [
            EntityType.WEBSITES_URLS, EntityType.PEOPLE_ORGS,
            EntityType.RECOMMENDATIONS, EntityType.RECOMMENDATIONS, EntityType.RECOMMENDATIONS,
        ]
        assert all(e.source_type == SourceType.METADATA for e in entities)
        assert entities[0].confidence == 0.9
        assert entities[-1].value == "three point"


class TestCaptionAnalyzer:
    """Tests for CaptionAnalyzer.analyze()"""

    @pytest.mark.unit
    def test_uses_ai_result(self, sample_caption):
        """Should return the AI analysis when the model replies with valid JSON"""
        claude = make_claude({'key_points': ["Notion AI plans your week"], 'sentiment': "positive"})

        analysis = asyncio.run(CaptionAnalyzer(claude).analyze(sample_caption))

        assert analysis.method == "ai"
        assert analysis.sentiment == "positive"
        claude.call_json.assert_awaited_once()

    @pytest.mark.unit
    def test_falls_back_to_regex_on_failure(self, sample_caption):
        """Should use the regex extractor when the AI call raises"""
        analysis = asyncio.run(CaptionAnalyzer(make_claude(error=RuntimeError("overloaded"))).analyze(sample_caption))
        assert analysis.method == "regex"
        assert "#aitools" in analysis.hashtags

    @pytest.mark.unit
    def test_falls_back_to_regex_on_unparseable_reply(self, sample_caption):
        """Should use the regex extractor when the reply holds no JSON object"""
        analysis = asyncio.run(CaptionAnalyzer(make_claude(result=None)).analyze(sample_caption))
        assert analysis.method == "regex"

    @pytest.mark.unit
    def test_no_client_uses_regex(self, sample_caption):
        """Should work without an AI client"""
        assert asyncio.run(CaptionAnalyzer().analyze(sample_caption)).method == "regex"

    @pytest.mark.unit
    def test_empty_caption_returns_none(self):
        """Should skip analysis for missing or blank captions"""
        analyzer = CaptionAnalyzer(make_claude())
        assert asyncio.run(analyzer.analyze(None)) is None
        assert asyncio.run(analyzer.analyze("   ")) is None
