"""
Unit tests for processors/entity_extractor.py

Tests entity parsing, cross-modality deduplication, categorization and
visual insight grouping.
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from core.models import EntityType, SourceType
from processors.entity_extractor import (
    EntityExtractor,
    build_visual_insights,
    categorize,
    deduplicate,
    parse_entities,
)


class TestDeduplicate:
    """Tests for deduplicate()"""

    @pytest.mark.unit
    def test_keeps_highest_priority_source(self, make_entity):
        """Should keep the visual entity over audio and metadata duplicates"""
        entities = [
            make_entity("Notion", SourceType.AUDIO),
            make_entity("notion ", SourceType.METADATA),
            make_entity("NOTION", SourceType.VISUAL, timestamp=12.0),
        ]
        result = deduplicate(entities, priority_order=['visual', 'metadata', 'audio'])
        assert len(result) == 1
        assert result[0].source_type == SourceType.VISUAL
        assert result[0].timestamp == 12.0

    @pytest.mark.unit
    def test_first_occurrence_wins_ties(self, make_entity):
        """Should keep the first entity when sources rank the same"""
        first = make_entity("Gamma", SourceType.VISUAL, timestamp=6.0)
        second = make_entity("gamma", SourceType.VISUAL, timestamp=18.0)
        result = deduplicate([first, second], priority_order=['visual', 'metadata', 'audio'])
        assert result == [first]

    @pytest.mark.unit
    def test_preserves_first_appearance_order(self, make_entity):
        """Should order groups by where their first member appeared"""
        entities = [
            make_entity("Notion", SourceType.AUDIO),
            make_entity("Gamma", SourceType.AUDIO),
            make_entity("Notion", SourceType.VISUAL),
            make_entity("Perplexity", SourceType.METADATA),
        ]
        result = deduplicate(entities, priority_order=['visual', 'metadata', 'audio'])
        assert [e.value for e in result] == ["Notion", "Gamma", "Perplexity"]

    @pytest.mark.unit
    def test_is_idempotent(self, make_entity):
        """Should return the same result when applied twice"""
        entities = [
            make_entity("Notion", SourceType.AUDIO),
            make_entity("notion", SourceType.VISUAL),
            make_entity("Gamma", SourceType.METADATA),
            make_entity("gamma", SourceType.AUDIO),
            make_entity("$20/month", SourceType.VISUAL, EntityType.PRICES_COSTS),
        ]
        once = deduplicate(entities, priority_order=['visual', 'metadata', 'audio'])
        twice = deduplicate(once, priority_order=['visual', 'metadata', 'audio'])
        assert once == twice

    @pytest.mark.unit
    def test_priority_order_is_configurable(self, make_entity, monkeypatch):
        """Should honor ENTITY_SOURCE_PRIORITY when no order is passed"""
        monkeypatch.setenv('ENTITY_SOURCE_PRIORITY', 'audio,visual')
        entities = [make_entity("Notion", SourceType.VISUAL), make_entity("Notion", SourceType.AUDIO)]
        result = deduplicate(entities)
        assert result[0].source_type == SourceType.AUDIO

    @pytest.mark.unit
    def test_empty_input(self):
        """Should return an empty list for no entities"""
        assert deduplicate([]) == []


class TestCategorizeAndInsights:
    """Tests for categorize() and build_visual_insights()"""

    @pytest.mark.unit
    def test_groups_by_type(self, make_entity):
        """Should group entities under their type value"""
        entities = [
            make_entity("Notion"),
            make_entity("notion.so", entity_type=EntityType.WEBSITES_URLS),
            make_entity("Gamma"),
        ]
        result = categorize(entities)
        assert set(result) == {'tools_platforms', 'websites_urls'}
        assert [e.value for e in result['tools_platforms']] == ["Notion", "Gamma"]

    @pytest.mark.unit
    def test_visual_insights_only_include_present_categories(self, make_entity):
        """Should build insights for non-empty categories with timestamps and mean confidence"""
        entities = [
            make_entity("Notion", SourceType.VISUAL, timestamp=6.0, confidence=0.8),
            make_entity("Gamma", SourceType.AUDIO, confidence=0.9),
            make_entity("notion.so", SourceType.METADATA, EntityType.WEBSITES_URLS, confidence=0.9),
        ]
        insights = build_visual_insights(categorize(entities))

        assert set(insights) == {'tools_and_platforms', 'websites_and_urls'}
        tools = insights['tools_and_platforms']
        assert tools['category'] == "Tools & Platforms"
        assert [item['value'] for item in tools['items']] == ["Notion", "Gamma"]
        assert tools['source_frames'] == [6.0]
        assert tools['confidence'] == pytest.approx(0.85)
        assert insights['websites_and_urls']['items'][0]['metadata'] == {'url': 'notion.so'}

    @pytest.mark.unit
    def test_empty_categories_give_empty_insights(self):
        """Should return an empty dict when there are no entities"""
        assert build_visual_insights({}) == {}


class TestParseEntities:
    """Tests for parse_entities()"""

    @pytest.mark.unit
    def test_parses_known_types(self):
        """Should build entities with the given source and timestamp"""
        data = {'entities': [
            {'type': 'tools_platforms', 'value': 'Notion', 'context': 'plans in Notion'},
            {'type': 'PRICES_COSTS', 'value': '$10', 'context': 'costs $10'},
        ]}
        result = parse_entities(data, SourceType.VISUAL, timestamp=12.0)
        assert [(e.type, e.value) for e in result] == [
            (EntityType.TOOLS_PLATFORMS, 'Notion'),
            (EntityType.PRICES_COSTS, '$10'),
        ]
        assert all(e.source_type == SourceType.VISUAL and e.timestamp == 12.0 for e in result)

    @pytest.mark.unit
    def test_drops_unknown_types_and_empty_values(self):
        """Should skip entries with unknown types, empty values or wrong shapes"""
        data = {'entities': [
            {'type': 'spaceships', 'value': 'Enterprise'},
            {'type': 'tools_platforms', 'value': '  '},
            'Notion',
        ]}
        assert parse_entities(data, SourceType.AUDIO) == []

    @pytest.mark.unit
    def test_handles_malformed_payloads(self):
        """Should return an empty list for None or a missing entities key"""
        assert parse_entities(None, SourceType.AUDIO) == []
        assert parse_entities({'items': []}, SourceType.AUDIO) == []
        assert parse_entities({'entities': 'none'}, SourceType.AUDIO) == []


class TestEntityExtractor:
    """Tests for EntityExtractor.extract()"""

    @pytest.mark.unit
    def test_extracts_from_model_json(self):
        """Should return parsed entities from the model reply"""
        claude = Mock()
        claude.call_json = AsyncMock(return_value={'entities': [
            {'type': 'tools_platforms', 'value': 'Gamma', 'context': 'slides in Gamma'},
        ]})
        result = asyncio.run(EntityExtractor(claude).extract("Use Gamma for slides", SourceType.AUDIO))
        assert [e.value for e in result] == ['Gamma']
        assert "audio transcript" in claude.call_json.call_args[0][0]

    @pytest.mark.unit
    def test_failure_returns_empty_list(self):
        """Should swallow service failures and return no entities"""
        claude = Mock()
        claude.call_json = AsyncMock(side_effect=RuntimeError("overloaded"))
        result = asyncio.run(EntityExtractor(claude).extract("Use Gamma", SourceType.VISUAL, 6.0))
        assert result == []

    @pytest.mark.unit
    def test_skips_empty_text(self):
        """Should not call the model for empty text"""
        claude = Mock()
        claude.call_json = AsyncMock()
        assert asyncio.run(EntityExtractor(claude).extract("   ", SourceType.AUDIO)) == []
        claude.call_json.assert_not_called()
