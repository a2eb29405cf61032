#!/usr/bin/env python3
"""
Entity Extractor

Pulls typed entities (tools, URLs, prices, steps...) out of each modality's
text with Claude, then deduplicates across modalities and groups the result
into display-ready visual insights.
"""

import logging
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional, Sequence

from core.claude_client import ClaudeClient
from core.config import Config
from core.models import Entity, EntityType, SourceType
from core.prompts import EntityExtractionPrompt

logger = logging.getLogger(__name__)

SOURCE_LABELS = {
    SourceType.AUDIO: "audio transcript",
    SourceType.VISUAL: "on-screen text",
    SourceType.METADATA: "post caption",
}

# Insight key -> (entity type, display label)
VISUAL_INSIGHT_TYPES = OrderedDict([
    ('tools_and_platforms', (EntityType.TOOLS_PLATFORMS, "Tools & Platforms")),
    ('websites_and_urls', (EntityType.WEBSITES_URLS, "Websites & URLs")),
    ('brands_and_products', (EntityType.BRANDS_PRODUCTS, "Brands & Products")),
    ('lists_and_sequences', (EntityType.LISTS_SEQUENCES, "Lists & Sequences")),
    ('numbers_and_metrics', (EntityType.NUMBERS_METRICS, "Numbers & Metrics")),
    ('prices_and_costs', (EntityType.PRICES_COSTS, "Prices & Costs")),
    ('recommendations', (EntityType.RECOMMENDATIONS, "Recommendations")),
])


def parse_entities(data: Optional[Dict[str, Any]], source_type: SourceType,
                   timestamp: Optional[float] = None) -> List[Entity]:
    """Convert model JSON into Entities, dropping unknown types and empty values"""
    if not isinstance(data, dict):
        return []

    raw_entities = data.get('entities')
    if not isinstance(raw_entities, list):
        return []

    entities = []
    for item in raw_entities:
        if not isinstance(item, dict):
            continue
        value = str(item.get('value') or '').strip()
        if not value:
            continue
        try:
            entity_type = EntityType(str(item.get('type', '')).strip().lower())
        except ValueError:
            logger.debug(f"   Skipping entity with unknown type: {item.get('type')}")
            continue
        entities.append(Entity(
            type=entity_type,
            value=value,
            context=str(item.get('context') or '').strip(),
            source_type=source_type,
            timestamp=timestamp,
            confidence=Config.DEFAULT_ENTITY_CONFIDENCE,
        ))
    return entities


def deduplicate(entities: Iterable[Entity], priority_order: Optional[Sequence[str]] = None) -> List[Entity]:
    """
    Collapse entities with the same normalized value

    For each group the entity whose source ranks highest in priority_order
    is kept (first occurrence wins on a tie). Groups appear in the order
    their first member appeared. Running it twice gives the same result.

    Args:
        entities: Entities from all modalities
        priority_order: Source names, highest priority first
            (defaults to Config.get_source_priority())

    Returns:
        Deduplicated entities
    """
    order = list(priority_order or Config.get_source_priority())

    def rank(entity: Entity) -> int:
        source = entity.source_type.value
        return order.index(source) if source in order else len(order)

    groups: "OrderedDict[str, Entity]" = OrderedDict()
    total = 0
    for entity in entities:
        total += 1
        key = entity.normalized_value()
        current = groups.get(key)
        if current is None or rank(entity) < rank(current):
            groups[key] = entity

    result = list(groups.values())
    logger.info(f"🧬 [ENTITIES] Deduplicated {total} → {len(result)} entities")
    return result


def categorize(entities: Iterable[Entity]) -> Dict[str, List[Entity]]:
    """Group entities by type value, preserving order within each type"""
    categorized: Dict[str, List[Entity]] = {}
    for entity in entities:
        categorized.setdefault(entity.type.value, []).append(entity)
    return categorized


def build_visual_insights(categorized: Dict[str, List[Entity]]) -> Dict[str, Any]:
    """
    Display-oriented summary of the categorized entities

    Only categories with at least one entity are included. Each insight has
    a label, its items, the timestamps the items were seen at, and the mean
    confidence.
    """
    insights: Dict[str, Any] = {}
    for key, (entity_type, label) in VISUAL_INSIGHT_TYPES.items():
        items = categorized.get(entity_type.value)
        if not items:
            continue

        insight_items = []
        for entity in items:
            item = {'value': entity.value, 'context': entity.context}
            if entity_type == EntityType.WEBSITES_URLS:
                item['metadata'] = {'url': entity.value}
            insight_items.append(item)

        insights[key] = {
            'type': entity_type.value,
            'category': label,
            'items': insight_items,
            'source_frames': [entity.timestamp for entity in items if entity.timestamp is not None],
            'confidence': round(sum(entity.confidence for entity in items) / len(items), 3),
        }
    return insights


class EntityExtractor:
    """Per-modality entity extraction with Claude"""

    def __init__(self, claude_client: ClaudeClient):
        self.claude = claude_client

    async def extract(self, text: str, source_type: SourceType,
                      timestamp: Optional[float] = None) -> List[Entity]:
        """
        Extract entities from one piece of text

        Failures are logged and yield an empty list; entity extraction never
        stops a run.
        """
        if not text or not text.strip():
            return []

        label = SOURCE_LABELS.get(source_type, "text")
        try:
            data = await self.claude.call_json(
                EntityExtractionPrompt.build(text, label),
                max_tokens=EntityExtractionPrompt.MAX_TOKENS,
            )
        except Exception as e:
            logger.warning(f"⚠️ [ENTITIES] Extraction from {label} failed: {e}")
            return []

        entities = parse_entities(data, source_type, timestamp)
        logger.info(f"🏷️ [ENTITIES] {len(entities)} entities from {label}"
                    + (f" at {timestamp:.1f}s" if timestamp is not None else ""))
        return entities
