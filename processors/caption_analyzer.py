#!/usr/bin/env python3
"""
Caption Analyzer

Extracts structured facts from a post caption with Claude. When the AI call
fails or returns unusable JSON, a deterministic regex extractor covering the
same fields takes over, so this stage never fails for a non-empty caption.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from core.claude_client import ClaudeClient
from core.errors import CaptionAnalysisError
from core.models import CaptionAnalysis, Entity, EntityType, SourceType
from core.prompts import CaptionAnalysisPrompt

logger = logging.getLogger(__name__)

HASHTAG_PATTERN = re.compile(r'#\w+')
MENTION_PATTERN = re.compile(r'@[\w.]+')
URL_PATTERN = re.compile(
    r'(?<![@\w.])(?:https?://)?(?:www\.)?[\w-]+(?:\.[\w-]+)*\.[a-zA-Z]{2,}'
    r'(?:/[\w\-._~:/?#\[\]@!$&\'()*+,;=%]*)?'
)
CTA_PATTERNS = [
    re.compile(r'follow\s+(?:me|us|for)', re.IGNORECASE),
    re.compile(r'link\s+in\s+bio', re.IGNORECASE),
    re.compile(r'check\s+out', re.IGNORECASE),
    re.compile(r'visit\s+(?:my|our)', re.IGNORECASE),
    re.compile(r'dm\s+(?:me|us)', re.IGNORECASE),
    re.compile(r'comment\s+below', re.IGNORECASE),
    re.compile(r'tag\s+(?:a|someone)', re.IGNORECASE),
    re.compile(r'share\s+(?:this|with)', re.IGNORECASE),
]
POSITIVE_WORDS = re.compile(r'\b(?:great|amazing|awesome|love|best|perfect|excellent)\b', re.IGNORECASE)
NEGATIVE_WORDS = re.compile(r'\b(?:bad|worst|hate|terrible|awful|poor)\b', re.IGNORECASE)
SENTENCE_SPLIT = re.compile(r'[.!?\n]+')

SENTIMENTS = {'positive', 'neutral', 'negative'}
MAX_KEY_POINTS = 5


def _unique(items: List[str]) -> List[str]:
    seen = set()
    result = []
    for item in items:
        key = item.lower()
        if key not in seen:
            seen.add(key)
            result.append(item)
    return result


def analyze_caption_with_regex(caption: str) -> CaptionAnalysis:
    """
    Deterministic caption analysis

    Examples:
        >>> analyze_caption_with_regex("Love this #productivity tip! Link in bio").sentiment
        'positive'
    """
    hashtags = _unique(HASHTAG_PATTERN.findall(caption))
    mentions = _unique([m.rstrip('.') for m in MENTION_PATTERN.findall(caption)])
    urls = _unique([u.rstrip('.,;:!?)') for u in URL_PATTERN.findall(caption)])

    calls_to_action = []
    for pattern in CTA_PATTERNS:
        match = pattern.search(caption)
        if match:
            calls_to_action.append(match.group(0))

    if POSITIVE_WORDS.search(caption):
        sentiment = 'positive'
    elif NEGATIVE_WORDS.search(caption):
        sentiment = 'negative'
    else:
        sentiment = 'neutral'

    key_points = [
        sentence.strip() for sentence in SENTENCE_SPLIT.split(caption)
        if 10 < len(sentence.strip()) < 200
    ][:MAX_KEY_POINTS]

    has_important_info = bool(hashtags or mentions or urls or calls_to_action)

    return CaptionAnalysis(
        key_points=key_points,
        hashtags=hashtags,
        mentions=mentions,
        urls=urls,
        calls_to_action=calls_to_action,
        topics=_unique([tag.lstrip('#').lower() for tag in hashtags]),
        sentiment=sentiment,
        has_important_info=has_important_info,
        summary=key_points[0] if key_points else "",
        method="regex",
    )


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if isinstance(item, (str, int, float)) and str(item).strip()]


def parse_caption_analysis(data: Optional[Dict[str, Any]]) -> CaptionAnalysis:
    """
    Build a CaptionAnalysis from model JSON, defaulting missing fields

    Raises:
        CaptionAnalysisError: data is not a JSON object
    """
    if not isinstance(data, dict):
        raise CaptionAnalysisError("Caption analysis response was not a JSON object")

    sentiment = str(data.get('sentiment', 'neutral')).lower()
    if sentiment not in SENTIMENTS:
        sentiment = 'neutral'

    hashtags = _string_list(data.get('hashtags'))
    topics = _string_list(data.get('topics')) or [tag.lstrip('#').lower() for tag in hashtags]

    return CaptionAnalysis(
        key_points=_string_list(data.get('key_points'))[:MAX_KEY_POINTS],
        hashtags=hashtags,
        mentions=_string_list(data.get('mentions')),
        urls=_string_list(data.get('urls')),
        calls_to_action=_string_list(data.get('calls_to_action')),
        topics=topics,
        sentiment=sentiment,
        has_important_info=bool(data.get('has_important_info', False)),
        summary=str(data.get('summary') or '').strip(),
        method="ai",
    )


def caption_to_entities(analysis: CaptionAnalysis) -> List[Entity]:
    """Caption-derived entities: URLs, mentions and the top key points"""
    entities = []

    for url in analysis.urls:
        entities.append(Entity(
            type=EntityType.WEBSITES_URLS, value=url, context="Mentioned in caption",
            source_type=SourceType.METADATA, confidence=0.9,
        ))

    for mention in analysis.mentions:
        entities.append(Entity(
            type=EntityType.PEOPLE_ORGS, value=mention, context="Mentioned in caption",
            source_type=SourceType.METADATA, confidence=0.9,
        ))

    for point in analysis.key_points[:3]:
        entities.append(Entity(
            type=EntityType.RECOMMENDATIONS, value=point, context="Key point from caption",
            source_type=SourceType.METADATA, confidence=0.85,
        ))

    return entities


class CaptionAnalyzer:
    """AI caption analysis with regex fallback"""

    def __init__(self, claude_client: Optional[ClaudeClient] = None):
        self.claude = claude_client

    async def analyze_with_ai(self, caption: str) -> CaptionAnalysis:
        """
        Raises:
            CaptionAnalysisError: The AI call failed or returned unusable JSON
        """
        if self.claude is None:
            raise CaptionAnalysisError("No AI client configured")

        try:
            data = await self.claude.call_json(
                CaptionAnalysisPrompt.build(caption), max_tokens=CaptionAnalysisPrompt.MAX_TOKENS
            )
        except Exception as e:
            raise CaptionAnalysisError(f"Caption analysis call failed: {e}") from e

        return parse_caption_analysis(data)

    async def analyze(self, caption: Optional[str]) -> Optional[CaptionAnalysis]:
        """
        Analyze a caption; returns None when there is no caption text
        """
        if not caption or not caption.strip():
            return None

        try:
            analysis = await self.analyze_with_ai(caption)
            logger.info(f"✅ [CAPTION] AI analysis: {len(analysis.key_points)} key points, "
                        f"{len(analysis.hashtags)} hashtags")
            return analysis
        except CaptionAnalysisError as e:
            logger.warning(f"⚠️ [CAPTION] {e}; using regex fallback")

        analysis = analyze_caption_with_regex(caption)
        logger.info(f"✅ [CAPTION] Regex analysis: {len(analysis.hashtags)} hashtags, "
                    f"{len(analysis.urls)} urls")
        return analysis
