#!/usr/bin/env python3
"""
Reel Summarizer

Sends the merged multimodal text to Claude and parses the structured
learning summary. Oversized input is cut to MAX_SUMMARY_INPUT_CHARS before
the call. Every failure is a SummarizationError whose reason says why.
"""

import logging
import re
from typing import Any, Dict, List, Optional

import anthropic

from core.claude_client import ClaudeClient, extract_json_from_response
from core.config import Config
from core.errors import SummarizationError, SummarizationFailure
from core.models import Pitfall, QuizQuestion, StructuredSummary
from core.prompts import ReelSummaryPrompt

logger = logging.getLogger(__name__)

MAX_TAGS = 10
TAG_CLEANUP = re.compile(r'[^a-z0-9\-]+')


def truncate_to_budget(text: str, limit: int) -> str:
    """
    Cut text to at most limit characters, preferring a whitespace boundary
    near the end of the budget
    """
    if len(text) <= limit:
        return text
    cut = text[:limit]
    boundary = cut.rfind(' ', max(0, limit - 200))
    if boundary > 0:
        cut = cut[:boundary]
    return cut.rstrip()


def normalize_tags(tags: Any) -> List[str]:
    """Lowercase, strip '#', hyphenate spaces, drop duplicates"""
    if not isinstance(tags, list):
        return []
    normalized = []
    for tag in tags:
        if not isinstance(tag, str):
            continue
        cleaned = TAG_CLEANUP.sub('', tag.strip().lstrip('#').lower().replace(' ', '-')).strip('-')
        if cleaned and cleaned not in normalized:
            normalized.append(cleaned)
    return normalized[:MAX_TAGS]


def _strings(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if isinstance(item, (str, int, float)) and str(item).strip()]


def _quiz(value: Any) -> List[QuizQuestion]:
    questions = []
    for item in value if isinstance(value, list) else []:
        if not isinstance(item, dict) or not item.get('question'):
            continue
        options = _strings(item.get('options'))
        answer = str(item.get('answer') or '').strip()
        if options and answer:
            questions.append(QuizQuestion(question=str(item['question']).strip(), options=options, answer=answer))
    return questions


def _pitfalls(value: Any) -> List[Pitfall]:
    pitfalls = []
    for item in value if isinstance(value, list) else []:
        if isinstance(item, dict) and item.get('pitfall'):
            pitfalls.append(Pitfall(pitfall=str(item['pitfall']).strip(),
                                    solution=str(item.get('solution') or '').strip()))
    return pitfalls


def parse_summary(data: Optional[Dict[str, Any]]) -> StructuredSummary:
    """
    Build a StructuredSummary from model JSON with defaults for optional fields

    Raises:
        SummarizationError: (MALFORMED_RESPONSE) not an object, or no title/summary
    """
    if not isinstance(data, dict):
        raise SummarizationError("Summary response was not valid JSON",
                                 reason=SummarizationFailure.MALFORMED_RESPONSE)

    title = str(data.get('title') or '').strip()
    summary = str(data.get('summary') or '').strip()
    if not title or not summary:
        raise SummarizationError("Summary response is missing title or summary",
                                 reason=SummarizationFailure.MALFORMED_RESPONSE,
                                 details={'keys': sorted(data.keys())})

    glossary = data.get('glossary')
    if isinstance(glossary, list):
        glossary = {
            str(item.get('term')): str(item.get('definition', ''))
            for item in glossary if isinstance(item, dict) and item.get('term')
        }
    elif not isinstance(glossary, dict):
        glossary = {}

    return StructuredSummary(
        title=title,
        summary=summary,
        detailed_explanation=str(data.get('detailed_explanation') or '').strip(),
        key_points=_strings(data.get('key_points')),
        examples=_strings(data.get('examples')),
        related_topics=_strings(data.get('related_topics')),
        actionable_checklist=_strings(data.get('actionable_checklist')),
        quiz_questions=_quiz(data.get('quiz_questions')),
        quick_reference_card=_strings(data.get('quick_reference_card')),
        learning_path=_strings(data.get('learning_path')),
        common_pitfalls=_pitfalls(data.get('common_pitfalls')),
        glossary={str(k): str(v) for k, v in glossary.items()},
        interactive_prompt_suggestions=_strings(data.get('interactive_prompt_suggestions')),
        tags=normalize_tags(data.get('tags')),
        suggested_folder=str(data.get('suggested_folder') or 'General').strip() or 'General',
    )


class Summarizer:
    """Structured summary generation with Claude"""

    def __init__(self, claude_client: ClaudeClient, max_input_chars: int = Config.MAX_SUMMARY_INPUT_CHARS):
        self.claude = claude_client
        self.max_input_chars = max_input_chars

    async def summarize(self, text: str) -> StructuredSummary:
        """
        Summarize merged multimodal text

        Args:
            text: Merged text (optionally with the multimodal preamble)

        Returns:
            StructuredSummary

        Raises:
            SummarizationError: reason is one of EMPTY_INPUT, AUTH_FAILED,
                RATE_LIMITED, SERVICE_ERROR, MALFORMED_RESPONSE
        """
        if not text or not text.strip():
            raise SummarizationError("No content to summarize", reason=SummarizationFailure.EMPTY_INPUT)

        content = text.strip()
        if len(content) > self.max_input_chars:
            logger.warning(
                f"⚠️ [SUMMARY] Input is {len(content)} chars, truncating to {self.max_input_chars}"
            )
            content = truncate_to_budget(content, self.max_input_chars)

        prompt = ReelSummaryPrompt.build(content)
        logger.info(f"🧠 [SUMMARY] Generating summary from {len(content)} chars")

        try:
            response = await self.claude.call_api_async(prompt, max_tokens=ReelSummaryPrompt.MAX_TOKENS)
        except (anthropic.AuthenticationError, anthropic.PermissionDeniedError) as e:
            raise SummarizationError("Summarization service rejected credentials",
                                     reason=SummarizationFailure.AUTH_FAILED) from e
        except anthropic.RateLimitError as e:
            raise SummarizationError("Summarization service rate limit exceeded",
                                     reason=SummarizationFailure.RATE_LIMITED) from e
        except (anthropic.APIError, RuntimeError) as e:
            raise SummarizationError(f"Summarization service failed: {e}",
                                     reason=SummarizationFailure.SERVICE_ERROR) from e

        summary = parse_summary(extract_json_from_response(response))
        logger.info(f"✅ [SUMMARY] \"{summary.title}\" ({len(summary.key_points)} key points, "
                    f"{len(summary.tags)} tags)")
        return summary
