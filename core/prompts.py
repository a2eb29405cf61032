#!/usr/bin/env python3
"""
Prompts for reel analysis

All AI prompts used by the pipeline live here so they can be reviewed and
versioned together. Each prompt class carries the model and token budget it
was written for.
"""

from core.config import Config
from core.models import EntityType


class CaptionAnalysisPrompt:
    """
    Structured extraction from a post caption

    Output: JSON with key points, hashtags, mentions, URLs, calls to action,
    topics, sentiment, importance flag and a one-sentence summary.
    """

    SLUG = "caption-analysis"
    NAME = "Caption Analysis"
    MODEL = Config.CLAUDE_MODEL
    MAX_TOKENS = 1500

    @staticmethod
    def build(caption: str) -> str:
        return f"""Analyze this Instagram caption and extract structured information.

CAPTION:
{caption}

Return ONLY valid JSON in this exact format:
{{
    "key_points": ["Main points or facts stated in the caption"],
    "hashtags": ["#example"],
    "mentions": ["@example"],
    "urls": ["https://example.com"],
    "calls_to_action": ["follow for more"],
    "topics": ["topic"],
    "sentiment": "positive | neutral | negative",
    "has_important_info": true,
    "summary": "One sentence describing what the caption is about"
}}

RULES:
- Copy hashtags, mentions and URLs exactly as written
- key_points should be short, self-contained statements (max 5)
- has_important_info is true when the caption contains facts, links, prices, steps or resources
- Use empty lists when a field has no content
"""


class EntityExtractionPrompt:
    """
    Typed entity extraction from one modality's text

    Output: JSON object with an "entities" list; each entity has a type from
    the fixed vocabulary, the value, and a short context snippet.
    """

    SLUG = "entity-extraction"
    NAME = "Entity Extraction"
    MODEL = Config.CLAUDE_MODEL
    MAX_TOKENS = 2000

    TYPE_DESCRIPTIONS = {
        EntityType.TOOLS_PLATFORMS: "software, apps, AI tools, platforms",
        EntityType.WEBSITES_URLS: "websites, domains, URLs",
        EntityType.BRANDS_PRODUCTS: "brands and physical or digital products",
        EntityType.PEOPLE_ORGS: "people, creators, companies, organizations",
        EntityType.LISTS_SEQUENCES: "items of a numbered or bulleted list",
        EntityType.STEPS_PROCESSES: "steps of a how-to or process",
        EntityType.COMPARISONS: "X vs Y comparisons",
        EntityType.NUMBERS_METRICS: "statistics, percentages, measurements",
        EntityType.PRICES_COSTS: "prices, costs, fees, discounts",
        EntityType.DATES_TIMELINES: "dates, deadlines, durations",
        EntityType.CONTACT_INFO: "emails, phone numbers, handles",
        EntityType.RESOURCES_LINKS: "books, courses, guides, downloadable resources",
        EntityType.RECOMMENDATIONS: "explicit advice or recommendations",
    }

    @staticmethod
    def build(text: str, source_label: str) -> str:
        type_lines = "\n".join(
            f"- {entity_type.value}: {description}"
            for entity_type, description in EntityExtractionPrompt.TYPE_DESCRIPTIONS.items()
        )
        return f"""Extract significant information from the following {source_label} of a short-form video.

TEXT:
{text}

ENTITY TYPES:
{type_lines}

Return ONLY valid JSON in this exact format:
{{
    "entities": [
        {{"type": "tools_platforms", "value": "Notion", "context": "uses Notion to plan the week"}}
    ]
}}

RULES:
- Only use the entity types listed above
- value must be copied from the text, not paraphrased
- context is a short phrase (max 15 words) showing where the value appears
- Return {{"entities": []}} when nothing significant is present
"""


class ReelSummaryPrompt:
    """
    Main prompt that turns merged multimodal text into a study artifact

    Output: JSON with title, summary, explanation, key points, examples,
    checklist, quiz, pitfalls, glossary, tags and a suggested folder.
    """

    SLUG = "reel-summary"
    NAME = "Reel Summary"
    MODEL = Config.CLAUDE_MODEL
    MAX_TOKENS = Config.CLAUDE_MAX_TOKENS

    @staticmethod
    def build(content: str) -> str:
        return f"""{content}

Create a structured learning summary of this short-form video.

Return ONLY valid JSON in this exact format:
{{
    "title": "Concise descriptive title (max 80 chars)",
    "summary": "2-3 sentence overview",
    "detailed_explanation": "Thorough explanation of the content (1-3 paragraphs)",
    "key_points": ["Key point"],
    "examples": ["Concrete example from the video"],
    "related_topics": ["Related topic"],
    "actionable_checklist": ["Action the viewer can take"],
    "quiz_questions": [
        {{"question": "Question?", "options": ["A", "B", "C", "D"], "answer": "A"}}
    ],
    "quick_reference_card": ["Short fact worth remembering"],
    "learning_path": ["What to learn next"],
    "common_pitfalls": [
        {{"pitfall": "Common mistake", "solution": "How to avoid it"}}
    ],
    "glossary": {{"term": "definition"}},
    "interactive_prompt_suggestions": ["Question the viewer could ask an assistant"],
    "tags": ["lowercase-tag"],
    "suggested_folder": "Single folder name such as Tech, Fitness, Finance, Cooking"
}}

RULES:
- Base everything on the provided content; do not invent tools, links or numbers
- Prefer exact names, URLs and prices from on-screen text when sources disagree
- Use empty lists for sections that do not apply
- 3-8 tags, lowercase, no '#'
"""


class FrameOCRPrompt:
    """Prompt for reading on-screen text from one video frame"""

    SLUG = "frame-ocr"
    NAME = "Frame OCR"
    MODEL = Config.OCR_MODEL
    MAX_TOKENS = 1000
    NO_TEXT_MARKER = "No text found"

    @staticmethod
    def build() -> str:
        return f"""Extract ALL visible text from this video frame.

The text may be in English, Hindi (Devanagari) or a mix of both. Include
captions, overlays, titles, UI text, handles and URLs. Preserve line breaks
and the original language; do not translate or describe the image.

If there is no readable text, reply exactly: {FrameOCRPrompt.NO_TEXT_MARKER}"""
