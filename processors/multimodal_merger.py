"""
Multimodal Merger

Combines the audio transcript, per-frame OCR text and caption metadata into
one text blob. Section order is fixed: audio, then visual, then metadata.
A modality with no text is left out entirely.
"""

import logging
from typing import List, Optional

from core.models import MergedText, ModalityText

logger = logging.getLogger(__name__)

SECTION_SEPARATOR = "\n\n---\n\n"


def _format_seconds(timestamp: Optional[float]) -> str:
    if timestamp is None:
        return "?"
    return f"{timestamp:.1f}".rstrip('0').rstrip('.')


def merge_modalities(transcript: Optional[str], frame_texts: List[ModalityText],
                     caption: Optional[str] = None, description: Optional[str] = None) -> MergedText:
    """
    Merge the three modalities into one canonical text

    Args:
        transcript: Audio transcript text
        frame_texts: Visual ModalityTexts (any order; sorted by timestamp here)
        caption: Post caption
        description: Additional description (e.g. title) when it differs from the caption

    Returns:
        MergedText with the merged blob and per-modality presence flags
    """
    transcript = (transcript or "").strip()
    visual = sorted(
        (item for item in frame_texts if item.text and item.text.strip()),
        key=lambda item: item.timestamp if item.timestamp is not None else float('inf')
    )
    caption = (caption or "").strip()
    description = (description or "").strip()
    if description and caption and description in caption:
        description = ""

    sections = []
    if transcript:
        sections.append(f"AUDIO TRANSCRIPT:\n{transcript}")

    if visual:
        formatted = "\n\n".join(
            f"[Frame at {_format_seconds(item.timestamp)}s]\n{item.text.strip()}" for item in visual
        )
        sections.append(f"VISUAL TEXT (from {len(visual)} frames):\n{formatted}")

    if caption:
        sections.append(f"INSTAGRAM CAPTION:\n{caption}")

    if description:
        sections.append(f"DESCRIPTION:\n{description}")

    merged = MergedText(
        text=SECTION_SEPARATOR.join(sections),
        has_audio_transcript=bool(transcript),
        has_visual_text=bool(visual),
        has_metadata=bool(caption or description),
    )
    logger.info(
        f"🔗 [MERGE] {len(merged.text)} chars from "
        f"{', '.join(merged.sources) or 'no sources'} ({len(visual)} frames)"
    )
    return merged


def create_multimodal_prompt(merged: MergedText, visual_frame_count: Optional[int] = None) -> str:
    """Prefix merged text with a source inventory and source-priority instructions"""
    if visual_frame_count is None:
        visual_frame_count = merged.text.count("[Frame at ")

    lines = [
        "You are analyzing content from MULTIPLE sources. Pay attention to what information comes from which source:",
        "",
        "✓ AUDIO: What was spoken/narrated" if merged.has_audio_transcript else "✗ No audio transcript",
        f"✓ VISUAL: Text shown on screen ({visual_frame_count} frames)" if merged.has_visual_text
        else "✗ No visual text",
        "✓ METADATA: Instagram caption/description" if merged.has_metadata else "✗ No metadata",
        "",
        "CRITICAL INSTRUCTIONS:",
        "1. Prioritize VISUAL TEXT for specific names, lists, URLs, and numbers",
        "2. Use AUDIO for context, explanations, and narrative",
        "3. If audio mentions tools generically but the screen shows names, use the on-screen names",
        "4. Extract every named tool, website, product and person from visual text",
        "5. Preserve lists and structured information exactly as shown on screen",
        "",
        "---",
        "",
        merged.text,
        "",
        "---",
    ]
    return "\n".join(lines)
