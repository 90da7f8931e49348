"""Prompt builders for archetype similarity scoring and label synthesis."""

from __future__ import annotations

from huzzology.schemas.classification import Archetype, ContentItem

SYSTEM_PROMPT = (
    "You are an expert in identifying and naming emerging cultural trends, aesthetics, "
    "and archetypes in pop culture. Focus on visual elements, language patterns, themes, "
    "and cultural context."
)


def _format_samples(samples: list[ContentItem], text_truncation: int) -> str:
    blocks = []
    for i, item in enumerate(samples, 1):
        text = item.text or ""
        if len(text) > text_truncation:
            text = text[:text_truncation] + "..."
        blocks.append(
            f"[{i}] CONTENT: {text}\n"
            f"    CAPTION: {item.caption or ''}\n"
            f"    HASHTAGS: {', '.join(item.hashtags)}"
        )
    return "\n\n".join(blocks)


def build_similarity_prompt(
    samples: list[ContentItem],
    archetype: Archetype,
    text_truncation: int = 500,
) -> str:
    return f"""Analyze these content samples:

{_format_samples(samples, text_truncation)}

Compare them to this existing archetype:
NAME: {archetype.label}
DESCRIPTION: {archetype.description}
KEYWORDS: {', '.join(archetype.keywords)}

Score their similarity from 0.0 to 1.0 where:
- 1.0 means the samples perfectly match the existing archetype
- 0.0 means they are completely unrelated

Return ONLY the numerical score as a decimal between 0 and 1."""


def build_label_prompt(
    samples: list[ContentItem],
    text_truncation: int = 500,
    keywords_min: int = 5,
    keywords_max: int = 10,
) -> str:
    return f"""Based on these {len(samples)} content examples, identify and name the cultural archetype or aesthetic they represent:

{_format_samples(samples, text_truncation)}

Generate a concise name for this archetype, a one-paragraph description, and {keywords_min}-{keywords_max} keywords or hashtags that define it.
Return a JSON object with fields "label", "description" and "keywords" (array of strings).
No preamble, no markdown fencing."""
