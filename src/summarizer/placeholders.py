# src/summarizer/placeholders.py - v1
"""Placeholder tokens the model writes instead of long URLs.

  {{IMG_n}}      n-th attached image (1-based)
  {{VIDEO_URL}}  YouTube page URL without timestamp parameters
  {{FILE_n}}     n-th file of a GitHub page's FILE_MAP comment

Tokens are substituted only after a structured document is produced.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Sequence

from pagedigest.core.models import ImageRef, PageContent, ProsAndCons, SummaryDocument

logger = logging.getLogger(__name__)

Replacement = tuple[str, str]

_TIMESTAMP_PARAM = re.compile(r"[&?]t=\d+s?")
_FILE_MAP = re.compile(r"<!-- FILE_MAP: (\{.*?\}) -->")

# Text-bearing scalar fields; language codes and attribution are left alone.
_TEXT_FIELDS = (
    "tldr",
    "summary",
    "conclusion",
    "fact_check",
    "translated_title",
    "inferred_title",
    "inferred_author",
)
_LIST_FIELDS = ("key_takeaways", "notable_quotes", "related_topics", "tags", "comments_highlights")


def build_placeholders(content: PageContent, image_refs: Sequence[ImageRef] = ()) -> list[Replacement]:
    """Collect (token, value) pairs available for *content*."""
    replacements: list[Replacement] = [
        (f"{{{{IMG_{i}}}}}", ref.url) for i, ref in enumerate(image_refs, start=1)
    ]

    if content.type == "youtube" and content.url:
        replacements.append(("{{VIDEO_URL}}", _TIMESTAMP_PARAM.sub("", content.url)))

    if content.type == "github":
        match = _FILE_MAP.search(content.content)
        if match:
            try:
                file_map = json.loads(match.group(1))
            except ValueError:
                logger.debug("Ignoring malformed FILE_MAP comment")
            else:
                if isinstance(file_map, dict):
                    replacements.extend(
                        (f"{{{{FILE_{n}}}}}", url)
                        for n, url in file_map.items()
                        if isinstance(url, str)
                    )
    return replacements


def replace_in_text(text: str, replacements: Sequence[Replacement]) -> str:
    for token, value in replacements:
        text = text.replace(token, value)
    return text


def replace_placeholders(doc: SummaryDocument, replacements: Sequence[Replacement]) -> SummaryDocument:
    """Return a copy of *doc* with every token substituted in every text field."""
    if not replacements:
        return doc

    def r(text: str) -> str:
        return replace_in_text(text, replacements)

    def ra(items: list[str]) -> list[str]:
        return [r(item) for item in items]

    update: dict[str, object] = {}
    for name in _TEXT_FIELDS:
        value = getattr(doc, name)
        if value is not None:
            update[name] = r(value)
    for name in _LIST_FIELDS:
        value = getattr(doc, name)
        if value is not None:
            update[name] = ra(value)
    if doc.pros_and_cons is not None:
        update["pros_and_cons"] = ProsAndCons(
            pros=ra(doc.pros_and_cons.pros), cons=ra(doc.pros_and_cons.cons),
        )
    if doc.extra_sections is not None:
        update["extra_sections"] = {r(title): r(body) for title, body in doc.extra_sections.items()}
    return doc.model_copy(update=update)
