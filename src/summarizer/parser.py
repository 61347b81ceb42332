# src/summarizer/parser.py - v1
"""Turn a raw model reply into a summary document or a terminal outcome.

The result is a tagged outcome rather than an exception so callers branch
exhaustively on what the model actually did:

  SummaryParsed  - a structured summary was recovered
  TextResponse   - free text (refusal, chat answer): surface it verbatim
  NoContent      - the model says the page has nothing to summarize
  ImageRequest   - the model wants more images before finishing
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Union

from pagedigest.core.models import ProsAndCons, SummaryDocument
from pagedigest.summarizer.json_repair import find_matching_brace, parse_json_safe

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*\n?", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\n?```\s*$")

DEFAULT_NO_SUMMARY_MESSAGE = "OK, feel free to ask questions about the content."
DEFAULT_NO_CONTENT_REASON = "No meaningful content found on this page."


@dataclass(frozen=True)
class SummaryParsed:
    document: SummaryDocument


@dataclass(frozen=True)
class TextResponse:
    text: str


@dataclass(frozen=True)
class NoContent:
    reason: str


@dataclass(frozen=True)
class ImageRequest:
    urls: tuple[str, ...]


ParseOutcome = Union[SummaryParsed, TextResponse, NoContent, ImageRequest]


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ``` / ```json fence if present."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", cleaned, count=1), count=1)
    return cleaned


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Parse *text* as a JSON object, repairing it or digging it out of prose if needed."""
    parsed = parse_json_safe(text)
    if isinstance(parsed, dict):
        return parsed

    start = text.find("{")
    if start == -1:
        return None
    end = find_matching_brace(text, start)
    if end == -1:
        return None
    parsed = parse_json_safe(text[start:end + 1])
    return parsed if isinstance(parsed, dict) else None


def parse_summary_response(raw: str, image_round_trip_eligible: bool = False) -> ParseOutcome:
    """Classify and parse one structured-output reply.

    Args:
        raw: Reply text exactly as returned by the provider.
        image_round_trip_eligible: Whether a ``requestedImages`` field may
            trigger an image round trip. When False it is ignored.
    """
    cleaned = strip_code_fence(raw)
    data = extract_json_object(cleaned)

    if data is None:
        logger.info("Model replied with free text (%d chars)", len(cleaned))
        return TextResponse(cleaned)

    if data.get("noSummary"):
        return TextResponse(_non_empty_str(data.get("message")) or DEFAULT_NO_SUMMARY_MESSAGE)

    if data.get("noContent"):
        return NoContent(_non_empty_str(data.get("reason")) or DEFAULT_NO_CONTENT_REASON)

    if image_round_trip_eligible:
        requested = tuple(coerce_str_list(data.get("requestedImages")))
        if requested:
            logger.info("Model requested %d additional image(s)", len(requested))
            return ImageRequest(requested)

    return SummaryParsed(coerce_summary(data))


def coerce_summary(data: dict[str, Any]) -> SummaryDocument:
    """Build a SummaryDocument, replacing wrong-typed fields with empty values."""
    comments = data.get("commentsHighlights")
    return SummaryDocument(
        tldr=_str(data.get("tldr")),
        key_takeaways=coerce_str_list(data.get("keyTakeaways")),
        summary=_str(data.get("summary")),
        notable_quotes=coerce_str_list(data.get("notableQuotes")),
        conclusion=_str(data.get("conclusion")),
        related_topics=coerce_str_list(data.get("relatedTopics")),
        tags=coerce_str_list(data.get("tags")),
        pros_and_cons=coerce_pros_and_cons(data.get("prosAndCons")),
        fact_check=_non_empty_str(data.get("factCheck")),
        comments_highlights=coerce_str_list(comments) if isinstance(comments, list) else None,
        extra_sections=coerce_extra_sections(data.get("extraSections")),
        source_language=_non_empty_str(data.get("sourceLanguage")),
        summary_language=_non_empty_str(data.get("summaryLanguage")),
        translated_title=_non_empty_str(data.get("translatedTitle")),
        inferred_title=_non_empty_str(data.get("inferredTitle")),
        inferred_author=_non_empty_str(data.get("inferredAuthor")),
        inferred_publish_date=_non_empty_str(data.get("inferredPublishDate")),
    )


def coerce_pros_and_cons(value: Any) -> ProsAndCons | None:
    if not isinstance(value, dict):
        return None
    return ProsAndCons(pros=coerce_str_list(value.get("pros")), cons=coerce_str_list(value.get("cons")))


def coerce_extra_sections(value: Any) -> dict[str, str] | None:
    """Accept ``[{"title", "content"}, ...]`` or a ``{title: content}`` object."""
    sections: dict[str, str] = {}
    if isinstance(value, list):
        for item in value:
            if (
                isinstance(item, dict)
                and isinstance(item.get("title"), str)
                and isinstance(item.get("content"), str)
            ):
                sections[item["title"]] = item["content"]
    elif isinstance(value, dict):
        sections = {k: v for k, v in value.items() if isinstance(v, str)}
    return sections or None


# --- Coercion helpers ---


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _non_empty_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def coerce_str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    items: list[str] = []
    for item in value:
        if isinstance(item, str):
            items.append(item)
        elif isinstance(item, (int, float)) and not isinstance(item, bool):
            items.append(str(item))
    return items
