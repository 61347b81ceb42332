# src/summarizer/refine.py - v1
"""Chat refinement: build the follow-up conversation and merge the model's edits.

The model answers ``{"text": ..., "updates": {...} | null}`` where updates
hold only the summary fields it changed. Older replies may carry a full
``summary`` object, a bare summary, or a fenced / embedded JSON block;
all of these are accepted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

from pagedigest.core.models import FetchedImage, ImageRef, PageContent, SummaryDocument
from pagedigest.llm.models import ChatMessage
from pagedigest.summarizer.json_repair import find_matching_brace, parse_json_safe
from pagedigest.summarizer.parser import (
    coerce_extra_sections,
    coerce_pros_and_cons,
    coerce_str_list,
    coerce_summary,
    strip_code_fence,
)
from pagedigest.summarizer.prompts import build_chat_dynamic_system, build_chat_static_system
from pagedigest.summarizer.summarizer import to_attachments

logger = logging.getLogger(__name__)

DELETE_SENTINEL = "__DELETE__"
TRUNCATION_MARKER = "\n\n[...content truncated...]"
CHAT_CONTENT_FRACTION = 0.6
CHARS_PER_TOKEN = 4

# Set by the engine, never by the model.
APP_MANAGED_FIELDS = frozenset({"llm_provider", "llm_model"})

_STRING_FIELDS = frozenset({
    "tldr", "summary", "conclusion", "fact_check", "source_language", "summary_language",
    "translated_title", "inferred_title", "inferred_author", "inferred_publish_date",
})
_LIST_FIELDS = frozenset({
    "key_takeaways", "notable_quotes", "related_topics", "tags", "comments_highlights",
})

_FIELD_NAMES: dict[str, str] = {}
for _name, _field in SummaryDocument.model_fields.items():
    _FIELD_NAMES[_name] = _name
    if _field.alias:
        _FIELD_NAMES[_field.alias] = _name


@dataclass(frozen=True)
class ChatReply:
    """Model reply to one chat turn.

    ``updates`` maps summary field names to new values; ``None`` as a value
    removes the field. ``updates`` itself is None when nothing changed.
    """

    text: str
    updates: dict[str, Any] | None = None


# === REQUEST ===


def truncate_for_chat(text: str, context_window: int) -> str:
    limit = int(context_window * CHAT_CONTENT_FRACTION * CHARS_PER_TOKEN)
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


def build_chat_messages(
    history: Sequence[ChatMessage],
    summary: SummaryDocument,
    content: PageContent,
    summarization_prompt: str,
    context_window: int,
    images: Sequence[FetchedImage] = (),
) -> list[ChatMessage]:
    """Static system message, dynamic system message, then the conversation.

    Images are attached to the first user message.
    """
    static = build_chat_static_system(
        summarization_prompt, content, truncate_for_chat(content.content, context_window),
    )
    dynamic = build_chat_dynamic_system(
        summary, image_refs=[ImageRef(url=img.url, alt=img.alt) for img in images], has_images=bool(images),
    )
    messages = [
        ChatMessage(role="system", content=static),
        ChatMessage(role="system", content=dynamic),
    ]

    attached = not images
    for message in history:
        if not attached and message.role == "user":
            message = message.model_copy(update={"images": to_attachments(images)})
            attached = True
        messages.append(message)
    return messages


# === REPLY ===


def parse_chat_reply(raw: str) -> ChatReply:
    """Split a chat reply into conversational text and summary updates."""
    data = parse_json_safe(strip_code_fence(raw))
    if isinstance(data, dict):
        if "text" in data:
            text = data["text"] if isinstance(data["text"], str) else ""
            updates = data.get("updates")
            if isinstance(updates, dict) and updates:
                return ChatReply(text, sanitize_updates(updates))
            legacy = data.get("summary")
            if isinstance(legacy, dict) and _is_full_summary(legacy):
                return ChatReply(text, full_replacement(legacy))
            return ChatReply(text)
        if _is_full_summary(data):
            return ChatReply("", full_replacement(data))

    fence = raw.find("```json")
    if fence != -1:
        start = raw.find("{", fence)
        if start != -1:
            end = find_matching_brace(raw, start)
            updates = None
            if end != -1:
                parsed = parse_json_safe(raw[start:end + 1])
                if isinstance(parsed, dict) and _is_full_summary(parsed):
                    updates = full_replacement(parsed)
            close = raw.find("```", end + 1 if end != -1 else fence + 7)
            tail = close + 3 if close != -1 else len(raw)
            return ChatReply((raw[:fence] + raw[tail:]).strip(), updates)

    start = raw.find("{")
    if start != -1:
        end = find_matching_brace(raw, start)
        if end != -1:
            parsed = parse_json_safe(raw[start:end + 1])
            if isinstance(parsed, dict) and _is_full_summary(parsed):
                text = (raw[:start] + raw[end + 1:]).strip()
                return ChatReply(text, full_replacement(parsed))

    return ChatReply(raw)


def sanitize_updates(raw: dict[str, Any]) -> dict[str, Any] | None:
    """Coerce a partial update field by field.

    Unknown keys, wrong-typed values and app-managed fields are dropped.
    ``"__DELETE__"`` becomes ``None`` (remove the field).
    """
    result: dict[str, Any] = {}
    for key, value in raw.items():
        name = _FIELD_NAMES.get(key)
        if name is None or name in APP_MANAGED_FIELDS:
            continue
        if value == DELETE_SENTINEL:
            result[name] = None
        elif name in _STRING_FIELDS:
            if isinstance(value, str):
                result[name] = value
        elif name in _LIST_FIELDS:
            if isinstance(value, list):
                result[name] = coerce_str_list(value)
        elif name == "pros_and_cons":
            pros_and_cons = coerce_pros_and_cons(value)
            if pros_and_cons is not None:
                result[name] = pros_and_cons
        elif name == "extra_sections":
            if isinstance(value, (list, dict)):
                result[name] = coerce_extra_sections(value)
    return result or None


def full_replacement(data: dict[str, Any]) -> dict[str, Any]:
    """Updates that replace every model-owned field with *data*'s values."""
    doc = coerce_summary(data)
    return {
        name: getattr(doc, name)
        for name in SummaryDocument.model_fields
        if name not in APP_MANAGED_FIELDS
    }


def apply_updates(doc: SummaryDocument, updates: dict[str, Any] | None) -> SummaryDocument:
    """Return a new document with *updates* merged into *doc*."""
    if not updates:
        return doc
    merged: dict[str, Any] = {}
    for name, value in updates.items():
        if name in APP_MANAGED_FIELDS or name not in SummaryDocument.model_fields:
            continue
        if value is None:
            field = SummaryDocument.model_fields[name]
            value = "" if field.is_required() else field.get_default(call_default_factory=True)
        merged[name] = value
    logger.debug("Applying summary updates: %s", sorted(merged))
    return doc.model_copy(update=merged)


def _is_full_summary(data: dict[str, Any]) -> bool:
    return bool(data.get("tldr")) and bool(data.get("summary"))
