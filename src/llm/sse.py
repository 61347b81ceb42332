# src/llm/sse.py - v1
"""Decoder for line-delimited server-sent event streams.

Providers stream chat deltas as ``data: {json}`` lines. Reads from the
network do not align with line boundaries, so partial lines are buffered
until their newline arrives.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterable, AsyncIterator

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


def _data_payload(line: str) -> str | None:
    """Return the payload of a ``data:`` line, None for any other line."""
    stripped = line.strip()
    if not stripped.startswith("data:"):
        return None
    return stripped[5:].lstrip()


async def iter_sse_data(
    chunks: AsyncIterable[str],
    sentinel: str | None = DONE_SENTINEL,
) -> AsyncIterator[str]:
    """Yield raw ``data:`` payloads until *sentinel* or end of stream."""
    buffer = ""
    async for piece in chunks:
        buffer += piece
        lines = buffer.split("\n")
        buffer = lines.pop()
        for line in lines:
            data = _data_payload(line)
            if not data:
                continue
            if sentinel is not None and data == sentinel:
                return
            yield data

    # Stream closed without a trailing newline
    data = _data_payload(buffer)
    if data and data != sentinel:
        yield data


async def iter_sse_json(
    chunks: AsyncIterable[str],
    sentinel: str | None = DONE_SENTINEL,
) -> AsyncIterator[dict[str, Any]]:
    """Yield decoded JSON events, skipping lines that fail to parse."""
    async for data in iter_sse_data(chunks, sentinel):
        try:
            event = json.loads(data)
        except json.JSONDecodeError:
            logger.debug("Skipping malformed stream line: %.80s", data)
            continue
        if isinstance(event, dict):
            yield event
