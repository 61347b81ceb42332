# src/chunking/chunker.py - v3
"""Context-window chunking for oversized pages.

Splits text into contiguous slices that each fit the character budget
derived from the model's context window. Cuts prefer paragraph breaks,
then sentence ends, then whitespace. Chunks are never trimmed or joined
with separators, so ``"".join(chunks) == text`` always holds.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4
# Share of the context window given to page text; the rest covers the
# system prompt, instructions, rolling summary and the reply.
CONTENT_FRACTION = 0.5
MIN_CHUNK_CHARS = 1000

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_SENTENCE_END = re.compile(r"[.!?。！？][\"'”’)\]]*(?=\s)\s*|\n")
_WHITESPACE = re.compile(r"\s+")


def max_chunk_chars(context_window: int) -> int:
    """Character budget for one chunk given a context window in tokens."""
    return max(MIN_CHUNK_CHARS, int(context_window * CONTENT_FRACTION * CHARS_PER_TOKEN))


def chunk_content(text: str, context_window: int) -> list[str]:
    """Split page text for a model with *context_window* tokens."""
    chunks = split_text(text, max_chunk_chars(context_window))
    if len(chunks) > 1:
        logger.info(
            "Split %d chars into %d chunks (budget %d chars)",
            len(text), len(chunks), max_chunk_chars(context_window),
        )
    return chunks


def split_text(text: str, max_chars: int) -> list[str]:
    """Split *text* into slices of at most *max_chars* characters.

    Returns ``[text]`` when it already fits (including empty text).
    Otherwise the chunk count is fixed at ``ceil(len(text) / max_chars)``
    and each cut aims at an even share of what is left, so a page just
    over a multiple of the budget never ends with a sliver chunk.
    """
    if max_chars < 1:
        raise ValueError("max_chars must be >= 1")
    if len(text) <= max_chars:
        return [text]

    chunks: list[str] = []
    pos = 0
    while len(text) - pos > max_chars:
        end = _find_cut(text, pos, max_chars)
        chunks.append(text[pos:end])
        pos = end
    chunks.append(text[pos:])
    return chunks


def _find_cut(text: str, start: int, max_chars: int) -> int:
    """Cut position for the chunk starting at *start*.

    Candidate cuts are confined to lengths that leave a remainder fitting
    in the other chunks and that are above half the budget. Among those,
    the boundary nearest the even share wins, paragraph breaks before
    sentence ends before whitespace. Without a boundary the cut is hard,
    at the even share.
    """
    remaining = len(text) - start
    pieces = -(-remaining // max_chars)
    target = -(-remaining // pieces)
    lowest = max(remaining - (pieces - 1) * max_chars, max_chars // 2 + 1)

    window = text[start:start + max_chars]
    for pattern in (_PARAGRAPH_BREAK, _SENTENCE_END, _WHITESPACE):
        cut = _nearest_match_end(pattern, window, lowest, target)
        if cut is not None:
            return start + cut
    return start + target


def _nearest_match_end(
    pattern: re.Pattern[str], window: str, lowest: int, target: int,
) -> int | None:
    best = None
    for match in pattern.finditer(window):
        end = match.end()
        if end < lowest:
            continue
        if best is None or abs(end - target) < abs(best - target):
            best = end
    return best
