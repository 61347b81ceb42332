# src/summarizer/json_repair.py - v1
"""Repair the JSON mistakes LLMs commonly make.

Handles trailing commas, raw control characters inside strings and
unescaped double quotes inside string values. The scan is string-aware,
so it leaves already-valid JSON byte-for-byte unchanged.
"""

from __future__ import annotations

import json
from typing import Any

_WHITESPACE = " \t\r\n"
_STRING_TERMINATORS = (":", ",", "}", "]", "")
_CONTROL_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t"}


def _next_significant(s: str, i: int) -> str:
    """First non-whitespace character at or after *i*, '' at end of input."""
    while i < len(s) and s[i] in _WHITESPACE:
        i += 1
    return s[i] if i < len(s) else ""


def repair_json(raw: str) -> str:
    """Return *raw* with trailing commas dropped and string contents escaped."""
    out: list[str] = []
    in_string = False
    i = 0
    n = len(raw)

    while i < n:
        ch = raw[i]

        if not in_string:
            if ch == "," and _next_significant(raw, i + 1) in ("}", "]"):
                i += 1
                continue
            out.append(ch)
            if ch == '"':
                in_string = True
            i += 1
            continue

        if ch == "\\":
            # Keep escape pairs verbatim
            out.append(raw[i:i + 2])
            i += 2
        elif ch == '"':
            # A quote only closes the string when structure follows it
            if _next_significant(raw, i + 1) in _STRING_TERMINATORS:
                out.append('"')
                in_string = False
            else:
                out.append('\\"')
            i += 1
        elif ch in _CONTROL_ESCAPES:
            out.append(_CONTROL_ESCAPES[ch])
            i += 1
        else:
            out.append(ch)
            i += 1

    return "".join(out)


def parse_json_safe(raw: str) -> Any | None:
    """json.loads, falling back to repair_json. None if both fail."""
    try:
        return json.loads(raw)
    except ValueError:
        pass
    try:
        return json.loads(repair_json(raw))
    except ValueError:
        return None


def find_matching_brace(s: str, start: int) -> int:
    """Index of the ``}`` closing the ``{`` at *start*, or -1.

    Braces inside string literals are ignored.
    """
    if start < 0 or start >= len(s) or s[start] != "{":
        return -1

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(s)):
        ch = s[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return -1
