# tests/integration/conftest.py - v8
"""Shared fixtures for integration tests.

Real adapters talk to a scripted in-process provider through
httpx.MockTransport, so the full request/response path runs without
network access.
"""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest


# ── Scripted provider ───────────────────────────────────────────

def openai_body(text: str) -> dict[str, Any]:
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


def anthropic_body(text: str) -> dict[str, Any]:
    return {"content": [{"type": "text", "text": text}], "stop_reason": "end_turn"}


def google_body(text: str) -> dict[str, Any]:
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


BODY_BUILDERS: dict[str, Callable[[str], dict[str, Any]]] = {
    "openai": openai_body,
    "anthropic": anthropic_body,
    "google": google_body,
}


class ScriptedProvider:
    """MockTransport handler replaying a list of replies.

    Each reply is a text (wrapped in the provider's body shape), an
    ``httpx.Response`` returned as-is, or an exception raised.
    """

    def __init__(self, family: str, replies: list[Any]) -> None:
        self.family = family
        self.replies = list(replies)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.replies:
            return httpx.Response(500, text="script exhausted")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, json=BODY_BUILDERS[self.family](reply))

    @property
    def bodies(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def scripted_provider():
    """Factory: scripted_provider(family, replies) -> ScriptedProvider."""
    return ScriptedProvider
