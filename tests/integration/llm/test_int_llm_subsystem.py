# tests/integration/llm/test_int_llm_subsystem.py - v3
"""Integration tests for the LLM subsystem.

Covers: llm/client_factory.py, llm/base_client.py, llm/adapters/*, llm/sse.py,
        llm/cancellation.py

Streams are served in small, misaligned byte slices to exercise line
buffering the way real network reads do.
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from pagedigest.llm.cancellation import CancellationRegistry
from pagedigest.llm.client_factory import create_llm_client
from pagedigest.llm.errors import SummarizationCancelled
from pagedigest.llm.models import ChatMessage, ChatOptions

MESSAGES = [
    ChatMessage(role="system", content="Be brief."),
    ChatMessage(role="user", content="Say hello."),
]


class SlicedStream(httpx.AsyncByteStream):
    """Response body delivered in fixed-size slices."""

    def __init__(self, payload: str, size: int = 7) -> None:
        self._data = payload.encode("utf-8")
        self._size = size

    async def __aiter__(self):
        for i in range(0, len(self._data), self._size):
            yield self._data[i:i + self._size]


def _streaming(payload: str) -> httpx.MockTransport:
    return httpx.MockTransport(
        lambda request: httpx.Response(
            200, headers={"content-type": "text/event-stream"}, stream=SlicedStream(payload),
        )
    )


STREAMS = {
    "openai": (
        'data: {"choices": [{"delta": {"role": "assistant"}}]}\n\n'
        'data: {"choices": [{"delta": {"content": "Hello"}}]}\n\n'
        ": keep-alive\n\n"
        'data: {"choices": [{"delta": {"content": ", world"}}]}\n\n'
        "data: [DONE]\n\n"
    ),
    "anthropic": (
        "event: message_start\n"
        'data: {"type": "message_start", "message": {}}\n\n'
        "event: content_block_delta\n"
        'data: {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Hello"}}\n\n'
        "event: content_block_delta\n"
        'data: {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": ", world"}}\n\n'
        "event: message_stop\n"
        'data: {"type": "message_stop"}\n\n'
    ),
    "google": (
        'data: {"candidates": [{"content": {"parts": [{"text": "Hello"}]}}]}\r\n\r\n'
        'data: {"candidates": [{"content": {"parts": [{"text": ", world"}]}}]}\r\n\r\n'
    ),
}


class TestStreaming:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("provider", ["openai", "anthropic", "google"])
    async def test_deltas_reassembled(self, provider):
        client = create_llm_client(provider, "m", api_key="k", transport=_streaming(STREAMS[provider]))
        text = "".join([delta async for delta in client.stream_chat(MESSAGES)])
        assert text == "Hello, world"

    @pytest.mark.asyncio
    async def test_self_hosted_stream_without_key(self):
        client = create_llm_client("self-hosted", "llama3", transport=_streaming(STREAMS["openai"]))
        assert [d async for d in client.stream_chat(MESSAGES)] == ["Hello", ", world"]

    @pytest.mark.asyncio
    async def test_cancel_stops_stream(self):
        registry = CancellationRegistry()
        token = registry.begin("tab-7")
        client = create_llm_client("openai", "m", api_key="k", transport=_streaming(STREAMS["openai"]))

        received = []
        with pytest.raises(SummarizationCancelled):
            async for delta in client.stream_chat(MESSAGES, ChatOptions(cancellation_token=token)):
                received.append(delta)
                registry.begin("tab-7")
        assert received == ["Hello"]


class TestSessionSupersession:
    @pytest.mark.asyncio
    async def test_second_request_cancels_first_call(self):
        gate = asyncio.Event()

        async def handler(request):
            await gate.wait()
            return httpx.Response(200, json={"choices": [{"message": {"content": "late"}}]})

        client = create_llm_client("openai", "m", api_key="k", transport=httpx.MockTransport(handler))
        registry = CancellationRegistry()

        first_token = registry.begin("tab-7")
        first = asyncio.create_task(client.send_chat(MESSAGES, ChatOptions(cancellation_token=first_token)))
        await asyncio.sleep(0.01)
        registry.begin("tab-7")

        with pytest.raises(SummarizationCancelled, match="Superseded"):
            await first
        gate.set()
