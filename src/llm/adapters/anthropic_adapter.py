# src/llm/adapters/anthropic_adapter.py - v3
"""Anthropic Messages API adapter implementing BaseLLMClient.

System prompts travel outside the message list as an array of text
blocks. There is no native JSON mode, so json_mode is left to the prompt.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from pagedigest.llm.base_client import BaseLLMClient
from pagedigest.llm.models import Base64Image, ChatMessage, ChatOptions, UrlImage

logger = logging.getLogger(__name__)

API_VERSION = "2023-06-01"


class AnthropicAdapter(BaseLLMClient):
    """Adapter for Anthropic Claude models."""

    # Streams end when the connection closes after ``message_stop``.
    stream_sentinel = None

    @property
    def default_provider_id(self) -> str:
        return "anthropic"

    @property
    def default_endpoint(self) -> str:
        return "https://api.anthropic.com"

    @property
    def supports_image_urls(self) -> bool:
        return True

    def _build_request(
        self,
        messages: Sequence[ChatMessage],
        options: ChatOptions,
        stream: bool,
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        system_blocks, api_messages = self._split_messages(messages)

        body: dict[str, Any] = {
            "model": self._model,
            "messages": api_messages,
            "max_tokens": self._max_tokens(options),
            "temperature": self._temperature(options),
        }
        if system_blocks:
            body["system"] = system_blocks
        if stream:
            body["stream"] = True

        headers = {
            "Content-Type": "application/json",
            "x-api-key": self._api_key,
            "anthropic-version": API_VERSION,
        }
        return f"{self._endpoint}/v1/messages", headers, body

    def _extract_text(self, data: dict[str, Any]) -> str:
        """Concatenate every text block of the reply."""
        blocks = data.get("content")
        if not isinstance(blocks, list):
            return ""
        return "".join(
            b.get("text", "")
            for b in blocks
            if isinstance(b, dict) and b.get("type") == "text" and isinstance(b.get("text"), str)
        )

    def _extract_delta(self, event: dict[str, Any]) -> str | None:
        if event.get("type") != "content_block_delta":
            return None
        delta = event.get("delta")
        if not isinstance(delta, dict):
            return None
        text = delta.get("text")
        return text if isinstance(text, str) and text else None

    @staticmethod
    def _split_messages(
        messages: Sequence[ChatMessage],
    ) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        """Separate system text blocks from the user/assistant turns."""
        system_blocks: list[dict[str, Any]] = []
        api_messages: list[dict[str, Any]] = []

        for m in messages:
            if m.role == "system":
                system_blocks.append({"type": "text", "text": m.content})
                continue
            if not m.images:
                api_messages.append({"role": m.role, "content": m.content})
                continue

            content_blocks: list[dict[str, Any]] = [{"type": "text", "text": m.content}]
            for img in m.images:
                if isinstance(img, Base64Image):
                    source = {"type": "base64", "media_type": img.mime_type, "data": img.base64}
                elif isinstance(img, UrlImage):
                    source = {"type": "url", "url": img.url}
                else:
                    continue
                content_blocks.append({"type": "image", "source": source})
            api_messages.append({"role": m.role, "content": content_blocks})

        return system_blocks, api_messages
