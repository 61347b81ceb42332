# src/llm/adapters/openai_adapter.py - v2
"""OpenAI-compatible chat completions adapter.

Serves OpenAI itself plus every backend that speaks the same protocol
(xAI, DeepSeek, OpenRouter, self-hosted Ollama / LM Studio).
"""

from __future__ import annotations

from typing import Any, Sequence

from pagedigest.llm.base_client import BaseLLMClient, first_text
from pagedigest.llm.models import Base64Image, ChatMessage, ChatOptions, UrlImage


class OpenAIAdapter(BaseLLMClient):
    """Adapter for the ``/v1/chat/completions`` protocol."""

    @property
    def default_provider_id(self) -> str:
        return "openai"

    @property
    def default_endpoint(self) -> str:
        return "https://api.openai.com"

    @property
    def supports_image_urls(self) -> bool:
        return True

    def _token_limit_field(self) -> str:
        # OpenAI's newer models (o-series, gpt-4.1+) reject max_tokens.
        # Compatible third-party servers only understand max_tokens.
        return "max_completion_tokens" if self._provider_id == "openai" else "max_tokens"

    def _build_request(
        self,
        messages: Sequence[ChatMessage],
        options: ChatOptions,
        stream: bool,
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        body: dict[str, Any] = {
            "model": self._model,
            "messages": [self._to_api_message(m) for m in messages],
            "temperature": self._temperature(options),
            self._token_limit_field(): self._max_tokens(options),
            "stream": stream,
        }
        if options.json_mode and not stream:
            body["response_format"] = {"type": "json_object"}

        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        return f"{self._endpoint}/v1/chat/completions", headers, body

    def _extract_text(self, data: dict[str, Any]) -> str:
        return first_text(data, "choices", 0, "message", "content")

    def _extract_delta(self, event: dict[str, Any]) -> str | None:
        return first_text(event, "choices", 0, "delta", "content") or None

    @staticmethod
    def _to_api_message(m: ChatMessage) -> dict[str, Any]:
        if not m.images:
            return {"role": m.role, "content": m.content}

        parts: list[dict[str, Any]] = [{"type": "text", "text": m.content}]
        for img in m.images:
            if isinstance(img, UrlImage):
                url = img.url
            elif isinstance(img, Base64Image):
                url = f"data:{img.mime_type};base64,{img.base64}"
            else:
                continue
            parts.append({"type": "image_url", "image_url": {"url": url}})
        return {"role": m.role, "content": parts}
