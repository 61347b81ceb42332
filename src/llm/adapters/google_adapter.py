# src/llm/adapters/google_adapter.py - v2
"""Google Gemini adapter implementing BaseLLMClient.

Gemini only knows the ``user`` and ``model`` roles, takes system prompts
through ``systemInstruction`` and accepts images only as inline data.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from pagedigest.llm.base_client import BaseLLMClient, first_text
from pagedigest.llm.models import Base64Image, ChatMessage, ChatOptions

logger = logging.getLogger(__name__)


class GoogleAdapter(BaseLLMClient):
    """Google Gemini adapter."""

    # Gemini SSE streams have no terminator line.
    stream_sentinel = None

    @property
    def default_provider_id(self) -> str:
        return "google"

    @property
    def default_endpoint(self) -> str:
        return "https://generativelanguage.googleapis.com"

    @property
    def supports_image_urls(self) -> bool:
        return False

    def _build_request(
        self,
        messages: Sequence[ChatMessage],
        options: ChatOptions,
        stream: bool,
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        system_instruction, contents = self._convert_messages(messages)

        gen_config: dict[str, Any] = {
            "temperature": self._temperature(options),
            "maxOutputTokens": self._max_tokens(options),
        }
        if options.json_mode:
            gen_config["responseMimeType"] = "application/json"

        body: dict[str, Any] = {"contents": contents, "generationConfig": gen_config}
        if system_instruction is not None:
            body["systemInstruction"] = system_instruction

        method = "streamGenerateContent?alt=sse" if stream else "generateContent"
        url = f"{self._endpoint}/v1beta/models/{self._model}:{method}"
        headers = {"Content-Type": "application/json", "x-goog-api-key": self._api_key}
        return url, headers, body

    def _extract_text(self, data: dict[str, Any]) -> str:
        return first_text(data, "candidates", 0, "content", "parts", 0, "text")

    def _extract_delta(self, event: dict[str, Any]) -> str | None:
        return first_text(event, "candidates", 0, "content", "parts", 0, "text") or None

    @staticmethod
    def _convert_messages(
        messages: Sequence[ChatMessage],
    ) -> tuple[dict[str, Any] | None, list[dict[str, Any]]]:
        system_parts: list[dict[str, str]] = []
        contents: list[dict[str, Any]] = []

        for m in messages:
            if m.role == "system":
                system_parts.append({"text": m.content})
                continue

            parts: list[dict[str, Any]] = [{"text": m.content}]
            for img in m.images:
                if isinstance(img, Base64Image):
                    parts.append({"inlineData": {"mimeType": img.mime_type, "data": img.base64}})
                else:
                    logger.debug("Dropping URL image: Gemini accepts inline data only")
            contents.append({"role": "model" if m.role == "assistant" else "user", "parts": parts})

        system_instruction = {"parts": system_parts} if system_parts else None
        return system_instruction, contents
