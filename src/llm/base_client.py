# src/llm/base_client.py - v3
"""Abstract LLM client interface plus the shared HTTP plumbing.

Adapters only describe their wire format (request shape, response text
location, stream delta location). Sending, timeouts, cancellation and
stream decoding live here so every provider behaves the same way at the
network boundary. Clients never retry.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Sequence

import httpx

from pagedigest.llm.errors import (
    PageDigestError,
    ProviderConnectionError,
    ProviderHTTPError,
    ProviderResponseError,
    RequestTimeoutError,
)
from pagedigest.llm.models import ChatMessage, ChatOptions
from pagedigest.llm.sse import DONE_SENTINEL, iter_sse_json

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 90.0
DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 4096


class BaseLLMClient(ABC):
    """Unified interface for all LLM providers."""

    #: Value of the ``data:`` line that terminates a stream, if any.
    stream_sentinel: str | None = DONE_SENTINEL

    def __init__(
        self,
        model: str,
        api_key: str = "",
        endpoint: str | None = None,
        provider_id: str | None = None,
        provider_name: str | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._endpoint = (endpoint or self.default_endpoint).rstrip("/")
        self._provider_id = provider_id or self.default_provider_id
        self._provider_name = provider_name or self._provider_id
        self._timeout_s = timeout_s
        self._transport = transport

    # --- Identity ---

    @property
    @abstractmethod
    def default_provider_id(self) -> str:
        """Provider identifier used when none is passed to the constructor."""

    @property
    @abstractmethod
    def default_endpoint(self) -> str:
        """Base URL used when none is configured."""

    @property
    @abstractmethod
    def supports_image_urls(self) -> bool:
        """Whether remote image URLs can be sent as-is."""

    @property
    def provider_id(self) -> str:
        return self._provider_id

    @property
    def provider_name(self) -> str:
        return self._provider_name

    @property
    def model(self) -> str:
        return self._model

    # --- Wire format (per family) ---

    @abstractmethod
    def _build_request(
        self,
        messages: Sequence[ChatMessage],
        options: ChatOptions,
        stream: bool,
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        """Return (url, headers, json body) for one chat call."""

    @abstractmethod
    def _extract_text(self, data: dict[str, Any]) -> str:
        """Pull the reply text out of a complete response body."""

    @abstractmethod
    def _extract_delta(self, event: dict[str, Any]) -> str | None:
        """Pull the incremental text out of one stream event."""

    # --- Public API ---

    async def send_chat(
        self,
        messages: Sequence[ChatMessage],
        options: ChatOptions | None = None,
    ) -> str:
        """Issue one chat completion and return the full reply text."""
        options = options or ChatOptions()
        token = options.cancellation_token
        if token is not None:
            token.raise_if_cancelled()

        url, headers, body = self._build_request(messages, options, stream=False)
        logger.debug(
            "%s request: model=%s messages=%d json_mode=%s",
            self._provider_id, self._model, len(messages), options.json_mode,
        )

        call = self._post_with_timeout(url, headers, body)
        data = await (token.run(call) if token is not None else call)
        return self._extract_text(data)

    async def stream_chat(
        self,
        messages: Sequence[ChatMessage],
        options: ChatOptions | None = None,
    ) -> AsyncIterator[str]:
        """Issue one streaming chat completion and yield text deltas."""
        options = options or ChatOptions()
        token = options.cancellation_token
        if token is not None:
            token.raise_if_cancelled()

        url, headers, body = self._build_request(messages, options, stream=True)
        try:
            async with self._http_client() as client:
                async with client.stream("POST", url, headers=headers, json=body) as response:
                    if not response.is_success:
                        raw = await response.aread()
                        raise ProviderHTTPError(
                            self._provider_name,
                            response.status_code,
                            raw.decode("utf-8", errors="replace"),
                        )
                    events = iter_sse_json(response.aiter_text(), self.stream_sentinel)
                    try:
                        while True:
                            read = _next_event(events)
                            event = await (token.run(read) if token is not None else read)
                            if event is None:
                                break
                            delta = self._extract_delta(event)
                            if delta:
                                if token is not None:
                                    token.raise_if_cancelled()
                                yield delta
                    finally:
                        await events.aclose()
            # A token that fired after the last delta still ends the stream as cancelled
            if token is not None:
                token.raise_if_cancelled()
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(self._provider_name, self._timeout_s) from exc
        except httpx.TransportError as exc:
            raise ProviderConnectionError(f"{self._provider_name} stream failed: {exc}") from exc

    async def test_connection(self) -> bool:
        """Send a trivial prompt. Any failure counts as not connected."""
        try:
            reply = await self.send_chat(
                [ChatMessage(role="user", content='Reply with "ok"')],
                ChatOptions(max_tokens=10),
            )
        except PageDigestError as exc:
            logger.warning("Connection test failed for %s: %s", self._provider_id, exc)
            return False
        return len(reply) > 0

    # --- Internal helpers ---

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout_s, transport=self._transport)

    def _temperature(self, options: ChatOptions) -> float:
        return DEFAULT_TEMPERATURE if options.temperature is None else options.temperature

    def _max_tokens(self, options: ChatOptions) -> int:
        return DEFAULT_MAX_TOKENS if options.max_tokens is None else options.max_tokens

    async def _post_with_timeout(
        self, url: str, headers: dict[str, str], body: dict[str, Any],
    ) -> dict[str, Any]:
        try:
            return await asyncio.wait_for(self._post(url, headers, body), self._timeout_s)
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise RequestTimeoutError(self._provider_name, self._timeout_s) from exc

    async def _post(
        self, url: str, headers: dict[str, str], body: dict[str, Any],
    ) -> dict[str, Any]:
        try:
            async with self._http_client() as client:
                response = await client.post(url, headers=headers, json=body)
        except httpx.TimeoutException:
            raise
        except httpx.TransportError as exc:
            raise ProviderConnectionError(f"{self._provider_name} request failed: {exc}") from exc

        if not response.is_success:
            raise ProviderHTTPError(self._provider_name, response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderResponseError(
                f"{self._provider_name} returned a non-JSON body: {response.text[:200]}"
            ) from exc
        if not isinstance(data, dict):
            raise ProviderResponseError(f"{self._provider_name} returned {type(data).__name__}, expected object")
        return data


async def _next_event(events: AsyncIterator[dict[str, Any]]) -> dict[str, Any] | None:
    """Next decoded stream event, None once the stream is exhausted."""
    try:
        return await events.__anext__()
    except StopAsyncIteration:
        return None


def first_text(value: Any, *path: Any) -> str:
    """Walk *path* through nested dicts/lists, returning "" when anything is missing."""
    current = value
    for key in path:
        try:
            current = current[key]
        except (KeyError, IndexError, TypeError):
            return ""
    return current if isinstance(current, str) else ""
