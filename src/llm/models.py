# src/llm/models.py - v2
"""LLM-specific types: ChatMessage, image attachments, ChatOptions, provider metadata."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal, Union

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from pagedigest.llm.cancellation import CancellationToken


class Base64Image(BaseModel):
    """Inline image payload, already base64-encoded."""

    model_config = ConfigDict(frozen=True)

    base64: str
    mime_type: str


class UrlImage(BaseModel):
    """Remote image reference. Not every provider accepts this form."""

    model_config = ConfigDict(frozen=True)

    url: str


ImageAttachment = Union[Base64Image, UrlImage]


class ChatMessage(BaseModel):
    """Single message in a conversation."""

    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str
    images: tuple[ImageAttachment, ...] = ()


class ChatOptions:
    """Per-call options.

    Plain class rather than a pydantic model because it carries a live
    cancellation token.
    """

    __slots__ = ("temperature", "max_tokens", "json_mode", "cancellation_token")

    def __init__(
        self,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
        cancellation_token: CancellationToken | None = None,
    ) -> None:
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.json_mode = json_mode
        self.cancellation_token = cancellation_token

    def __repr__(self) -> str:
        return (
            f"ChatOptions(temperature={self.temperature!r}, max_tokens={self.max_tokens!r}, "
            f"json_mode={self.json_mode!r})"
        )


class ProviderDefinition(BaseModel):
    """Static description of a registered provider."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    default_endpoint: str
    default_context_window: int
    requires_api_key: bool = True
    api_key_url: str | None = None
