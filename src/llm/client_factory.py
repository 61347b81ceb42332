# src/llm/client_factory.py - v3
"""Factory: instantiate an LLM client from a provider id.

Several provider ids share one adapter (every OpenAI-compatible backend
goes through OpenAIAdapter); the registry keeps the per-provider defaults
next to the adapter path.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any

from pagedigest.config.settings import Settings
from pagedigest.llm.base_client import BaseLLMClient
from pagedigest.llm.errors import MissingAPIKeyError, UnsupportedProviderError
from pagedigest.llm.models import ProviderDefinition

logger = logging.getLogger(__name__)

_OPENAI_PATH = "pagedigest.llm.adapters.openai_adapter.OpenAIAdapter"

# Registry of provider id -> (adapter class path, definition).
_PROVIDER_REGISTRY: dict[str, tuple[str, ProviderDefinition]] = {
    "openai": (
        _OPENAI_PATH,
        ProviderDefinition(
            id="openai",
            name="OpenAI",
            default_endpoint="https://api.openai.com",
            default_context_window=128_000,
            api_key_url="https://platform.openai.com/api-keys",
        ),
    ),
    "anthropic": (
        "pagedigest.llm.adapters.anthropic_adapter.AnthropicAdapter",
        ProviderDefinition(
            id="anthropic",
            name="Anthropic",
            default_endpoint="https://api.anthropic.com",
            default_context_window=200_000,
            api_key_url="https://console.anthropic.com/settings/keys",
        ),
    ),
    "google": (
        "pagedigest.llm.adapters.google_adapter.GoogleAdapter",
        ProviderDefinition(
            id="google",
            name="Google Gemini",
            default_endpoint="https://generativelanguage.googleapis.com",
            default_context_window=1_000_000,
            api_key_url="https://aistudio.google.com/apikey",
        ),
    ),
    "xai": (
        _OPENAI_PATH,
        ProviderDefinition(
            id="xai",
            name="xAI (Grok)",
            default_endpoint="https://api.x.ai",
            default_context_window=131_072,
            api_key_url="https://console.x.ai",
        ),
    ),
    "deepseek": (
        _OPENAI_PATH,
        ProviderDefinition(
            id="deepseek",
            name="DeepSeek",
            default_endpoint="https://api.deepseek.com",
            default_context_window=64_000,
            api_key_url="https://platform.deepseek.com/api_keys",
        ),
    ),
    "openrouter": (
        _OPENAI_PATH,
        ProviderDefinition(
            id="openrouter",
            name="OpenRouter",
            default_endpoint="https://openrouter.ai/api",
            default_context_window=128_000,
            api_key_url="https://openrouter.ai/keys",
        ),
    ),
    "self-hosted": (
        _OPENAI_PATH,
        ProviderDefinition(
            id="self-hosted",
            name="Self-hosted",
            default_endpoint="http://localhost:11434",
            default_context_window=8_192,
            requires_api_key=False,
        ),
    ),
}


def create_llm_client(
    provider: str,
    model: str,
    api_key: str = "",
    endpoint: str | None = None,
    **kwargs: Any,
) -> BaseLLMClient:
    """Instantiate the correct adapter from a provider id.

    Args:
        provider: Provider identifier (openai, anthropic, google, xai, ...).
        model: Model name (e.g. gpt-4o).
        api_key: Provider API key.
        endpoint: Base URL override. Defaults to the provider's endpoint.
        **kwargs: Passed through to the adapter (timeout_s, transport).

    Raises:
        UnsupportedProviderError: If provider is not registered.
        MissingAPIKeyError: If the provider needs a key and none was given.
    """
    class_path, definition = _lookup(provider)
    if definition.requires_api_key and not api_key:
        raise MissingAPIKeyError(
            f"Please configure an API key for {definition.name}"
        )

    adapter_cls = _import_class(class_path)
    logger.debug("Creating LLM client: provider=%s, model=%s", provider, model)
    return adapter_cls(
        model=model,
        api_key=api_key,
        endpoint=endpoint or definition.default_endpoint,
        provider_id=definition.id,
        provider_name=definition.name,
        **kwargs,
    )


def create_client_from_settings(settings: Settings, **kwargs: Any) -> BaseLLMClient:
    """Build the client configured by *settings*."""
    return create_llm_client(
        provider=settings.llm_provider,
        model=settings.llm_model,
        api_key=settings.api_key_for(settings.llm_provider),
        endpoint=settings.llm_endpoint or None,
        timeout_s=settings.request_timeout_s,
        **kwargs,
    )


def get_provider_definition(provider: str) -> ProviderDefinition:
    """Return the static definition of a registered provider."""
    return _lookup(provider)[1]


def list_providers() -> list[ProviderDefinition]:
    return [definition for _, definition in _PROVIDER_REGISTRY.values()]


def register_provider(definition: ProviderDefinition, class_path: str) -> None:
    """Register a custom provider adapter.

    Args:
        definition: Provider metadata (id, display name, defaults).
        class_path: Fully qualified class path implementing BaseLLMClient.
    """
    _PROVIDER_REGISTRY[definition.id] = (class_path, definition)
    logger.info("Registered LLM provider: %s -> %s", definition.id, class_path)


def _lookup(provider: str) -> tuple[str, ProviderDefinition]:
    try:
        return _PROVIDER_REGISTRY[provider]
    except KeyError:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        ) from None


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
