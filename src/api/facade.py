# src/api/facade.py - v2
"""Public API facade: single entry point for page summarization.

Usage:
    from pagedigest.api.facade import create_engine
    engine = create_engine()
    doc = await engine.summarize(content, SummarizeRequest(session_id="tab-7"))
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pagedigest.api.models import SummarizeRequest
from pagedigest.config.settings import Settings
from pagedigest.core.models import PageContent, SummaryDocument
from pagedigest.llm.client_factory import create_client_from_settings
from pagedigest.llm.errors import (
    LLMTextResponse,
    NoContentError,
    PageDigestError,
    SummarizationCancelled,
)
from pagedigest.pipeline.orchestrator import SummaryEngine

if TYPE_CHECKING:
    from pagedigest.images.base_fetcher import BaseImageFetcher
    from pagedigest.llm.cancellation import CancellationRegistry

logger = logging.getLogger(__name__)


def create_engine(
    settings: Settings | None = None,
    image_fetcher: BaseImageFetcher | None = None,
    registry: CancellationRegistry | None = None,
    **client_kwargs: Any,
) -> SummaryEngine:
    """Build a SummaryEngine for the provider configured in *settings*.

    Args:
        settings: Global settings. Loaded from .env if None.
        image_fetcher: Optional image-fetch collaborator.
        registry: Shared cancellation registry (one per process is typical).
        **client_kwargs: Passed to the provider client (e.g. transport).

    Raises:
        UnsupportedProviderError: If the configured provider is unknown.
        MissingAPIKeyError: If the provider needs a key and none is set.
    """
    settings = settings or Settings()
    client = create_client_from_settings(settings, **client_kwargs)
    logger.info("Engine ready: provider=%s, model=%s", client.provider_id, client.model)
    return SummaryEngine(client, settings=settings, image_fetcher=image_fetcher, registry=registry)


async def summarize(
    content: PageContent,
    request: SummarizeRequest | None = None,
    settings: Settings | None = None,
    image_fetcher: BaseImageFetcher | None = None,
) -> SummaryDocument:
    """One-off summarization with a throwaway engine."""
    engine = create_engine(settings, image_fetcher=image_fetcher)
    return await engine.summarize(content, request)


def is_silent(err: BaseException) -> bool:
    """Cancellation is an intentional supersession, never shown to the user."""
    return isinstance(err, SummarizationCancelled)


def user_message(err: BaseException) -> str | None:
    """Text to show the user for *err*, or None when it should be suppressed."""
    if is_silent(err):
        return None
    if isinstance(err, LLMTextResponse):
        return err.text
    if isinstance(err, NoContentError):
        return err.reason
    if isinstance(err, PageDigestError):
        return str(err)
    return f"Summarization failed: {err}"
