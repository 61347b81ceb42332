# src/pipeline/orchestrator.py - v2
"""Summary engine: the caller-facing orchestrator.

Drives one summarization per call:
  1. Register the run for its session (superseding any stale run)
  2. Collect images (caller-supplied or fetched from candidate refs)
  3. Summarize (one-shot or rolling context, with retries)
  4. Serve at most one image round trip if the model asks for more images
  5. Resolve placeholder tokens and attach provider attribution

Terminal parse outcomes surface as LLMTextResponse / NoContentError.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import TYPE_CHECKING, Sequence

from pagedigest.api.models import SummarizeRequest
from pagedigest.config.settings import Settings
from pagedigest.core.models import FetchedImage, ImageRef, PageContent, SummaryDocument
from pagedigest.llm.cancellation import CancellationRegistry, CancellationToken, SessionId
from pagedigest.llm.client_factory import get_provider_definition
from pagedigest.llm.errors import (
    LLMTextResponse,
    NoContentError,
    SummarizationCancelled,
    UnsupportedProviderError,
)
from pagedigest.llm.models import ChatMessage, ChatOptions
from pagedigest.llm.retry import RetryPolicy
from pagedigest.logging.context import set_phase, set_run_context
from pagedigest.summarizer.parser import ImageRequest, NoContent, SummaryParsed, TextResponse
from pagedigest.summarizer.placeholders import build_placeholders, replace_placeholders
from pagedigest.summarizer.prompts import build_system_prompt
from pagedigest.summarizer.refine import ChatReply, build_chat_messages, parse_chat_reply
from pagedigest.summarizer.summarizer import RunPhase, RunState, Summarizer

if TYPE_CHECKING:
    from pagedigest.images.base_fetcher import BaseImageFetcher
    from pagedigest.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_WINDOW = 8_192


class SummaryEngine:
    """Orchestrates summarization runs and chat refinement for one provider client.

    Args:
        client: Provider client used for every model call.
        settings: Engine limits and default preferences. Loaded from .env if None.
        image_fetcher: Collaborator for candidate and requested images.
            Without one, only caller-supplied images are used.
        registry: Session cancellation registry. A private one is created if None.
    """

    def __init__(
        self,
        client: BaseLLMClient,
        settings: Settings | None = None,
        image_fetcher: BaseImageFetcher | None = None,
        registry: CancellationRegistry | None = None,
    ) -> None:
        self._client = client
        self._settings = settings or Settings()
        self._image_fetcher = image_fetcher
        self._registry = registry or CancellationRegistry()
        self._summarizer = Summarizer(
            client,
            retry_policy=RetryPolicy(
                max_retries=self._settings.max_retries,
                base_delay_s=self._settings.retry_base_delay_s,
            ),
            temperature=self._settings.temperature,
            max_output_tokens=self._settings.max_output_tokens,
            max_comments=self._settings.max_comments,
        )

    @property
    def client(self) -> BaseLLMClient:
        return self._client

    @property
    def registry(self) -> CancellationRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Summarization
    # ------------------------------------------------------------------

    async def summarize(
        self,
        content: PageContent,
        request: SummarizeRequest | None = None,
        state: RunState | None = None,
    ) -> SummaryDocument:
        """Summarize *content* into a complete SummaryDocument.

        Raises:
            LLMTextResponse: The model answered with free text.
            NoContentError: The model found nothing to summarize.
            SummarizationCancelled: The run was cancelled or superseded.
            RequestTimeoutError: A provider call exceeded the timeout.
            TransientError: The last transient failure once retries ran out.
        """
        request = request or SummarizeRequest()
        state = state or RunState()
        session = request.session_id
        token = self._registry.begin(session) if session is not None else CancellationToken()
        run_id = uuid.uuid4().hex[:12]
        set_run_context(None if session is None else str(session), run_id, self._client.provider_id)

        start_time = time.monotonic()
        logger.info(
            "Starting summarization: run_id=%s, provider=%s, model=%s, chars=%d",
            run_id, self._client.provider_id, self._client.model, len(content.content),
        )
        try:
            doc = await self._summarize(content, request, token, state)
            if token.cancelled or (session is not None and not self._registry.is_current(session, token)):
                # Superseded while the last call was completing; the result is stale.
                raise SummarizationCancelled(token.reason)
            state.enter(RunPhase.DONE)
        except SummarizationCancelled:
            state.enter(RunPhase.CANCELLED)
            logger.info("Summarization cancelled: run_id=%s", run_id)
            raise
        except (LLMTextResponse, NoContentError) as e:
            state.enter(RunPhase.FAILED)
            logger.info("Summarization ended without a document: run_id=%s (%s)", run_id, type(e).__name__)
            raise
        except Exception:
            state.enter(RunPhase.FAILED)
            logger.exception("Summarization failed: run_id=%s", run_id)
            raise
        finally:
            if session is not None:
                self._registry.end(session, token)
            set_phase(None)

        logger.info(
            "Summarization complete: run_id=%s, %d structured call(s), %d context call(s) in %.1fs",
            run_id, state.structured_calls, state.context_calls, time.monotonic() - start_time,
        )
        return doc

    def cancel(self, session_id: SessionId) -> bool:
        """Cancel the session's in-flight run. False if none was active."""
        return self._registry.cancel(session_id)

    async def _summarize(
        self,
        content: PageContent,
        request: SummarizeRequest,
        token: CancellationToken,
        state: RunState,
    ) -> SummaryDocument:
        analysis_enabled = self._image_analysis_enabled(request)
        images = await self._initial_images(request, token) if analysis_enabled else []
        context_window = self._context_window(request)

        outcome = await self._summarizer.run(
            content,
            system_prompt=self._system_prompt(content, request, has_images=bool(images)),
            context_window=context_window,
            images=images,
            image_round_trip_eligible=analysis_enabled,
            cancellation_token=token,
            state=state,
        )

        if isinstance(outcome, ImageRequest):
            images = images + await self._fetch_requested(outcome.urls, images, token)
            # Second and last call: never eligible for another round trip.
            outcome = await self._summarizer.run(
                content,
                system_prompt=self._system_prompt(content, request, has_images=bool(images)),
                context_window=context_window,
                images=images,
                image_round_trip_eligible=False,
                cancellation_token=token,
                state=state,
            )

        if isinstance(outcome, TextResponse):
            raise LLMTextResponse(outcome.text)
        if isinstance(outcome, NoContent):
            raise NoContentError(outcome.reason)
        if not isinstance(outcome, SummaryParsed):
            raise TypeError(f"Unexpected summarization outcome: {outcome!r}")

        state.enter(RunPhase.RESOLVING)
        doc = replace_placeholders(
            outcome.document, build_placeholders(content, [img.ref for img in images]),
        )
        return doc.model_copy(
            update={"llm_provider": self._client.provider_name, "llm_model": self._client.model}
        )

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    async def _initial_images(
        self, request: SummarizeRequest, token: CancellationToken,
    ) -> list[FetchedImage]:
        limit = self._settings.max_images_per_run
        if request.images:
            return list(request.images[:limit])
        if not request.image_refs or self._image_fetcher is None:
            return []
        fetched = await token.run(self._image_fetcher.fetch(request.image_refs, limit))
        logger.info("Fetched %d/%d candidate image(s)", len(fetched), len(request.image_refs))
        return list(fetched[:limit])

    async def _fetch_requested(
        self,
        urls: Sequence[str],
        current: Sequence[FetchedImage],
        token: CancellationToken,
    ) -> list[FetchedImage]:
        """Fetch requested images within the per-round-trip and per-run ceilings."""
        remaining = self._settings.max_images_per_run - len(current)
        limit = min(self._settings.max_requested_images, remaining)
        known = {img.url for img in current}
        wanted = [url for url in dict.fromkeys(urls) if url not in known][:max(limit, 0)]
        logger.info(
            "Image round trip: %d requested, %d to fetch (%d slot(s) left)",
            len(urls), len(wanted), max(remaining, 0),
        )
        if not wanted or self._image_fetcher is None:
            return []
        fetched = await token.run(
            self._image_fetcher.fetch([ImageRef(url=url) for url in wanted], len(wanted))
        )
        return list(fetched[:len(wanted)])

    # ------------------------------------------------------------------
    # Chat refinement
    # ------------------------------------------------------------------

    async def refine(
        self,
        history: Sequence[ChatMessage],
        summary: SummaryDocument,
        content: PageContent,
        request: SummarizeRequest | None = None,
    ) -> ChatReply:
        """Answer one chat turn about *summary*, possibly with field updates.

        Cached images in ``request.images`` are attached to the first user
        message when image analysis is enabled.
        """
        request = request or SummarizeRequest()
        images = (
            list(request.images[:self._settings.max_images_per_run])
            if self._image_analysis_enabled(request) else []
        )
        messages = build_chat_messages(
            history,
            summary,
            content,
            summarization_prompt=self._system_prompt(content, request, has_images=bool(images)),
            context_window=self._context_window(request),
            images=images,
        )
        raw = await self._client.send_chat(
            messages,
            ChatOptions(
                temperature=self._settings.temperature,
                max_tokens=self._settings.max_output_tokens,
                json_mode=True,
            ),
        )
        reply = parse_chat_reply(raw)
        logger.info(
            "Chat reply: %d chars, %d field update(s)",
            len(reply.text), len(reply.updates or {}),
        )
        return reply

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    def _image_analysis_enabled(self, request: SummarizeRequest) -> bool:
        if request.enable_image_analysis is not None:
            return request.enable_image_analysis
        return self._settings.enable_image_analysis

    def _context_window(self, request: SummarizeRequest) -> int:
        if request.context_window:
            return request.context_window
        if self._settings.context_window:
            return self._settings.context_window
        try:
            return get_provider_definition(self._client.provider_id).default_context_window
        except UnsupportedProviderError:
            return DEFAULT_CONTEXT_WINDOW

    def _system_prompt(self, content: PageContent, request: SummarizeRequest, has_images: bool) -> str:
        language_except = (
            request.language_except
            if request.language_except is not None
            else self._settings.summary_language_except_list
        )
        return build_system_prompt(
            detail_level=request.detail_level or self._settings.summary_detail_level,
            language=request.language or self._settings.summary_language,
            language_except=language_except,
            image_analysis_enabled=has_images,
            word_count=content.effective_word_count,
            user_instructions=request.user_instructions,
        )
