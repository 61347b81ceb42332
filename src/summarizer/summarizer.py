# src/summarizer/summarizer.py - v1
"""One summarization run: chunk, call the model one-shot or rolling, parse.

A run returns a tagged ParseOutcome. Transient failures are retried as
whole attempts (chunking included); terminal outcomes and terminal errors
end the run on the first attempt.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Sequence

from pagedigest.chunking.chunker import chunk_content
from pagedigest.core.models import FetchedImage, PageContent
from pagedigest.llm.base_client import BaseLLMClient
from pagedigest.llm.cancellation import CancellationToken
from pagedigest.llm.models import Base64Image, ChatMessage, ChatOptions
from pagedigest.llm.retry import RetryPolicy, with_retry
from pagedigest.logging.context import set_phase
from pagedigest.summarizer.parser import ParseOutcome, parse_summary_response
from pagedigest.summarizer.prompts import build_chunk_prompt, build_page_prompt, format_image_listing

logger = logging.getLogger(__name__)


class RunPhase(str, Enum):
    IDLE = "idle"
    CHUNKING = "chunking"
    ONE_SHOT = "one_shot"
    ROLLING_CONTEXT = "rolling_context"
    RESOLVING = "resolving"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RunState:
    """Phase tracker for one orchestrated run, shared by its summarization attempts."""

    def __init__(self) -> None:
        self.phase = RunPhase.IDLE
        self.history: list[RunPhase] = [RunPhase.IDLE]
        self.structured_calls = 0
        self.context_calls = 0

    def enter(self, phase: RunPhase) -> None:
        if phase is self.phase:
            return
        logger.debug("Run phase %s -> %s", self.phase.value, phase.value)
        self.phase = phase
        self.history.append(phase)
        set_phase(phase.value)


def to_attachments(images: Sequence[FetchedImage]) -> tuple[Base64Image, ...]:
    return tuple(Base64Image(base64=img.base64, mime_type=img.mime_type) for img in images)


class Summarizer:
    """Drives one provider client through one-shot or rolling-context summarization."""

    def __init__(
        self,
        client: BaseLLMClient,
        retry_policy: RetryPolicy | None = None,
        temperature: float | None = None,
        max_output_tokens: int = 8192,
        max_comments: int = 20,
    ) -> None:
        self._client = client
        self._retry_policy = retry_policy or RetryPolicy()
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        self._max_comments = max_comments

    @property
    def client(self) -> BaseLLMClient:
        return self._client

    async def run(
        self,
        content: PageContent,
        system_prompt: str,
        context_window: int,
        images: Sequence[FetchedImage] = (),
        image_round_trip_eligible: bool = False,
        cancellation_token: CancellationToken | None = None,
        state: RunState | None = None,
    ) -> ParseOutcome:
        """Summarize *content*, retrying transient failures.

        Args:
            content: Page to summarize.
            system_prompt: System prompt for every call of the run.
            context_window: Model context window in tokens.
            images: Images attached to the first call.
            image_round_trip_eligible: Whether the final parse may return an
                ImageRequest. Only honoured when images reach that call.
            cancellation_token: Checked before every call and raced against it.
            state: Phase tracker; a fresh one is used when omitted.
        """
        state = state or RunState()
        return await with_retry(
            self._attempt,
            content,
            system_prompt,
            context_window,
            images,
            image_round_trip_eligible,
            cancellation_token,
            state,
            policy=self._retry_policy,
            label=f"{self._client.provider_name} summarization",
            cancellation_token=cancellation_token,
        )

    async def _attempt(
        self,
        content: PageContent,
        system_prompt: str,
        context_window: int,
        images: Sequence[FetchedImage],
        image_round_trip_eligible: bool,
        token: CancellationToken | None,
        state: RunState,
    ) -> ParseOutcome:
        state.enter(RunPhase.CHUNKING)
        chunks = chunk_content(content.content, context_window)

        if len(chunks) == 1:
            state.enter(RunPhase.ONE_SHOT)
            return await self._one_shot(
                content, system_prompt, images, image_round_trip_eligible, token, state,
            )
        state.enter(RunPhase.ROLLING_CONTEXT)
        return await self._rolling(content, chunks, system_prompt, images, token, state)

    async def _one_shot(
        self,
        content: PageContent,
        system_prompt: str,
        images: Sequence[FetchedImage],
        eligible: bool,
        token: CancellationToken | None,
        state: RunState,
    ) -> ParseOutcome:
        user_prompt = build_page_prompt(content, max_comments=self._max_comments)
        if images:
            user_prompt += format_image_listing([img.ref for img in images])

        messages = [
            ChatMessage(role="system", content=system_prompt),
            ChatMessage(role="user", content=user_prompt, images=to_attachments(images)),
        ]
        raw = await self._structured_call(messages, token, state)
        return parse_summary_response(raw, image_round_trip_eligible=eligible and bool(images))

    async def _rolling(
        self,
        content: PageContent,
        chunks: list[str],
        system_prompt: str,
        images: Sequence[FetchedImage],
        token: CancellationToken | None,
        state: RunState,
    ) -> ParseOutcome:
        total = len(chunks)
        logger.info("Rolling-context summarization over %d chunks", total)

        first_prompt = build_page_prompt(content, text=chunks[0], include_comments=False)
        first_prompt += f"\n\n(This is part 1 of {total}. More content follows.)"
        if images:
            first_prompt += format_image_listing([img.ref for img in images])

        rolling_summary = await self._context_call(
            [
                ChatMessage(role="system", content=system_prompt),
                ChatMessage(role="user", content=first_prompt, images=to_attachments(images)),
            ],
            token,
            state,
        )

        for index in range(1, total - 1):
            prompt = build_chunk_prompt(rolling_summary, chunks[index], index, total)
            rolling_summary = await self._context_call(
                [
                    ChatMessage(role="system", content=system_prompt),
                    ChatMessage(role="user", content=prompt),
                ],
                token,
                state,
            )

        final_prompt = build_chunk_prompt(
            rolling_summary,
            chunks[-1],
            total - 1,
            total,
            comments=content.comments,
            max_comments=self._max_comments,
        )
        raw = await self._structured_call(
            [
                ChatMessage(role="system", content=system_prompt),
                ChatMessage(role="user", content=final_prompt),
            ],
            token,
            state,
        )
        # Images only ever reach the first call, so the final one cannot ask for more.
        return parse_summary_response(raw, image_round_trip_eligible=False)

    async def _context_call(
        self,
        messages: list[ChatMessage],
        token: CancellationToken | None,
        state: RunState,
    ) -> str:
        state.context_calls += 1
        options = ChatOptions(temperature=self._temperature, cancellation_token=token)
        return await self._client.send_chat(messages, options)

    async def _structured_call(
        self,
        messages: list[ChatMessage],
        token: CancellationToken | None,
        state: RunState,
    ) -> str:
        state.structured_calls += 1
        options = ChatOptions(
            temperature=self._temperature,
            max_tokens=self._max_output_tokens,
            json_mode=True,
            cancellation_token=token,
        )
        return await self._client.send_chat(messages, options)
