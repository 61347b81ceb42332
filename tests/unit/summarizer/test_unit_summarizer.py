# tests/unit/summarizer/test_unit_summarizer.py - v1
"""Tests for summarizer/summarizer.py - one-shot vs rolling runs, retry, phases."""

from __future__ import annotations

import json

import pytest

from pagedigest.core.models import PageComment, PageContent
from pagedigest.llm.cancellation import CancellationToken
from pagedigest.llm.errors import (
    MissingAPIKeyError,
    ProviderConnectionError,
    ProviderHTTPError,
    SummarizationCancelled,
)
from pagedigest.llm.retry import RetryPolicy
from pagedigest.summarizer.parser import ImageRequest, SummaryParsed, TextResponse
from pagedigest.summarizer.prompts import FINAL_CHUNK_INSTRUCTION
from pagedigest.summarizer.summarizer import RunPhase, RunState, Summarizer

NO_DELAY = RetryPolicy(max_retries=2, base_delay_s=0.0)
SMALL_WINDOW = 2000  # 4000-char chunks


def _long_page() -> PageContent:
    words = "word " * 800
    paragraph = words[:3997] + "."
    return PageContent(
        title="Long read",
        url="https://example.com/long",
        content=paragraph + "\n\n" + paragraph + "\n\n" + words,
        comments=[PageComment(author="fan", text="Loved the ending")],
    )


def _calls(client):
    """(messages, options) for every send_chat call."""
    return [c.args for c in client.send_chat.call_args_list]


class TestOneShot:
    @pytest.mark.asyncio
    async def test_single_structured_call(self, sample_page, make_client, summary_reply):
        client = make_client([summary_reply])
        state = RunState()
        outcome = await Summarizer(client, NO_DELAY).run(sample_page, "SYSTEM", 8192, state=state)

        assert isinstance(outcome, SummaryParsed)
        messages, options = _calls(client)[0]
        assert [m.role for m in messages] == ["system", "user"]
        assert messages[0].content == "SYSTEM"
        assert sample_page.content in messages[1].content
        assert options.json_mode is True
        assert options.max_tokens == 8192
        assert state.structured_calls == 1
        assert state.context_calls == 0
        assert state.history == [RunPhase.IDLE, RunPhase.CHUNKING, RunPhase.ONE_SHOT]

    @pytest.mark.asyncio
    async def test_images_attached_with_listing(self, sample_page, make_client, summary_reply, sample_image):
        client = make_client([summary_reply])
        await Summarizer(client, NO_DELAY).run(sample_page, "SYSTEM", 8192, images=[sample_image])

        user = _calls(client)[0][0][1]
        assert len(user.images) == 1
        assert user.images[0].mime_type == "image/png"
        assert '{{IMG_1}} ("Architecture")' in user.content

    @pytest.mark.asyncio
    async def test_image_request_when_eligible_with_images(
        self, sample_page, make_client, make_payload, sample_image,
    ):
        reply = json.dumps(make_payload(requestedImages=["https://example.com/more.png"]))
        outcome = await Summarizer(make_client([reply]), NO_DELAY).run(
            sample_page, "SYSTEM", 8192, images=[sample_image], image_round_trip_eligible=True,
        )
        assert outcome == ImageRequest(("https://example.com/more.png",))

    @pytest.mark.asyncio
    async def test_image_request_ignored_without_images(self, sample_page, make_client, make_payload):
        reply = json.dumps(make_payload(requestedImages=["https://example.com/more.png"]))
        outcome = await Summarizer(make_client([reply]), NO_DELAY).run(
            sample_page, "SYSTEM", 8192, image_round_trip_eligible=True,
        )
        assert isinstance(outcome, SummaryParsed)

    @pytest.mark.asyncio
    async def test_temperature_forwarded(self, sample_page, make_client, summary_reply):
        client = make_client([summary_reply])
        await Summarizer(client, NO_DELAY, temperature=0.1).run(sample_page, "SYSTEM", 8192)
        assert _calls(client)[0][1].temperature == 0.1


class TestRolling:
    @pytest.mark.asyncio
    async def test_three_chunks_three_calls(self, make_client, summary_reply):
        client = make_client(["context one", "context two", summary_reply])
        state = RunState()
        outcome = await Summarizer(client, NO_DELAY).run(_long_page(), "SYSTEM", SMALL_WINDOW, state=state)

        assert isinstance(outcome, SummaryParsed)
        assert outcome.document.tldr
        assert outcome.document.summary
        calls = _calls(client)
        assert len(calls) == 3
        assert [options.json_mode for _, options in calls] == [False, False, True]
        assert state.context_calls == 2
        assert state.structured_calls == 1
        assert RunPhase.ROLLING_CONTEXT in state.history

    @pytest.mark.asyncio
    async def test_summary_carried_between_calls(self, make_client, summary_reply):
        client = make_client(["context one", "context two", summary_reply])
        await Summarizer(client, NO_DELAY).run(_long_page(), "SYSTEM", SMALL_WINDOW)

        first, second, final = (messages[1].content for messages, _ in _calls(client))
        assert "part 1 of 3" in first
        assert "Loved the ending" not in first
        assert "context one" in second
        assert "part 2 of 3" in second
        assert "context two" in final
        assert FINAL_CHUNK_INSTRUCTION in final
        assert "Loved the ending" in final

    @pytest.mark.asyncio
    async def test_images_only_on_first_call(self, make_client, make_payload, sample_image):
        reply = json.dumps(make_payload(requestedImages=["https://example.com/more.png"]))
        client = make_client(["c1", "c2", reply])
        outcome = await Summarizer(client, NO_DELAY).run(
            _long_page(), "SYSTEM", SMALL_WINDOW, images=[sample_image], image_round_trip_eligible=True,
        )

        image_counts = [len(messages[1].images) for messages, _ in _calls(client)]
        assert image_counts == [1, 0, 0]
        assert isinstance(outcome, SummaryParsed)


class TestRetry:
    @pytest.mark.asyncio
    async def test_transient_error_retried(self, sample_page, make_client, summary_reply):
        client = make_client([ProviderHTTPError("OpenAI", 503, "busy"), summary_reply])
        outcome = await Summarizer(client, NO_DELAY).run(sample_page, "SYSTEM", 8192)
        assert isinstance(outcome, SummaryParsed)
        assert client.send_chat.await_count == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, sample_page, make_client):
        client = make_client([ProviderConnectionError("reset")] * 3)
        with pytest.raises(ProviderConnectionError):
            await Summarizer(client, NO_DELAY).run(sample_page, "SYSTEM", 8192)
        assert client.send_chat.await_count == 3

    @pytest.mark.asyncio
    async def test_rolling_attempt_restarts_from_first_chunk(self, make_client, summary_reply):
        client = make_client(["c1", ProviderHTTPError("OpenAI", 500), "c1", "c2", summary_reply])
        outcome = await Summarizer(client, NO_DELAY).run(_long_page(), "SYSTEM", SMALL_WINDOW)

        assert isinstance(outcome, SummaryParsed)
        contents = [messages[1].content for messages, _ in _calls(client)]
        assert "part 1 of 3" in contents[2]

    @pytest.mark.asyncio
    async def test_terminal_error_not_retried(self, sample_page, make_client):
        client = make_client([MissingAPIKeyError("no key"), "unused"])
        with pytest.raises(MissingAPIKeyError):
            await Summarizer(client, NO_DELAY).run(sample_page, "SYSTEM", 8192)
        assert client.send_chat.await_count == 1

    @pytest.mark.asyncio
    async def test_text_response_not_retried(self, sample_page, make_client):
        client = make_client(["I cannot help with that.", "unused"])
        outcome = await Summarizer(client, NO_DELAY).run(sample_page, "SYSTEM", 8192)
        assert outcome == TextResponse("I cannot help with that.")
        assert client.send_chat.await_count == 1


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_token_makes_no_call(self, sample_page, make_client):
        token = CancellationToken()
        token.cancel()
        client = make_client(["unused"])
        with pytest.raises(SummarizationCancelled):
            await Summarizer(client, NO_DELAY).run(sample_page, "SYSTEM", 8192, cancellation_token=token)
        client.send_chat.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_token_forwarded_to_client(self, sample_page, make_client, summary_reply):
        token = CancellationToken()
        client = make_client([summary_reply])
        await Summarizer(client, NO_DELAY).run(sample_page, "SYSTEM", 8192, cancellation_token=token)
        assert _calls(client)[0][1].cancellation_token is token
