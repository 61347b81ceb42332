# tests/conftest.py - v2
"""Shared test fixtures for all unit and integration tests.

Provides sample pages, canned model replies, a mock provider client and a
recording image fetcher. No network access: all I/O is mocked.
"""

from __future__ import annotations

import json
from typing import Sequence
from unittest.mock import AsyncMock, MagicMock

import pytest

from pagedigest.config.settings import Settings
from pagedigest.core.models import FetchedImage, ImageRef, PageComment, PageContent, SummaryDocument
from pagedigest.images.base_fetcher import BaseImageFetcher
from pagedigest.llm.base_client import BaseLLMClient
from pagedigest.logging.context import clear_context


# === FIXTURES: Sample data ===


@pytest.fixture
def sample_page() -> PageContent:
    """Short article page."""
    return PageContent(
        type="article",
        url="https://example.com/nis2",
        title="NIS2 in practice",
        author="Jane Doe",
        content=(
            "The European Union regulates cybersecurity through the NIS2 Directive.\n\n"
            "The directive applies to essential and important entities."
        ),
        word_count=18,
        comments=[PageComment(author="reader", text="Great overview", likes=3)],
    )


@pytest.fixture
def youtube_page() -> PageContent:
    """YouTube transcript page with a timestamped URL."""
    return PageContent(
        type="youtube",
        url="https://www.youtube.com/watch?v=abc123&t=42s",
        title="Rust in 100 seconds",
        channel_name="Fireship",
        content="Rust is a memory-safe systems programming language.",
    )


def make_summary_payload(**overrides: object) -> dict:
    """Wire-format (camelCase) summary as a model would return it."""
    payload = {
        "tldr": "NIS2 raises the cybersecurity bar across the EU.",
        "keyTakeaways": ["Applies to essential entities", "Applies to important entities"],
        "summary": "## Overview\nThe directive sets obligations.",
        "notableQuotes": [],
        "conclusion": "Compliance work is unavoidable.",
        "relatedTopics": ["GDPR", "DORA"],
        "tags": ["security", "eu"],
        "sourceLanguage": "en",
        "summaryLanguage": "en",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def summary_reply() -> str:
    """Raw JSON reply text for a valid summary."""
    return json.dumps(make_summary_payload())


@pytest.fixture
def sample_summary() -> SummaryDocument:
    return SummaryDocument(
        tldr="Short version.",
        key_takeaways=["One", "Two"],
        summary="Long version.",
        conclusion="Done.",
        tags=["x"],
        fact_check="Claims look fine.",
    )


@pytest.fixture
def sample_image() -> FetchedImage:
    return FetchedImage(
        url="https://example.com/diagram.png", alt="Architecture", base64="aGVsbG8=", mime_type="image/png",
    )


# === FIXTURES: Settings ===


@pytest.fixture
def fast_settings() -> Settings:
    """Settings with no retry delay and no .env lookup."""
    return Settings(_env_file=None, retry_base_delay_s=0.0, openai_api_key="sk-test")


# === FIXTURES: Mock LLM ===


def make_mock_client(
    replies: Sequence[object] = (),
    provider_id: str = "openai",
    provider_name: str = "OpenAI",
    model: str = "gpt-4o-mini",
) -> MagicMock:
    """Mock BaseLLMClient whose send_chat yields *replies* in order.

    Exceptions in *replies* are raised instead of returned.
    """
    client = MagicMock(spec=BaseLLMClient)
    client.provider_id = provider_id
    client.provider_name = provider_name
    client.model = model
    client.send_chat = AsyncMock(side_effect=list(replies))
    return client


@pytest.fixture
def mock_llm_client(summary_reply: str) -> MagicMock:
    """Mock client answering every call with a valid summary."""
    client = make_mock_client()
    client.send_chat = AsyncMock(return_value=summary_reply)
    return client


# === FIXTURES: Images ===


class RecordingImageFetcher(BaseImageFetcher):
    """Returns a fake payload for every ref and records each call."""

    def __init__(self) -> None:
        self.calls: list[tuple[list[str], int]] = []

    async def fetch(self, refs: Sequence[ImageRef], max_count: int) -> list[FetchedImage]:
        self.calls.append(([ref.url for ref in refs], max_count))
        return [
            FetchedImage(url=ref.url, alt=ref.alt, base64="ZmFrZQ==", mime_type="image/jpeg")
            for ref in refs[:max_count]
        ]

    @property
    def fetched_urls(self) -> list[str]:
        return [url for urls, _ in self.calls for url in urls]


@pytest.fixture
def image_fetcher() -> RecordingImageFetcher:
    return RecordingImageFetcher()


# === FIXTURES: Logging context ===


@pytest.fixture(autouse=True)
def _reset_log_context():
    clear_context()
    yield
    clear_context()


# === FIXTURES: Factories ===


@pytest.fixture
def make_client():
    """Factory fixture for scripted mock clients (see make_mock_client)."""
    return make_mock_client


@pytest.fixture
def make_payload():
    """Factory fixture for wire-format summary payloads."""
    return make_summary_payload
