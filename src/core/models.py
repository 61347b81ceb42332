# src/core/models.py - v2
"""Core data models shared across modules: page content, images, summary document.

Summary documents serialise with camelCase aliases because that is the
shape the model is asked to produce and the shape callers render.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ContentType = Literal["article", "youtube", "facebook", "reddit", "twitter", "github", "generic"]
DetailLevel = Literal["brief", "standard", "detailed"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# === PAGE CONTENT ===


class PageComment(_CamelModel):
    """One user comment scraped alongside the page."""

    author: str | None = None
    text: str
    likes: int | None = None


class PageContent(_CamelModel):
    """Extracted page handed over by the browser shell."""

    type: ContentType = "article"
    url: str = ""
    title: str = ""
    author: str | None = None
    publish_date: str | None = None
    language: str | None = None
    content: str = ""
    word_count: int = 0
    channel_name: str | None = None
    duration: str | None = None
    view_count: str | None = None
    description: str | None = None
    github_page_type: Literal["pr", "issue", "code", "repo", "commit", "release"] | None = None
    comments: list[PageComment] = Field(default_factory=list)

    @property
    def effective_word_count(self) -> int:
        return self.word_count or len(self.content.split())


# === IMAGES ===


class ImageRef(BaseModel):
    """Candidate image URL with its alt text."""

    url: str
    alt: str = ""


class FetchedImage(BaseModel):
    """Image downloaded and normalised by the image-fetch collaborator."""

    url: str
    alt: str = ""
    base64: str
    mime_type: str

    @property
    def ref(self) -> ImageRef:
        return ImageRef(url=self.url, alt=self.alt)


# === SUMMARY ===


class ProsAndCons(_CamelModel):
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)


class SummaryDocument(_CamelModel):
    """Structured multi-section summary of one page."""

    tldr: str
    key_takeaways: list[str] = Field(default_factory=list)
    summary: str
    notable_quotes: list[str] = Field(default_factory=list)
    conclusion: str = ""
    related_topics: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)

    pros_and_cons: ProsAndCons | None = None
    fact_check: str | None = None
    comments_highlights: list[str] | None = None
    extra_sections: dict[str, str] | None = None

    source_language: str | None = None
    summary_language: str | None = None
    translated_title: str | None = None
    inferred_title: str | None = None
    inferred_author: str | None = None
    inferred_publish_date: str | None = None
    llm_provider: str | None = None
    llm_model: str | None = None

    def to_wire(self) -> dict:
        """camelCase dict without unset optional sections."""
        return self.model_dump(by_alias=True, exclude_none=True)
