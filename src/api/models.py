# src/api/models.py - v2
"""API-level models: SummarizeRequest.

Per-call preferences supplied by the caller. Anything left as None falls
back to the engine's Settings.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from pagedigest.core.models import DetailLevel, FetchedImage, ImageRef
from pagedigest.llm.cancellation import SessionId


class SummarizeRequest(BaseModel):
    """Options for one summarize() or refine() call."""

    detail_level: DetailLevel | None = None
    language: str | None = None
    language_except: list[str] | None = None
    context_window: int | None = Field(default=None, gt=0)
    user_instructions: str | None = None

    # Images already fetched by the caller, attached as-is.
    images: list[FetchedImage] = Field(default_factory=list)
    # Candidate images fetched through the image fetcher when none are supplied.
    image_refs: list[ImageRef] = Field(default_factory=list)
    enable_image_analysis: bool | None = None

    session_id: SessionId | None = None
