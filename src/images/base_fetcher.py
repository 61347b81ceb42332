# src/images/base_fetcher.py - v1
"""Abstract image fetcher interface.

Implementations download candidate images, normalise their format and
return them base64-encoded. The engine only depends on this contract.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from pagedigest.core.models import FetchedImage, ImageRef


class BaseImageFetcher(ABC):
    """Unified interface for image-fetch collaborators."""

    @abstractmethod
    async def fetch(self, refs: Sequence[ImageRef], max_count: int) -> list[FetchedImage]:
        """Fetch at most *max_count* of *refs*, in order, skipping failures."""
