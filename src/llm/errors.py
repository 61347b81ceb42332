# src/llm/errors.py - v1
"""Error taxonomy for provider calls and summarization runs.

Retryable errors derive from TransientError. Everything else that reaches
the summarization retry loop is terminal and propagates on the first attempt.
"""

from __future__ import annotations


class PageDigestError(Exception):
    """Base class for all engine errors."""


# --- Transient (retried by the summarization run) ---


class TransientError(PageDigestError):
    """Failure that may succeed on a fresh attempt."""


class ProviderHTTPError(TransientError):
    """Provider answered with a non-2xx status."""

    def __init__(self, provider: str, status_code: int, body: str = "") -> None:
        self.provider = provider
        self.status_code = status_code
        self.body = body
        super().__init__(f"{provider} API error ({status_code}): {body}")


class ProviderConnectionError(TransientError):
    """Transport-level failure (DNS, reset, TLS, ...)."""


class ProviderResponseError(TransientError):
    """Provider returned a body that does not have the expected shape."""


# --- Terminal (never retried) ---


class TerminalError(PageDigestError):
    """Failure that a retry cannot fix."""


class RequestTimeoutError(TerminalError):
    """Request exceeded the fixed wall-clock timeout."""

    def __init__(self, provider: str, timeout_s: float) -> None:
        self.provider = provider
        self.timeout_s = timeout_s
        super().__init__(f"{provider} request timed out after {timeout_s:g}s")


class SummarizationCancelled(TerminalError):
    """The run's cancellation token fired (user cancel or supersession)."""

    def __init__(self, message: str = "Summarization cancelled") -> None:
        super().__init__(message)


class LLMTextResponse(TerminalError):
    """Model replied with free text instead of a structured summary."""

    def __init__(self, text: str) -> None:
        self.text = text
        super().__init__(text)


class NoContentError(TerminalError):
    """Model reported that the page has nothing to summarize."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class MissingAPIKeyError(TerminalError):
    """Provider requires an API key and none was configured."""


class UnsupportedProviderError(TerminalError, ValueError):
    """Raised when a provider is not registered."""
