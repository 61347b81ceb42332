# src/llm/cancellation.py - v2
"""Cooperative cancellation: per-run tokens and the per-session registry.

A token is passed explicitly down every call chain and checked at each
network boundary. The registry maps a caller session (e.g. a browser tab)
to the token of its active run so a new run can supersede a stale one.
Both are safe to use from several threads and event loops.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Awaitable, TypeVar, Union

from pagedigest.llm.errors import SummarizationCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")
SessionId = Union[str, int]

_DEFAULT_REASON = "Summarization cancelled"


def _resolve(fut: asyncio.Future[None]) -> None:
    if not fut.done():
        fut.set_result(None)


class CancellationToken:
    """One-shot cancellation signal for a single run."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cancelled = False
        self._reason = _DEFAULT_REASON
        self._waiters: list[asyncio.Future[None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str:
        return self._reason

    def cancel(self, reason: str = _DEFAULT_REASON) -> bool:
        """Fire the token. Returns False if it had already fired."""
        with self._lock:
            if self._cancelled:
                return False
            self._cancelled = True
            self._reason = reason
            waiters, self._waiters = self._waiters, []
        for fut in waiters:
            loop = fut.get_loop()
            if not loop.is_closed():
                loop.call_soon_threadsafe(_resolve, fut)
        return True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise SummarizationCancelled(self._reason)

    async def wait(self) -> None:
        """Block until the token fires."""
        fut: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        with self._lock:
            if self._cancelled:
                return
            self._waiters.append(fut)
        try:
            await fut
        finally:
            with self._lock:
                if fut in self._waiters:
                    self._waiters.remove(fut)

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await *awaitable*, abandoning it if the token fires first.

        If the awaitable finishes before the token fires its result is
        returned unchanged; otherwise it is cancelled and
        SummarizationCancelled is raised.
        """
        if self._cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise SummarizationCancelled(self._reason)
        task: asyncio.Future[T] = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if not waiter.done():
                waiter.cancel()
        if task.done():
            return task.result()
        task.cancel()
        await asyncio.wait({task})
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Abandoned call finished with %r", task.exception())
        raise SummarizationCancelled(self._reason)


class CancellationRegistry:
    """Thread-safe map of session id to the active run's token."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active: dict[SessionId, CancellationToken] = {}

    def begin(self, session_id: SessionId) -> CancellationToken:
        """Register a new run, cancelling any run already active for the session."""
        token = CancellationToken()
        with self._lock:
            previous = self._active.get(session_id)
            self._active[session_id] = token
        if previous is not None and previous.cancel("Superseded by a newer request"):
            logger.info("Superseded in-flight run for session %s", session_id)
        return token

    def cancel(self, session_id: SessionId) -> bool:
        """Cancel and forget the session's active run. False if none was active."""
        with self._lock:
            token = self._active.pop(session_id, None)
        if token is None:
            return False
        token.cancel()
        logger.info("Cancelled run for session %s", session_id)
        return True

    def end(self, session_id: SessionId, token: CancellationToken | None = None) -> None:
        """Forget the session entry.

        When *token* is given the entry is removed only if it still belongs
        to that run, so a finishing stale run cannot evict its successor.
        """
        with self._lock:
            current = self._active.get(session_id)
            if current is None:
                return
            if token is None or current is token:
                del self._active[session_id]

    def is_current(self, session_id: SessionId, token: CancellationToken) -> bool:
        with self._lock:
            return self._active.get(session_id) is token

    def get(self, session_id: SessionId) -> CancellationToken | None:
        with self._lock:
            return self._active.get(session_id)

    def active_sessions(self) -> list[SessionId]:
        with self._lock:
            return list(self._active)

    def __len__(self) -> int:
        with self._lock:
            return len(self._active)

    def __contains__(self, session_id: Any) -> bool:
        with self._lock:
            return session_id in self._active
