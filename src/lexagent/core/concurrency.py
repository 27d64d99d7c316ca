"""Cancellation primitives shared by the orchestrator and the tool dispatcher."""

from __future__ import annotations

import threading

from lexagent.errors import ResearchCancelled
from lexagent.logging import get_logger

logger = get_logger(__name__)


class CancellationToken:
    """Thread-safe, one-way cancellation flag for a research session.

    The session runs on a worker thread; the caller (e.g. an HTTP handler that saw the client
    disconnect) cancels from another thread.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None

    def cancel(self, reason: str = "cancelled by caller") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()
            logger.info("Research cancellation requested", extra={"reason": reason})

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ResearchCancelled(self._reason or "cancelled")
