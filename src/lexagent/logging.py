"""Logging utilities.

Every record carries the research session id and the orchestrator step it was emitted from.
Fields passed through ``extra={...}`` are appended to the message as ``key=value`` pairs.
"""

from __future__ import annotations

import contextlib
import contextvars
import logging
from typing import Any, Iterator

from rich.logging import RichHandler


_session_var: contextvars.ContextVar[str] = contextvars.ContextVar("lexagent_session", default="-")
_step_var: contextvars.ContextVar[str] = contextvars.ContextVar("lexagent_step", default="-")

# Attributes every LogRecord has; anything else came in through ``extra``.
_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "session",
    "step",
}


class _ContextFilter(logging.Filter):
    """Inject research session context into log records."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.session = _session_var.get()  # type: ignore[attr-defined]
        record.step = _step_var.get()  # type: ignore[attr-defined]
        return True


class _ExtraFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        fields = {k: v for k, v in vars(record).items() if k not in _RESERVED and not k.startswith("_")}
        if not fields:
            return base
        return base + " " + " ".join(f"{k}={v!r}" if isinstance(v, str) else f"{k}={v}" for k, v in fields.items())


@contextlib.contextmanager
def run_context(*, session_id: str, step: str | None = None) -> Iterator[None]:
    """Temporarily bind session context for structured logging.

    Args:
        session_id: Research session identifier.
        step: Optional step identifier.
    """

    token_session = _session_var.set(session_id)
    token_step = _step_var.set(step or _step_var.get())
    try:
        yield
    finally:
        _session_var.reset(token_session)
        _step_var.reset(token_step)


def set_step(step: str) -> None:
    """Update current step in context."""

    _step_var.set(step)


def build_formatter() -> logging.Formatter:
    return _ExtraFormatter(
        fmt="%(asctime)s %(levelname)s session=%(session)s step=%(step)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def configure_logging(level: str = "INFO") -> None:
    """Configure application logging.

    Safe to call more than once; the existing rich handler is reused.

    Args:
        level: Logging level name.
    """

    root = logging.getLogger()
    root.setLevel(level.upper())

    handler = next((h for h in root.handlers if isinstance(h, RichHandler)), None)
    if handler is None:
        handler = RichHandler(rich_tracebacks=True, show_time=True, show_level=True)
        root.addHandler(handler)
    if not any(isinstance(f, _ContextFilter) for f in handler.filters):
        handler.addFilter(_ContextFilter())
    handler.setFormatter(build_formatter())

    # Request-level chatter from the HTTP clients drowns out the research log.
    for noisy in ("httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(max(logging.WARNING, root.level))


def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""

    return logging.getLogger(name)
