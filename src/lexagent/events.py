"""Progress event model used for streaming research sessions.

A research session emits a sequence of events as the orchestrator advances. The API streams
them to clients as Server-Sent Events; the CLI renders them as a progress log.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """High-level event categories."""

    PROGRESS = "progress"
    COMPLETE = "complete"
    ERROR = "error"


class StepType(str, Enum):
    """Which phase of the session an event belongs to."""

    QUERY_ANALYSIS = "query_analysis"
    DATABASE_SEARCH = "database_search"
    AI_ANALYSIS = "ai_analysis"
    TOOL_EXECUTION = "tool_execution"
    RESPONSE_GENERATION = "response_generation"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProgressEvent(BaseModel):
    """A single event in a research session."""

    session_id: str
    seq: int = Field(ge=1)
    ts: datetime = Field(default_factory=_utcnow)

    event_type: EventType
    step_type: StepType
    message: str
    progress_percent: int = Field(ge=0, le=100)

    data: dict[str, Any] | None = None
