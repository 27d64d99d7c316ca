"""Exception hierarchy."""

from __future__ import annotations


class LexAgentError(RuntimeError):
    pass


class CompletionError(LexAgentError):
    """The completion capability failed (timeout, transport or API error)."""

    def __init__(self, message: str, *, transient: bool = False) -> None:
        super().__init__(message)
        self.transient = transient


class ExternalServiceError(LexAgentError):
    """A case-law or regulation service call failed."""


class ResearchCancelled(LexAgentError):
    """The research session was cancelled by its caller."""


class InvalidTransitionError(LexAgentError):
    """The orchestrator attempted a state transition that is not allowed."""
