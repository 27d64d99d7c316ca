from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from lexagent.errors import InvalidTransitionError
from lexagent.logging import get_logger, set_step

logger = get_logger(__name__)


class ResearchState(str, Enum):
    INIT = "init"
    SEARCHING = "searching"
    TOOL_LOOP = "tool_loop"
    VALIDATING = "validating"
    DONE = "done"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (ResearchState.DONE, ResearchState.FAILED)


_ALLOWED: dict[ResearchState, frozenset[ResearchState]] = {
    ResearchState.INIT: frozenset({ResearchState.SEARCHING, ResearchState.FAILED}),
    ResearchState.SEARCHING: frozenset({ResearchState.TOOL_LOOP, ResearchState.FAILED}),
    ResearchState.TOOL_LOOP: frozenset({ResearchState.VALIDATING, ResearchState.FAILED}),
    ResearchState.VALIDATING: frozenset({ResearchState.DONE, ResearchState.FAILED}),
    ResearchState.DONE: frozenset(),
    ResearchState.FAILED: frozenset(),
}


@dataclass
class StateMachine:
    """Tracks the orchestrator state of one research session."""

    state: ResearchState = ResearchState.INIT
    history: list[ResearchState] = field(default_factory=lambda: [ResearchState.INIT])

    def can_transition(self, target: ResearchState) -> bool:
        return target in _ALLOWED[self.state]

    def transition(self, target: ResearchState) -> None:
        if not self.can_transition(target):
            raise InvalidTransitionError(f"Invalid transition {self.state.value} -> {target.value}")
        logger.debug("State transition", extra={"from": self.state.value, "to": target.value})
        self.state = target
        self.history.append(target)
        set_step(target.value)

    def fail(self) -> None:
        """Move to FAILED unless the session already finished."""

        if not self.state.terminal:
            self.transition(ResearchState.FAILED)

    def snapshot(self) -> dict[str, str | list[str]]:
        return {"state": self.state.value, "history": [s.value for s in self.history]}
