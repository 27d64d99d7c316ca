from __future__ import annotations

import pytest

from lexagent.errors import InvalidTransitionError
from lexagent.orchestrator.state import ResearchState, StateMachine


def test_happy_path_transitions() -> None:
    sm = StateMachine()
    for target in (ResearchState.SEARCHING, ResearchState.TOOL_LOOP, ResearchState.VALIDATING, ResearchState.DONE):
        sm.transition(target)

    assert sm.state.terminal
    assert sm.snapshot() == {
        "state": "done",
        "history": ["init", "searching", "tool_loop", "validating", "done"],
    }


def test_skipping_a_state_is_rejected() -> None:
    sm = StateMachine()
    with pytest.raises(InvalidTransitionError):
        sm.transition(ResearchState.VALIDATING)
    assert sm.state is ResearchState.INIT


def test_fail_is_idempotent_after_terminal() -> None:
    """It should move to FAILED from any live state and leave finished sessions alone."""

    sm = StateMachine()
    sm.transition(ResearchState.SEARCHING)
    sm.fail()
    sm.fail()
    assert sm.history == [ResearchState.INIT, ResearchState.SEARCHING, ResearchState.FAILED]

    done = StateMachine(state=ResearchState.DONE, history=[ResearchState.DONE])
    done.fail()
    assert done.state is ResearchState.DONE
