"""End-to-end tests for the research session state machine."""

from __future__ import annotations

import json

import pytest

from conftest import ScriptedCompletion, case
from lexagent.core.concurrency import CancellationToken
from lexagent.errors import CompletionError, ResearchCancelled
from lexagent.events import EventType, StepType
from lexagent.llm.client import CompletionResult, ToolUseRequest
from lexagent.models.research import (
    Authority,
    CitationVerificationResult,
    Confidence,
    EvidenceItem,
    ResearchQuery,
    ResearchStatus,
    Turn,
    ValidationResult,
)
from lexagent.orchestrator.runner import (
    RESEARCH_INCOMPLETE_MESSAGE,
    ROUND_CAP_WARNING,
    SERVICE_UNAVAILABLE_MESSAGE,
    assess_confidence,
    run_research,
)
from lexagent.orchestrator.state import ResearchState

RECORDS = [
    case("Roe v. Wade", "410 U.S. 113", "Privacy rights extend to personal decisions."),
    case("Commonwealth v. Gomes", "453 Mass. 506", "Warrantless entry into a home was unreasonable."),
    case("Commonwealth v. Long", "485 Mass. 711", "Exigent circumstances excused the lack of a warrant."),
]


def _tool_call(call_id: str, name: str, **arguments) -> CompletionResult:
    return CompletionResult(tool_use_requests=(ToolUseRequest(id=call_id, name=name, arguments=arguments),))


def test_tool_round_then_answer(make_orchestrator, case_law) -> None:
    """It should run tools, feed results back, and verify citations in the answer."""

    case_law.records = list(RECORDS)
    completion = ScriptedCompletion(
        [
            _tool_call("call_1", "get_current_date"),
            CompletionResult(text="See Roe v. Wade, 410 U.S. 113, privacy rights apply."),
        ]
    )
    orch = make_orchestrator(completion)
    session = orch.session(ResearchQuery(text="privacy rights"))
    events = list(session.events())
    finding = session.finding

    assert finding is not None
    assert finding.status is ResearchStatus.SUCCEEDED
    assert finding.rounds_used == 2
    assert finding.round_cap_reached is False
    assert finding.confidence is Confidence.MEDIUM
    assert [a.citation for a in finding.authorities] == ["Roe v. Wade, 410 U.S. 113"]
    assert finding.authorities[0].verified
    assert len(finding.evidence) == 3
    assert session.state is ResearchState.DONE

    tool_messages = [m for m in completion.calls[1]["messages"] if m.role == "tool"]
    assert tool_messages[0].tool_call_id == "call_1"
    assert "Current date: 2025-06-01" in tool_messages[0].content

    assert [e.seq for e in events] == list(range(1, len(events) + 1))
    progress = [e.progress_percent for e in events]
    assert progress == sorted(progress)
    assert events[-1].event_type is EventType.COMPLETE
    assert events[-1].progress_percent == 100
    assert events[-1].data["finding"]["status"] == "succeeded"
    assert StepType.TOOL_EXECUTION in {e.step_type for e in events}


def test_round_cap_forces_synthesis(make_orchestrator, case_law) -> None:
    case_law.records = list(RECORDS)
    completion = ScriptedCompletion(fallback=lambda n: _tool_call(f"call_{n}", "get_current_date"))

    finding = make_orchestrator(completion, max_tool_rounds=3).run(ResearchQuery(text="privacy rights"))

    assert len(completion.calls) == 4
    assert completion.calls[-1]["tools"] is None
    assert all(c["tools"] for c in completion.calls[:3])
    assert finding.round_cap_reached is True
    assert finding.rounds_used == 3
    assert finding.answer == RESEARCH_INCOMPLETE_MESSAGE
    assert ROUND_CAP_WARNING in finding.validation.warnings
    assert finding.status is ResearchStatus.SUCCEEDED_WITH_WARNINGS


def test_synthesis_text_is_used_when_cap_hit(make_orchestrator, case_law) -> None:
    case_law.records = list(RECORDS)
    completion = ScriptedCompletion(
        [_tool_call("a", "get_current_date"), CompletionResult(text="Privacy rights apply broadly.")]
    )

    finding = make_orchestrator(completion, max_tool_rounds=1).run(ResearchQuery(text="privacy rights"))

    assert finding.answer == "Privacy rights apply broadly."
    assert finding.round_cap_reached is True


def test_completion_failure_is_service_unavailable(make_orchestrator, case_law) -> None:
    """It should end with an error event and a structured finding, not an exception."""

    case_law.records = list(RECORDS)
    orch = make_orchestrator(ScriptedCompletion([CompletionError("Completion request failed", transient=True)]))
    session = orch.session(ResearchQuery(text="privacy rights"))
    events = list(session.events())

    last = events[-1]
    assert last.event_type is EventType.ERROR
    assert last.message == SERVICE_UNAVAILABLE_MESSAGE
    assert last.data["finding"]["error"]["code"] == "service_unavailable"
    assert session.finding.status is ResearchStatus.SERVICE_UNAVAILABLE
    assert session.finding.answer == ""
    assert session.state is ResearchState.FAILED


def test_temporal_error_requires_manual_review(make_orchestrator, case_law) -> None:
    case_law.records = list(RECORDS)
    answer = "You have 129 days until February 2025 to prepare for the hearing."
    finding = make_orchestrator(ScriptedCompletion([CompletionResult(text=answer)])).run(
        ResearchQuery(text="privacy rights")
    )

    assert finding.requires_manual_review is True
    assert finding.validation.valid is False
    assert finding.answer.startswith("**MANUAL REVIEW REQUIRED:**")
    assert finding.answer.endswith(answer)
    assert finding.confidence is Confidence.LOW
    assert finding.status is ResearchStatus.SUCCEEDED_WITH_WARNINGS


def test_no_results(make_orchestrator) -> None:
    finding = make_orchestrator(ScriptedCompletion()).run(ResearchQuery(text="obscure maritime lien question"))

    assert finding.status is ResearchStatus.NO_RESULTS
    assert finding.error is not None
    assert finding.evidence == []
    assert finding.follow_up_queries


def test_deep_research_runs_when_evidence_is_thin(make_orchestrator) -> None:
    completion = ScriptedCompletion(
        [
            CompletionResult(text="Local rules set the filing window for this motion."),
            CompletionResult(text="File the motion promptly after arraignment."),
        ]
    )
    orch = make_orchestrator(completion, deep_research_enabled=True, max_follow_up_queries=2)
    session = orch.session(ResearchQuery(text="motion to dismiss procedure", jurisdiction="Massachusetts"))
    events = list(session.events())

    assert any(e.message == "Evidence is thin; running deep research" for e in events)
    finding = session.finding
    assert finding.answer == "File the motion promptly after arraignment."
    assert finding.evidence[0].title == "Autonomous research: motion to dismiss procedure"
    assert len(finding.follow_up_queries) == 2
    assert finding.knowledge_gaps


def test_deep_research_recommendations_reach_the_finding(make_orchestrator) -> None:
    memo = {
        "comprehensiveAnalysis": "Mass. R. Crim. P. 13 governs pretrial motions.",
        "practiceRecommendations": ["Attach an affidavit to the motion", ""],
        "confidenceLevel": "Medium - limited authority",
    }
    completion = ScriptedCompletion(
        [CompletionResult(text=json.dumps(memo)), CompletionResult(text="File the motion with an affidavit.")]
    )
    orch = make_orchestrator(completion, deep_research_enabled=True, max_follow_up_queries=1)

    finding = orch.run(ResearchQuery(text="motion to dismiss procedure", jurisdiction="Massachusetts"))

    assert finding.recommendations == ["Attach an affidavit to the motion"]
    assert finding.evidence[0].confidence is Confidence.MEDIUM


def test_prior_turns_are_sent(make_orchestrator, case_law) -> None:
    case_law.records = list(RECORDS)
    completion = ScriptedCompletion([CompletionResult(text="Yes, the same rule applies.")])

    run_research(
        "Does that apply in federal court?",
        prior_turns=[{"role": "user", "content": "What is the privacy standard?"}],
        orchestrator=make_orchestrator(completion),
    )

    messages = completion.calls[0]["messages"]
    assert [m.role for m in messages] == ["system", "user", "user"]
    assert messages[1].content == "What is the privacy standard?"
    assert "Does that apply in federal court?" in messages[2].content


def test_cancelled_session_raises(make_orchestrator, case_law) -> None:
    case_law.records = list(RECORDS)
    token = CancellationToken()
    token.cancel("client left")
    session = make_orchestrator(ScriptedCompletion()).session(ResearchQuery(text="privacy rights"), cancel_token=token)

    with pytest.raises(ResearchCancelled):
        list(session.events())
    assert session.state is ResearchState.FAILED
    assert session.finding is None


def test_cancel_during_search_stops_session(make_orchestrator, case_law) -> None:
    case_law.records = list(RECORDS)
    token = CancellationToken()
    case_law.on_call = lambda: token.cancel("client left")
    completion = ScriptedCompletion()

    with pytest.raises(ResearchCancelled):
        make_orchestrator(completion).run(ResearchQuery(text="privacy rights"), cancel_token=token)
    assert completion.calls == []


def _authority(found: bool) -> Authority:
    return Authority(citation="410 U.S. 113", verification=CitationVerificationResult(found=found, citation="410 U.S. 113"))


@pytest.mark.parametrize(
    ("validation", "authorities", "evidence", "expected"),
    [
        (ValidationResult(), [_authority(True)] * 3, [], Confidence.HIGH),
        (ValidationResult(warnings=["w"]), [_authority(True)] * 3, [], Confidence.MEDIUM),
        (ValidationResult(valid=False, errors=["e"]), [_authority(True)] * 3, [], Confidence.LOW),
        (ValidationResult(), [_authority(False)], [], Confidence.LOW),
        (ValidationResult(), [], [EvidenceItem(title="Roe v. Wade")], Confidence.MEDIUM),
    ],
)
def test_assess_confidence(validation, authorities, evidence, expected) -> None:
    assert assess_confidence(validation, authorities, evidence) is expected


def test_turn_roles_are_validated() -> None:
    with pytest.raises(ValueError):
        Turn(role="system", content="nope")


def test_run_without_finding_raises(make_orchestrator, monkeypatch) -> None:
    from lexagent.orchestrator.runner import ResearchSession

    monkeypatch.setattr(ResearchSession, "events", lambda self: iter(()))
    with pytest.raises(RuntimeError, match="without producing a finding"):
        make_orchestrator(ScriptedCompletion()).run(ResearchQuery(text="privacy rights"))
