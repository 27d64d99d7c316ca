"""Tests for the deep research pass."""

from __future__ import annotations

import json

from conftest import TODAY, FakeCaseLaw, FakeRegulations, ScriptedCompletion, case
from lexagent.cache.tool_cache import InMemoryToolResultCache
from lexagent.errors import CompletionError
from lexagent.llm.client import CompletionResult
from lexagent.models.research import Confidence, EvidenceItem, GapCategory, KnowledgeGap
from lexagent.research.deep_research import AUTONOMOUS_SOURCE, DeepResearcher, merge_evidence
from lexagent.tools.executor import ToolDispatcher, TTLPolicy
from lexagent.tools.legal_tools import LegalTools, build_registry

GAPS = [KnowledgeGap(category=GapCategory.PROCEDURAL, description="Filing deadline unknown")]
EXISTING = [EvidenceItem(title="Commonwealth v. Gomes", citation="453 Mass. 506")]


def _researcher(case_law, completion, settings):
    tools = LegalTools(case_law=case_law, regulations=FakeRegulations(), today=lambda: TODAY)
    dispatcher = ToolDispatcher(build_registry(tools), InMemoryToolResultCache(), TTLPolicy(settings))
    return DeepResearcher(dispatcher, completion)


def test_merges_searches_and_autonomous_findings(settings) -> None:
    """It should add follow-up hits at Medium and the memo at the model's stated confidence."""

    case_law = FakeCaseLaw(
        [
            case("Commonwealth v. Gomes", "453 Mass. 506"),
            case("Commonwealth v. Long", "485 Mass. 711", "Rule 13 motion practice."),
        ]
    )
    memo = {
        "comprehensiveAnalysis": "File the motion under Mass. R. Crim. P. 13.",
        "caseLaw": {"controllingCases": "Commonwealth v. Long"},
        "practiceRecommendations": ["Attach an affidavit to the motion"],
        "confidenceLevel": "High - settled rule",
    }
    completion = ScriptedCompletion([CompletionResult(text=json.dumps(memo))])

    outcome = _researcher(case_law, completion, settings).run(
        "motion to suppress",
        "Massachusetts",
        EXISTING,
        GAPS,
        ["motion to suppress filing deadline", "motion to suppress rule 13"],
        current_date=TODAY,
    )

    titles = [e.title for e in outcome.evidence]
    assert titles.count("Commonwealth v. Gomes") == 1
    assert "Commonwealth v. Long" in titles
    long_item = next(e for e in outcome.evidence if e.title == "Commonwealth v. Long")
    assert long_item.confidence is Confidence.MEDIUM
    memo_item = outcome.evidence[-1]
    assert memo_item.source == AUTONOMOUS_SOURCE
    assert memo_item.confidence is Confidence.HIGH
    assert "Commonwealth v. Long" in memo_item.summary
    assert outcome.searches_run == 2
    assert outcome.added == 2
    assert outcome.notes == ["Attach an affidavit to the motion"]


def test_autonomous_failure_keeps_search_evidence(settings) -> None:
    case_law = FakeCaseLaw([case("Commonwealth v. Long", "485 Mass. 711")])
    completion = ScriptedCompletion([CompletionError("Completion request failed")])

    outcome = _researcher(case_law, completion, settings).run(
        "motion to suppress", "", [], GAPS, ["motion to suppress"], current_date=TODAY
    )

    assert [e.title for e in outcome.evidence] == ["Commonwealth v. Long"]
    assert outcome.parsed is None


def test_prose_memo_defaults_to_low_confidence(settings) -> None:
    completion = ScriptedCompletion([CompletionResult(text="The court will likely deny the motion.")])
    outcome = _researcher(FakeCaseLaw(), completion, settings).run(
        "motion to suppress", "", [], GAPS, [], current_date=TODAY
    )

    assert len(outcome.evidence) == 1
    assert outcome.evidence[0].confidence is Confidence.LOW


def test_merge_evidence_dedupes_on_citation_or_title() -> None:
    a = EvidenceItem(title="Commonwealth v. Gomes", citation="453 Mass. 506")
    b = EvidenceItem(title="Gomes (duplicate title)", citation="453 MASS. 506")
    c = EvidenceItem(title="Untitled memo")
    assert merge_evidence([a], [b, c, c]) == [a, c]
