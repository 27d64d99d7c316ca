"""Tests for knowledge-gap analysis."""

from __future__ import annotations

import json

from conftest import ScriptedCompletion
from lexagent.errors import CompletionError
from lexagent.llm.client import CompletionResult
from lexagent.models.research import EvidenceItem, GapCategory
from lexagent.research.gaps import KnowledgeGapAnalyzer


def _item(title: str, summary: str, citation: str | None = "1 Mass. 1") -> EvidenceItem:
    return EvidenceItem(title=title, citation=citation, summary=summary)


SUBSTANTIVE = [
    _item("Smith v. Jones", "Warrantless entry into a home was unreasonable."),
    _item("Doe v. Roe", "Exigent circumstances excused the lack of a warrant."),
    _item("Lee v. State", "Consent given after an illegal entry was tainted."),
]


def test_empty_or_thin_evidence_needs_deeper_research() -> None:
    analyzer = KnowledgeGapAnalyzer()
    assert analyzer.needs_deeper_research([], "warrantless entry") is True
    assert analyzer.needs_deeper_research(SUBSTANTIVE[:2], "warrantless entry") is True


def test_sufficient_substantive_evidence() -> None:
    assert KnowledgeGapAnalyzer().needs_deeper_research(SUBSTANTIVE, "warrantless entry") is False


def test_procedural_query_requires_procedural_evidence() -> None:
    """It should ask for more research when a procedural query has no procedural sources."""

    analyzer = KnowledgeGapAnalyzer()
    query = "Massachusetts civil procedure for a motion to dismiss"
    assert analyzer.needs_deeper_research(SUBSTANTIVE, query) is True

    with_rule = [*SUBSTANTIVE, _item("Rule 12(b)(6) standard", "Dismissal requires plausible claims.")]
    assert analyzer.needs_deeper_research(with_rule, query) is False


def test_identify_gaps_without_model() -> None:
    gaps = KnowledgeGapAnalyzer().identify_gaps("warrantless entry", [], jurisdiction="Massachusetts")
    categories = [g.category for g in gaps]

    assert GapCategory.STATUTORY in categories
    assert GapCategory.CASE_LAW in categories
    assert GapCategory.PROCEDURAL in categories
    assert GapCategory.JURISDICTIONAL in categories


def test_follow_up_queries_are_templated_deduplicated_and_capped() -> None:
    analyzer = KnowledgeGapAnalyzer(max_follow_up=3)
    gaps = analyzer.identify_gaps("warrantless entry", [])
    queries = analyzer.generate_follow_up_queries("warrantless entry", gaps)

    assert len(queries) == 3
    assert len(set(queries)) == 3
    assert queries[0] == "warrantless entry statute regulation"


def test_model_gaps_take_precedence_per_category() -> None:
    completion = ScriptedCompletion(
        [
            CompletionResult(
                text=json.dumps(
                    [
                        {"category": "procedural", "description": "Mass. R. Crim. P. 13 filing deadline"},
                        {"category": "nonsense", "description": "dropped"},
                    ]
                )
            )
        ]
    )
    gaps = KnowledgeGapAnalyzer(completion).identify_gaps("motion to suppress", [])

    procedural = [g for g in gaps if g.category is GapCategory.PROCEDURAL]
    assert [g.description for g in procedural] == ["Mass. R. Crim. P. 13 filing deadline"]
    assert gaps[0].category is GapCategory.PROCEDURAL


def test_model_query_failure_falls_back_to_templates() -> None:
    completion = ScriptedCompletion([CompletionError("Completion request failed", transient=True)])
    analyzer = KnowledgeGapAnalyzer(completion)
    gaps = KnowledgeGapAnalyzer().identify_gaps("motion to suppress", [])

    queries = analyzer.generate_follow_up_queries("motion to suppress", gaps)
    assert queries[0] == "motion to suppress statute regulation"
