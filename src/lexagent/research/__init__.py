"""Knowledge-gap analysis and the deep research pass."""

from __future__ import annotations

from lexagent.research.deep_research import DeepResearchOutcome, DeepResearcher, evidence_from_cases, merge_evidence
from lexagent.research.gaps import KnowledgeGapAnalyzer
from lexagent.research.responses import (
    ParsedResponse,
    StructuredResponse,
    TextFallbackResponse,
    parse_research_response,
)

__all__ = [
    "DeepResearchOutcome",
    "DeepResearcher",
    "KnowledgeGapAnalyzer",
    "ParsedResponse",
    "StructuredResponse",
    "TextFallbackResponse",
    "evidence_from_cases",
    "merge_evidence",
    "parse_research_response",
]
