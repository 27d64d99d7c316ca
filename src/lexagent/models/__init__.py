"""Pydantic models used across the project."""

from __future__ import annotations

from lexagent.models.research import (
    Authority,
    CitationVerificationResult,
    Confidence,
    EvidenceItem,
    GapCategory,
    KnowledgeGap,
    ResearchError,
    ResearchFinding,
    ResearchQuery,
    ResearchStatus,
    Turn,
    ValidationResult,
)

__all__ = [
    "Authority",
    "CitationVerificationResult",
    "Confidence",
    "EvidenceItem",
    "GapCategory",
    "KnowledgeGap",
    "ResearchError",
    "ResearchFinding",
    "ResearchQuery",
    "ResearchStatus",
    "Turn",
    "ValidationResult",
]
