"""Research session models.

These are the request, intermediate and terminal artifacts of one research session. The
orchestrator owns all of them for the lifetime of a request.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class Confidence(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @classmethod
    def parse(cls, raw: object, default: Confidence | None = None) -> Confidence:
        """Read a confidence label from free text such as ``"High - based on precedents"``."""

        fallback = default or cls.LOW
        if not isinstance(raw, str):
            return fallback
        head = raw.strip().lower()
        for member in cls:
            if head.startswith(member.value.lower()):
                return member
        return fallback


class ResearchStatus(str, Enum):
    SUCCEEDED = "succeeded"
    SUCCEEDED_WITH_WARNINGS = "succeeded_with_warnings"
    NO_RESULTS = "no_results"
    SERVICE_UNAVAILABLE = "service_unavailable"


class GapCategory(str, Enum):
    STATUTORY = "statutory"
    CASE_LAW = "case_law"
    PROCEDURAL = "procedural"
    JURISDICTIONAL = "jurisdictional"
    TEMPORAL = "temporal"
    PRACTICAL = "practical"


class Turn(BaseModel):
    """A prior conversation turn carried into a follow-up question."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str


class ResearchQuery(BaseModel):
    """Immutable input to one research session."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(min_length=1)
    jurisdiction: str = ""
    effective_date: date | None = None
    prior_turns: tuple[Turn, ...] = ()


class EvidenceItem(BaseModel):
    """A single piece of authority gathered during the session."""

    title: str
    citation: str | None = None
    court: str | None = None
    date: str | None = None
    summary: str = ""
    url: str | None = None
    source: str = "case_law_search"
    confidence: Confidence = Confidence.MEDIUM

    def text(self) -> str:
        return " ".join(p for p in (self.title, self.citation or "", self.summary) if p)

    def dedupe_key(self) -> str:
        return (self.citation or self.title).strip().lower()


class KnowledgeGap(BaseModel):
    """A missing category of legal authority."""

    category: GapCategory
    description: str


class CitationVerificationResult(BaseModel):
    """Outcome of looking a citation up against the case-law service."""

    found: bool
    citation: str
    case_name: str | None = None
    court: str | None = None
    date: str | None = None
    url: str | None = None
    error_message: str | None = None


class Authority(BaseModel):
    """A citation used in the answer together with its verification status."""

    citation: str
    verification: CitationVerificationResult

    @property
    def verified(self) -> bool:
        return self.verification.found


class ValidationResult(BaseModel):
    """Errors block (flag) a response; warnings only annotate it."""

    valid: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.valid = False

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def has_issues(self) -> bool:
        return bool(self.errors or self.warnings)

    def summary(self) -> str:
        if self.valid and not self.has_issues():
            return "Validation passed"
        return "Validation {}: {} errors, {} warnings".format(
            "passed with warnings" if self.valid else "FAILED",
            len(self.errors),
            len(self.warnings),
        )


class ResearchError(BaseModel):
    """Structured, caller-facing failure description."""

    code: ResearchStatus
    message: str


class ResearchFinding(BaseModel):
    """Terminal artifact of a research session."""

    session_id: str
    query: ResearchQuery
    status: ResearchStatus
    answer: str = ""
    confidence: Confidence = Confidence.LOW
    authorities: list[Authority] = Field(default_factory=list)
    evidence: list[EvidenceItem] = Field(default_factory=list)
    knowledge_gaps: list[KnowledgeGap] = Field(default_factory=list)
    follow_up_queries: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    validation: ValidationResult = Field(default_factory=ValidationResult)
    requires_manual_review: bool = False
    rounds_used: int = 0
    round_cap_reached: bool = False
    error: ResearchError | None = None
