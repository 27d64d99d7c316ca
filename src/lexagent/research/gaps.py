"""Knowledge-gap analysis.

Decides whether the evidence gathered so far is enough, names the categories of authority that
are missing, and turns those gaps into targeted follow-up searches. The sufficiency decision is
a fixed heuristic; the model is only consulted to sharpen gap descriptions and queries.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from lexagent.errors import CompletionError
from lexagent.llm.client import ChatMessage, CompletionProvider
from lexagent.logging import get_logger
from lexagent.models.research import EvidenceItem, GapCategory, KnowledgeGap
from lexagent.prompts import (
    FOLLOW_UP_QUERIES_PROMPT,
    FOLLOW_UP_QUERIES_SYSTEM_PROMPT,
    GAP_ANALYSIS_PROMPT,
    GAP_ANALYSIS_SYSTEM_PROMPT,
)
from lexagent.utils.tags import extract_json_array, extract_list

logger = get_logger(__name__)

STATE_LAW_KEYWORDS = ("mass.", "massachusetts", "r. civ. p.", "state court", "state law", "civil procedure")
PROCEDURAL_QUERY_KEYWORDS = ("motion", "procedure", "filing", "rule", "deadline")
PROCEDURAL_VOCABULARY = ("procedure", "filing", "deadline", "form", "motion", "rule")

_CATEGORY_SIGNALS: dict[GapCategory, tuple[str, ...]] = {
    GapCategory.STATUTORY: ("u.s.c", "usc", "statute", "c.f.r", "cfr", "regulation", "g.l. c.", "code"),
    GapCategory.CASE_LAW: ("v.", " f.", "u.s.", "s. ct.", "n.e.", "court"),
    GapCategory.PROCEDURAL: PROCEDURAL_VOCABULARY,
    GapCategory.TEMPORAL: ("amended", "effective", "recent", "overruled", "superseded"),
    GapCategory.PRACTICAL: ("practice", "compliance", "implementation", "guidance", "checklist"),
}

_FOLLOW_UP_TEMPLATES: dict[GapCategory, str] = {
    GapCategory.STATUTORY: "{query} statute regulation",
    GapCategory.CASE_LAW: "{query} controlling precedent",
    GapCategory.PROCEDURAL: "{query} filing requirements deadline rule",
    GapCategory.JURISDICTIONAL: "{query} {jurisdiction} court",
    GapCategory.TEMPORAL: "{query} recent amendment decision",
    GapCategory.PRACTICAL: "{query} practice guidance compliance",
}


def _lower_blob(evidence: Iterable[EvidenceItem]) -> str:
    return " ".join(e.text() for e in evidence).lower()


def _contains_any(text: str, needles: Sequence[str]) -> bool:
    return any(n in text for n in needles)


def render_evidence(evidence: Sequence[EvidenceItem], limit: int = 10) -> str:
    if not evidence:
        return "(none)"
    return "\n".join(
        f"- {e.title}" + (f" ({e.citation})" if e.citation else "") + (f": {e.summary[:200]}" if e.summary else "")
        for e in evidence[:limit]
    )


def render_gaps(gaps: Sequence[KnowledgeGap]) -> str:
    if not gaps:
        return "(none identified)"
    return "\n".join(f"- [{g.category.value}] {g.description}" for g in gaps)


class KnowledgeGapAnalyzer:
    def __init__(
        self,
        completion: CompletionProvider | None = None,
        *,
        max_follow_up: int = 8,
        min_evidence: int = 3,
    ) -> None:
        self._completion = completion
        self._max_follow_up = max_follow_up
        self._min_evidence = min_evidence

    def needs_deeper_research(self, evidence: Sequence[EvidenceItem], query: str) -> bool:
        """Return True when the evidence cannot support an answer on its own."""

        if not evidence:
            logger.info("Deeper research needed: no evidence", extra={"query": query})
            return True
        if len(evidence) < self._min_evidence:
            logger.info("Deeper research needed: thin evidence", extra={"count": len(evidence)})
            return True

        q = query.lower()
        if _contains_any(q, STATE_LAW_KEYWORDS) or _contains_any(q, PROCEDURAL_QUERY_KEYWORDS):
            has_procedural = any(_contains_any(e.text().lower(), PROCEDURAL_VOCABULARY) for e in evidence)
            if not has_procedural:
                logger.info("Deeper research needed: procedural query lacks procedural guidance")
                return True
        return False

    def identify_gaps(
        self,
        query: str,
        evidence: Sequence[EvidenceItem],
        *,
        jurisdiction: str = "",
    ) -> list[KnowledgeGap]:
        gaps = self._baseline_gaps(query, evidence, jurisdiction)
        if self._completion is None:
            return gaps

        refined = self._model_gaps(query, evidence, jurisdiction)
        if not refined:
            return gaps
        seen = {g.category for g in refined}
        # Model output wins per category; deterministic checks fill the rest.
        return refined + [g for g in gaps if g.category not in seen]

    def generate_follow_up_queries(
        self,
        query: str,
        gaps: Sequence[KnowledgeGap],
        *,
        jurisdiction: str = "",
    ) -> list[str]:
        if not gaps:
            return []

        queries: list[str] = []
        if self._completion is not None:
            queries = self._model_queries(query, gaps, jurisdiction)
        if not queries:
            queries = [
                " ".join(
                    _FOLLOW_UP_TEMPLATES[g.category].format(query=query, jurisdiction=jurisdiction).split()
                )
                for g in gaps
            ]

        out: list[str] = []
        seen: set[str] = set()
        for q in queries:
            key = q.strip().lower()
            if not key or key in seen:
                continue
            seen.add(key)
            out.append(q.strip())
            if len(out) >= self._max_follow_up:
                break
        return out

    def _baseline_gaps(self, query: str, evidence: Sequence[EvidenceItem], jurisdiction: str) -> list[KnowledgeGap]:
        blob = _lower_blob(evidence)
        q = query.lower()
        gaps: list[KnowledgeGap] = []

        if not _contains_any(blob, _CATEGORY_SIGNALS[GapCategory.STATUTORY]):
            gaps.append(KnowledgeGap(category=GapCategory.STATUTORY, description="No governing statute or regulation identified"))
        if not any(e.citation for e in evidence):
            gaps.append(KnowledgeGap(category=GapCategory.CASE_LAW, description="No citable controlling case law found"))
        if not _contains_any(blob, _CATEGORY_SIGNALS[GapCategory.PROCEDURAL]):
            gaps.append(
                KnowledgeGap(
                    category=GapCategory.PROCEDURAL,
                    description="Filing requirements, deadlines and court rules are not covered",
                )
            )
        if jurisdiction and jurisdiction.lower() not in blob:
            gaps.append(
                KnowledgeGap(
                    category=GapCategory.JURISDICTIONAL,
                    description=f"No authority specific to {jurisdiction}",
                )
            )
        elif _contains_any(q, STATE_LAW_KEYWORDS) and "state" not in blob:
            gaps.append(
                KnowledgeGap(category=GapCategory.JURISDICTIONAL, description="State law coverage is missing")
            )
        if not _contains_any(blob, _CATEGORY_SIGNALS[GapCategory.TEMPORAL]):
            gaps.append(
                KnowledgeGap(category=GapCategory.TEMPORAL, description="Recent amendments or decisions not confirmed")
            )
        if not _contains_any(blob, _CATEGORY_SIGNALS[GapCategory.PRACTICAL]):
            gaps.append(
                KnowledgeGap(category=GapCategory.PRACTICAL, description="No practical implementation guidance")
            )
        return gaps

    def _model_gaps(self, query: str, evidence: Sequence[EvidenceItem], jurisdiction: str) -> list[KnowledgeGap]:
        if self._completion is None:
            return []
        prompt = GAP_ANALYSIS_PROMPT.format(
            query=query,
            jurisdiction=jurisdiction or "unspecified",
            evidence=render_evidence(evidence),
        )
        try:
            result = self._completion.complete(
                [ChatMessage(role="system", content=GAP_ANALYSIS_SYSTEM_PROMPT), ChatMessage(role="user", content=prompt)]
            )
        except CompletionError as e:
            logger.warning("Gap analysis completion failed; using deterministic gaps", extra={"error": str(e)})
            return []

        items = extract_json_array(result.text)
        if items is None:
            items = extract_list(result.text, "gap")
        gaps: list[KnowledgeGap] = []
        for item in items:
            if isinstance(item, dict):
                category = _category(item.get("category"))
                description = str(item.get("description") or "").strip()
            else:
                category, description = GapCategory.CASE_LAW, str(item).strip()
            if category is not None and description:
                gaps.append(KnowledgeGap(category=category, description=description))
        return gaps

    def _model_queries(self, query: str, gaps: Sequence[KnowledgeGap], jurisdiction: str) -> list[str]:
        if self._completion is None:
            return []
        prompt = FOLLOW_UP_QUERIES_PROMPT.format(
            query=query,
            jurisdiction=jurisdiction or "unspecified",
            gaps=render_gaps(gaps),
            limit=self._max_follow_up,
        )
        try:
            result = self._completion.complete(
                [
                    ChatMessage(role="system", content=FOLLOW_UP_QUERIES_SYSTEM_PROMPT),
                    ChatMessage(role="user", content=prompt),
                ]
            )
        except CompletionError as e:
            logger.warning("Follow-up query generation failed; using templates", extra={"error": str(e)})
            return []

        items = extract_json_array(result.text)
        if items is None:
            items = extract_list(result.text, "quer", min_chars=3)
        return [str(i).strip() for i in items if isinstance(i, str) and i.strip()]


def _category(raw: object) -> GapCategory | None:
    if not isinstance(raw, str):
        return None
    key = raw.strip().lower().replace("-", "_").replace(" ", "_")
    try:
        return GapCategory(key)
    except ValueError:
        return None
