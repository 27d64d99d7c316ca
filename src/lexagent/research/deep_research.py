"""Deep research pass for sessions whose evidence is insufficient.

The pass runs follow-up case-law searches through the tool dispatcher (so they share the
session cache) and then asks the model for an autonomous research memo. Everything found is
merged into the evidence set, tagged with how much it can be trusted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Sequence

from lexagent.core.concurrency import CancellationToken
from lexagent.errors import CompletionError
from lexagent.llm.client import ChatMessage, CompletionProvider
from lexagent.logging import get_logger
from lexagent.models.research import Confidence, EvidenceItem, KnowledgeGap
from lexagent.prompts import AUTONOMOUS_RESEARCH_PROMPT, AUTONOMOUS_RESEARCH_SYSTEM_PROMPT
from lexagent.research.gaps import render_evidence, render_gaps
from lexagent.research.responses import ParsedResponse, StructuredResponse, parse_research_response
from lexagent.tools.executor import ToolDispatcher
from lexagent.tools.registry import LegalToolName

logger = get_logger(__name__)

AUTONOMOUS_SOURCE = "autonomous_research"
FOLLOW_UP_SOURCE = "follow_up_search"


def evidence_from_cases(cases: Iterable[dict[str, Any]], *, source: str) -> list[EvidenceItem]:
    """Convert case dicts from ``search_case_law`` metadata into evidence items."""

    items: list[EvidenceItem] = []
    for case in cases:
        title = str(case.get("case_name") or "").strip()
        if not title:
            continue
        items.append(
            EvidenceItem(
                title=title,
                citation=case.get("citation") or None,
                court=case.get("court") or None,
                date=case.get("date_filed") or None,
                summary=case.get("summary") or "",
                url=case.get("url") or None,
                source=source,
                confidence=Confidence.MEDIUM,
            )
        )
    return items


def merge_evidence(existing: Sequence[EvidenceItem], new: Iterable[EvidenceItem]) -> list[EvidenceItem]:
    """Append ``new`` to ``existing``, skipping items already present by citation or title."""

    merged = list(existing)
    seen = {e.dedupe_key() for e in merged}
    for item in new:
        key = item.dedupe_key()
        if key in seen:
            continue
        seen.add(key)
        merged.append(item)
    return merged


@dataclass
class DeepResearchOutcome:
    evidence: list[EvidenceItem]
    added: int = 0
    searches_run: int = 0
    parsed: ParsedResponse | None = None
    notes: list[str] = field(default_factory=list)


class DeepResearcher:
    """Broader research pass: follow-up searches plus an autonomous research memo."""

    def __init__(
        self,
        dispatcher: ToolDispatcher,
        completion: CompletionProvider,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._completion = completion
        self._cancel = cancel_token or CancellationToken()

    def run(
        self,
        query: str,
        jurisdiction: str,
        evidence: Sequence[EvidenceItem],
        gaps: Sequence[KnowledgeGap],
        follow_up_queries: Sequence[str],
        *,
        current_date: date,
    ) -> DeepResearchOutcome:
        merged = list(evidence)
        searches = 0

        for q in follow_up_queries:
            self._cancel.raise_if_cancelled()
            params: dict[str, Any] = {"query": q}
            if jurisdiction:
                params["jurisdiction"] = jurisdiction
            result = self._dispatcher.execute(LegalToolName.SEARCH_CASE_LAW.value, params)
            searches += 1
            if not result.success:
                logger.warning("Follow-up search failed", extra={"query": q, "error": result.error})
                continue
            found = evidence_from_cases(result.metadata.get("cases") or [], source=FOLLOW_UP_SOURCE)
            merged = merge_evidence(merged, found)

        self._cancel.raise_if_cancelled()
        parsed = self._autonomous(query, jurisdiction, merged, gaps, current_date)
        notes: list[str] = []
        if parsed is not None:
            item = _evidence_from_response(query, parsed)
            if item is not None:
                merged = merge_evidence(merged, [item])
            notes = parsed.recommendations()

        added = len(merged) - len(evidence)
        logger.info(
            "Deep research finished",
            extra={"searches": searches, "added": added, "structured": isinstance(parsed, StructuredResponse)},
        )
        return DeepResearchOutcome(evidence=merged, added=added, searches_run=searches, parsed=parsed, notes=notes)

    def _autonomous(
        self,
        query: str,
        jurisdiction: str,
        evidence: Sequence[EvidenceItem],
        gaps: Sequence[KnowledgeGap],
        current_date: date,
    ) -> ParsedResponse | None:
        prompt = AUTONOMOUS_RESEARCH_PROMPT.format(
            query=query,
            jurisdiction=jurisdiction or "unspecified",
            current_date=current_date.isoformat(),
            evidence=render_evidence(evidence),
            gaps=render_gaps(gaps),
        )
        try:
            result = self._completion.complete(
                [
                    ChatMessage(role="system", content=AUTONOMOUS_RESEARCH_SYSTEM_PROMPT),
                    ChatMessage(role="user", content=prompt),
                ]
            )
        except CompletionError as e:
            logger.warning("Autonomous research failed; continuing with search evidence", extra={"error": str(e)})
            return None
        if not result.text.strip():
            return None
        return parse_research_response(result.text)


def _evidence_from_response(query: str, parsed: ParsedResponse) -> EvidenceItem | None:
    analysis = parsed.analysis()
    if not analysis:
        return None
    summary = analysis
    case_law = parsed.case_law()
    if case_law:
        summary = f"{analysis}\n\nCase law: {case_law}"
    return EvidenceItem(
        title=f"Autonomous research: {query}",
        summary=summary,
        source=AUTONOMOUS_SOURCE,
        confidence=Confidence.parse(parsed.confidence_label(), Confidence.LOW),
    )
