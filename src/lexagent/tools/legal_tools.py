"""The legal research tool set exposed to the model.

Definitions are the schemas the model sees; :class:`LegalTools` holds the handlers. Network
tools return their structured payload in ``metadata`` next to the rendered text, so other
components (the initial search, deep research) can reuse cached results.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, Mapping

from lexagent.logging import get_logger
from lexagent.tools.case_law import CaseLawSearch, CaseRecord
from lexagent.tools.deadlines import (
    DeadlineInfo,
    describe_deadline,
    long_date,
    parse_iso_date,
    render_timeline_markdown,
    validate_timeline,
)
from lexagent.tools.motion_templates import render_motion
from lexagent.tools.registry import LegalToolName, ToolDefinition, ToolHandler, ToolRegistry, ToolResult
from lexagent.tools.regulations import RegulationSource
from lexagent.validation.citations import CitationVerifier, format_verification

logger = get_logger(__name__)

Today = Callable[[], date]

MAX_LISTED_CASES = 10
MIN_CASES_WITHOUT_WARNING = 5
SUMMARY_CHARS = 300

_EVENTS_SCHEMA: dict[str, Any] = {
    "type": "array",
    "description": "List of events with dates",
    "items": {
        "type": "object",
        "properties": {
            "event_name": {"type": "string"},
            "event_date": {"type": "string", "description": "Date in YYYY-MM-DD format"},
        },
        "required": ["event_name", "event_date"],
    },
}

TOOL_DEFINITIONS: dict[LegalToolName, ToolDefinition] = {
    LegalToolName.SEARCH_CASE_LAW: ToolDefinition(
        name=LegalToolName.SEARCH_CASE_LAW.value,
        description=(
            "Search for controlling case law precedents. Returns court decisions with citations, "
            "courts, dates and holdings. Aim for 5-10 relevant cases; run several searches with "
            "different keywords or jurisdictions if needed. Use from_year for recent developments."
        ),
        parameters={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query (case name, legal issue, keywords)"},
                "jurisdiction": {
                    "type": "string",
                    "description": "Court jurisdiction (e.g. 'massachusetts', 'ca1', 'scotus')",
                },
                "from_year": {"type": "integer", "description": "Earliest filing year (defaults to ten years ago)"},
            },
            "required": ["query"],
        },
    ),
    LegalToolName.GET_CFR_TEXT: ToolDefinition(
        name=LegalToolName.GET_CFR_TEXT.value,
        description="Retrieve the text of a federal regulation from the Code of Federal Regulations (CFR).",
        parameters={
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "CFR title number (e.g. '8' for immigration, '29' for labor)"},
                "part": {"type": "string", "description": "Part number (e.g. '1003')"},
                "section": {"type": "string", "description": "Section number (e.g. '23')"},
            },
            "required": ["title", "part"],
        },
    ),
    LegalToolName.VERIFY_CITATION: ToolDefinition(
        name=LegalToolName.VERIFY_CITATION.value,
        description=(
            "Verify that a case citation exists. Include the case name when known "
            "(e.g. 'Bell Atlantic Corp. v. Twombly, 550 U.S. 544'). Returns case details if found."
        ),
        parameters={
            "type": "object",
            "properties": {"citation": {"type": "string", "description": "Case citation to verify"}},
            "required": ["citation"],
        },
    ),
    LegalToolName.GET_CURRENT_DATE: ToolDefinition(
        name=LegalToolName.GET_CURRENT_DATE.value,
        description=(
            "Get the current system date in ISO format (YYYY-MM-DD). ALWAYS call this first before "
            "analyzing deadlines."
        ),
        parameters={"type": "object", "properties": {}},
    ),
    LegalToolName.CHECK_DEADLINE_STATUS: ToolDefinition(
        name=LegalToolName.CHECK_DEADLINE_STATUS.value,
        description=(
            "Check whether a deadline has passed, is today, or is upcoming, with days until/since. "
            "MANDATORY for every deadline mentioned in your response."
        ),
        parameters={
            "type": "object",
            "properties": {
                "deadline_date": {"type": "string", "description": "Deadline date in YYYY-MM-DD format"},
                "event_name": {
                    "type": "string",
                    "description": "Name of the event (e.g. 'Preliminary Injunction Hearing', 'Discovery Cutoff')",
                },
            },
            "required": ["deadline_date", "event_name"],
        },
    ),
    LegalToolName.VALIDATE_CASE_TIMELINE: ToolDefinition(
        name=LegalToolName.VALIDATE_CASE_TIMELINE.value,
        description=(
            "Validate a set of case events: identifies passed, today and upcoming deadlines and "
            "reports unparsable dates. Use when analyzing multiple deadlines."
        ),
        parameters={"type": "object", "properties": {"events": _EVENTS_SCHEMA}, "required": ["events"]},
    ),
    LegalToolName.GENERATE_CASE_TIMELINE: ToolDefinition(
        name=LegalToolName.GENERATE_CASE_TIMELINE.value,
        description="Generate a markdown timeline of case events with urgency indicators.",
        parameters={"type": "object", "properties": {"events": _EVENTS_SCHEMA}, "required": ["events"]},
    ),
    LegalToolName.GENERATE_MOTION_TEMPLATE: ToolDefinition(
        name=LegalToolName.GENERATE_MOTION_TEMPLATE.value,
        description=(
            "Generate sample motion language (suppress, dismiss, continue, discovery, in limine, or "
            "a generic motion) filled with the given case facts."
        ),
        parameters={
            "type": "object",
            "properties": {
                "motion_type": {"type": "string", "description": "e.g. 'suppress', 'dismiss', 'motion_in_limine'"},
                "defendant": {"type": "string"},
                "grounds": {"type": "string"},
                "incident_date": {"type": "string"},
                "moving_party": {"type": "string"},
                "reason": {"type": "string"},
                "current_hearing_date": {"type": "string"},
                "items_requested": {"type": "string"},
                "evidence": {"type": "string"},
            },
            "required": ["motion_type"],
        },
    ),
}


def _require(params: Mapping[str, Any], key: str) -> str:
    value = params.get(key)
    if value is None or not str(value).strip():
        raise ValueError(f"Missing required parameter '{key}'")
    return str(value).strip()


def _truncate(text: str, limit: int) -> str:
    text = " ".join((text or "").split())
    return text if len(text) <= limit else text[:limit].rstrip() + "..."


def format_case_results(query: str, cases: list[CaseRecord]) -> str:
    if not cases:
        return f"No cases found for query: {query}"
    lines = [f"Found {len(cases)} cases:"]
    if len(cases) < MIN_CASES_WITHOUT_WARNING:
        lines.append(
            f"WARNING: Only {len(cases)} cases found. Counsel-ready responses require 5-10 precedents. "
            "Conduct additional searches with different keywords or jurisdictions."
        )
    lines.append("")
    for i, case in enumerate(cases[:MAX_LISTED_CASES], start=1):
        lines.append(f"{i}. {case.case_name}")
        lines.append(f"   Citation: {case.citation or 'n/a'}")
        lines.append(f"   Court: {case.court or 'n/a'} | Date: {case.date_filed or 'n/a'}")
        if case.summary:
            lines.append(f"   Holding/Summary: {_truncate(case.summary, SUMMARY_CHARS)}")
        if case.url:
            lines.append(f"   URL: {case.url}")
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


class LegalTools:
    """Handlers for every :class:`LegalToolName`."""

    def __init__(
        self,
        *,
        case_law: CaseLawSearch,
        regulations: RegulationSource,
        verifier: CitationVerifier | None = None,
        today: Today | None = None,
        search_years: int = 10,
    ) -> None:
        self._case_law = case_law
        self._regulations = regulations
        self._verifier = verifier or CitationVerifier(case_law)
        self._today = today or date.today
        self._search_years = search_years

    def search_case_law(self, params: Mapping[str, Any]) -> ToolResult:
        query = _require(params, "query")
        jurisdiction = str(params.get("jurisdiction") or "").strip() or None
        from_year = params.get("from_year")
        if from_year is not None and str(from_year).strip():
            from_date = date(int(from_year), 1, 1)
        else:
            today = self._today()
            from_date = today.replace(year=today.year - self._search_years, day=min(today.day, 28))

        cases = self._case_law.search_opinions(query, jurisdiction=jurisdiction, from_date=from_date)
        return ToolResult(
            success=True,
            content=format_case_results(query, cases),
            metadata={
                "found": bool(cases),
                "result_count": len(cases),
                "cases": [c.model_dump() for c in cases],
            },
        )

    def get_cfr_text(self, params: Mapping[str, Any]) -> ToolResult:
        title = _require(params, "title")
        part = _require(params, "part")
        section = str(params.get("section") or "").strip() or None
        text = self._regulations.get_regulation_text(title, part, section)
        return ToolResult(success=True, content=text, metadata={"found": not text.startswith("Regulation not found")})

    def verify_citation(self, params: Mapping[str, Any]) -> ToolResult:
        citation = _require(params, "citation")
        result = self._verifier.verify(citation)
        return ToolResult(
            success=True,
            content=format_verification(result),
            metadata={"found": result.found, "verification": result.model_dump()},
        )

    def get_current_date(self, params: Mapping[str, Any]) -> ToolResult:
        today = self._today()
        return ToolResult(
            success=True,
            content=f"Current date: {today.isoformat()} ({today.strftime('%A')}, {long_date(today)})",
            metadata={"date": today.isoformat()},
        )

    def check_deadline_status(self, params: Mapping[str, Any]) -> ToolResult:
        event_name = str(params.get("event_name") or "Unnamed event").strip()
        when = parse_iso_date(params.get("deadline_date"))
        info = DeadlineInfo.classify(event_name, when, self._today())
        logger.info("Deadline checked", extra={"event": event_name, "status": info.status.value})
        return ToolResult(success=True, content=describe_deadline(info), metadata=info.to_dict())

    def validate_case_timeline(self, params: Mapping[str, Any]) -> ToolResult:
        events = params.get("events") or []
        if not isinstance(events, list) or not events:
            return ToolResult(success=True, content="No events provided for timeline validation.")
        report = validate_timeline(events, self._today())
        return ToolResult(success=True, content=report.render(), metadata=report.to_dict())

    def generate_case_timeline(self, params: Mapping[str, Any]) -> ToolResult:
        events = params.get("events") or []
        if not isinstance(events, list):
            events = []
        return ToolResult(success=True, content=render_timeline_markdown(events, self._today()))

    def generate_motion_template(self, params: Mapping[str, Any]) -> ToolResult:
        motion_type = _require(params, "motion_type")
        facts = {k: v for k, v in params.items() if k != "motion_type"}
        return ToolResult(success=True, content=render_motion(motion_type, facts))

    def handlers(self) -> dict[LegalToolName, ToolHandler]:
        return {
            LegalToolName.SEARCH_CASE_LAW: self.search_case_law,
            LegalToolName.GET_CFR_TEXT: self.get_cfr_text,
            LegalToolName.VERIFY_CITATION: self.verify_citation,
            LegalToolName.GET_CURRENT_DATE: self.get_current_date,
            LegalToolName.CHECK_DEADLINE_STATUS: self.check_deadline_status,
            LegalToolName.VALIDATE_CASE_TIMELINE: self.validate_case_timeline,
            LegalToolName.GENERATE_CASE_TIMELINE: self.generate_case_timeline,
            LegalToolName.GENERATE_MOTION_TEMPLATE: self.generate_motion_template,
        }


def build_registry(tools: LegalTools) -> ToolRegistry:
    return ToolRegistry(TOOL_DEFINITIONS, tools.handlers())

