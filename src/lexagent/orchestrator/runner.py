"""End-to-end research session runner."""

from __future__ import annotations

import asyncio
import uuid
from datetime import date, datetime, timezone
from typing import Any, AsyncIterator, Callable, Generator, Iterator, Sequence

from lexagent.cache import build_cache
from lexagent.cache.tool_cache import ToolResultCache
from lexagent.config import Settings, load_settings
from lexagent.core.concurrency import CancellationToken
from lexagent.errors import CompletionError, ResearchCancelled
from lexagent.events import EventType, ProgressEvent, StepType
from lexagent.llm.client import ChatMessage, CompletionProvider, LLMClient
from lexagent.logging import get_logger, run_context, set_step
from lexagent.models.research import (
    Authority,
    CitationVerificationResult,
    Confidence,
    EvidenceItem,
    KnowledgeGap,
    ResearchError,
    ResearchFinding,
    ResearchQuery,
    ResearchStatus,
    Turn,
    ValidationResult,
)
from lexagent.orchestrator.state import ResearchState, StateMachine
from lexagent.prompts import FINAL_SYNTHESIS_PROMPT, RESEARCH_SYSTEM_PROMPT, RESEARCH_USER_PROMPT
from lexagent.research.deep_research import DeepResearcher, evidence_from_cases, merge_evidence
from lexagent.research.gaps import KnowledgeGapAnalyzer, render_evidence, render_gaps
from lexagent.search.boolean_query import ParsedQuery, parse_query, to_filter_predicate
from lexagent.tools.case_law import create_case_law_search
from lexagent.tools.deadlines import long_date
from lexagent.tools.executor import ToolDispatcher, TTLPolicy
from lexagent.tools.legal_tools import LegalTools, build_registry
from lexagent.tools.regulations import create_regulation_source
from lexagent.tools.registry import LegalToolName, ToolInvocation, ToolRegistry
from lexagent.validation.citations import extract_citations
from lexagent.validation.temporal import TemporalValidator

logger = get_logger(__name__)

Today = Callable[[], date]

SERVICE_UNAVAILABLE_MESSAGE = "Research service unavailable. Please try again later."
NO_RESULTS_MESSAGE = "No legal authority was found for this query."
RESEARCH_INCOMPLETE_MESSAGE = (
    "Research incomplete: the tool call limit was reached before a final answer was produced. "
    "Narrow the question or retry."
)
ROUND_CAP_WARNING = "Tool round limit reached; the answer may be incomplete"

_MAX_CITATIONS_VERIFIED = 20
_HIGH_CONFIDENCE_AUTHORITIES = 3
_TOOL_SEARCH_SOURCE = "tool_search"


def _new_session_id() -> str:
    # Time-based for readability plus a short random suffix to avoid collisions.
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return f"{ts}_{uuid.uuid4().hex[:8]}"


def _review_notice(errors: Sequence[str]) -> str:
    lines = ["**MANUAL REVIEW REQUIRED:** automated date and citation checks flagged this answer."]
    lines.extend(f"- {e}" for e in errors)
    return "\n".join(lines) + "\n\n"


def assess_confidence(validation: ValidationResult, authorities: Sequence[Authority], evidence: Sequence[EvidenceItem]) -> Confidence:
    verified = sum(1 for a in authorities if a.verified)
    if not validation.valid:
        return Confidence.LOW
    if not evidence and verified == 0:
        return Confidence.LOW
    if verified >= _HIGH_CONFIDENCE_AUTHORITIES and not validation.warnings:
        return Confidence.HIGH
    return Confidence.MEDIUM


class ResearchSession:
    """One research request, driven to completion by iterating :meth:`events`.

    After the iterator is exhausted, :attr:`finding` holds the result. Cancellation surfaces as
    :class:`ResearchCancelled` from the iterator.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        completion: CompletionProvider,
        registry: ToolRegistry,
        cache: ToolResultCache,
        query: ResearchQuery,
        today: Today,
        session_id: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        self.settings = settings
        self.query = query
        self.session_id = session_id or _new_session_id()
        self.cancel_token = cancel_token or CancellationToken()
        self.finding: ResearchFinding | None = None

        self._completion = completion
        self._registry = registry
        self._today = today()
        self._dispatcher = ToolDispatcher(registry, cache, TTLPolicy(settings), cancel_token=self.cancel_token)
        self._analyzer = KnowledgeGapAnalyzer(
            completion if settings.model_gap_analysis else None,
            max_follow_up=settings.max_follow_up_queries,
            min_evidence=settings.min_evidence_count,
        )
        self._deep = DeepResearcher(self._dispatcher, completion, cancel_token=self.cancel_token)
        self._temporal = TemporalValidator(
            window_chars=settings.validation_window_chars,
            day_tolerance=settings.day_tolerance,
        )
        self._sm = StateMachine()
        self._seq = 0
        self._progress = 0

        self._evidence: list[EvidenceItem] = []
        self._gaps: list[KnowledgeGap] = []
        self._follow_ups: list[str] = []
        self._recommendations: list[str] = []

    @property
    def state(self) -> ResearchState:
        return self._sm.state

    def _emit(
        self,
        step: StepType,
        message: str,
        progress: int | None = None,
        *,
        event_type: EventType = EventType.PROGRESS,
        data: dict[str, Any] | None = None,
    ) -> ProgressEvent:
        self._seq += 1
        if progress is not None:
            self._progress = max(self._progress, min(progress, 100))
        return ProgressEvent(
            session_id=self.session_id,
            seq=self._seq,
            event_type=event_type,
            step_type=step,
            message=message,
            progress_percent=self._progress,
            data=data,
        )

    def events(self) -> Iterator[ProgressEvent]:
        q = self.query
        with run_context(session_id=self.session_id, step=self._sm.state.value):
            logger.info(
                "Research session started",
                extra={"query": q.text, "jurisdiction": q.jurisdiction, "today": self._today.isoformat()},
            )
            yield self._emit(StepType.QUERY_ANALYSIS, "Analyzing legal query", 10)

            step = StepType.QUERY_ANALYSIS
            try:
                self.cancel_token.raise_if_cancelled()
                self._sm.transition(ResearchState.SEARCHING)
                parsed = parse_query(q.text)

                step = StepType.DATABASE_SEARCH
                yield self._emit(
                    StepType.DATABASE_SEARCH,
                    "Searching case law databases",
                    25,
                    data={"search": parsed.to_search_string() or q.text},
                )
                self._evidence = self._initial_search(parsed)
                yield from self._assess_evidence()

                step = StepType.AI_ANALYSIS
                self._sm.transition(ResearchState.TOOL_LOOP)
                answer, rounds, cap_reached = yield from self._tool_loop()

                step = StepType.RESPONSE_GENERATION
                self._sm.transition(ResearchState.VALIDATING)
                yield self._emit(StepType.RESPONSE_GENERATION, "Validating dates and citations", 90)
                finding = self._conclude(answer, rounds, cap_reached)
                self._sm.transition(ResearchState.DONE)
            except CompletionError as e:
                self._sm.fail()
                logger.error(
                    "Completion capability failed; research session failed",
                    extra={"error": str(e), "transient": e.transient},
                )
                self.finding = self._failed_finding()
                yield self._emit(
                    step,
                    SERVICE_UNAVAILABLE_MESSAGE,
                    event_type=EventType.ERROR,
                    data={"finding": self.finding.model_dump(mode="json")},
                )
                return
            except ResearchCancelled:
                self._sm.fail()
                logger.info("Research session cancelled", extra={"reason": self.cancel_token.reason})
                raise

            self.finding = finding
            logger.info(
                "Research session finished",
                extra={
                    "status": finding.status.value,
                    "confidence": finding.confidence.value,
                    "rounds": finding.rounds_used,
                    "evidence": len(finding.evidence),
                },
            )
            yield self._emit(
                StepType.RESPONSE_GENERATION,
                "Research complete",
                100,
                event_type=EventType.COMPLETE,
                data={"finding": finding.model_dump(mode="json")},
            )

    def _initial_search(self, parsed: ParsedQuery) -> list[EvidenceItem]:
        q = self.query
        params: dict[str, Any] = {"query": parsed.to_search_string() or q.text}
        if q.jurisdiction:
            params["jurisdiction"] = q.jurisdiction
        result = self._dispatcher.execute(LegalToolName.SEARCH_CASE_LAW.value, params)
        if not result.success:
            logger.warning("Initial case law search failed", extra={"error": result.error})
            return []

        cases = list(result.metadata.get("cases") or [])
        if parsed.has_advanced_operators():
            keep = to_filter_predicate(parsed, "case_name", "summary", "citation")
            cases = [c for c in cases if keep(c)]
        evidence = evidence_from_cases(cases, source="case_law_search")
        logger.info("Initial search finished", extra={"results": len(evidence), "cached": result.metadata.get("cached")})
        return evidence

    def _assess_evidence(self) -> Generator[ProgressEvent, None, None]:
        q = self.query
        self._gaps = self._analyzer.identify_gaps(q.text, self._evidence, jurisdiction=q.jurisdiction)
        if not self._analyzer.needs_deeper_research(self._evidence, q.text):
            return

        self._follow_ups = self._analyzer.generate_follow_up_queries(q.text, self._gaps, jurisdiction=q.jurisdiction)
        if not self.settings.deep_research_enabled:
            return

        yield self._emit(
            StepType.DATABASE_SEARCH,
            "Evidence is thin; running deep research",
            30,
            data={"gaps": [g.category.value for g in self._gaps], "queries": list(self._follow_ups)},
        )
        outcome = self._deep.run(
            q.text,
            q.jurisdiction,
            self._evidence,
            self._gaps,
            self._follow_ups,
            current_date=self._today,
        )
        self._evidence = outcome.evidence
        self._recommendations = list(outcome.notes)
        yield self._emit(
            StepType.DATABASE_SEARCH,
            f"Deep research added {outcome.added} sources",
            35,
            data={"added": outcome.added, "searches": outcome.searches_run},
        )

    def _conversation(self) -> list[ChatMessage]:
        q = self.query
        today = self._today
        messages = [
            ChatMessage(
                role="system",
                content=RESEARCH_SYSTEM_PROMPT.format(
                    current_date=f"{today.isoformat()} ({long_date(today)})",
                    weekday=today.strftime("%A"),
                ),
            )
        ]
        messages.extend(ChatMessage(role=t.role, content=t.content) for t in q.prior_turns)
        messages.append(
            ChatMessage(
                role="user",
                content=RESEARCH_USER_PROMPT.format(
                    query=q.text,
                    jurisdiction=q.jurisdiction or "unspecified",
                    effective_date=q.effective_date.isoformat() if q.effective_date else today.isoformat(),
                    evidence=render_evidence(self._evidence, limit=15),
                    gaps=render_gaps(self._gaps),
                ),
            )
        )
        return messages

    def _tool_loop(self) -> Generator[ProgressEvent, None, tuple[str, int, bool]]:
        cap = self.settings.max_tool_rounds
        tools = self._registry.get_definitions()
        messages = self._conversation()

        for round_no in range(1, cap + 1):
            self.cancel_token.raise_if_cancelled()
            set_step(f"tool_loop:{round_no}")
            yield self._emit(
                StepType.AI_ANALYSIS,
                f"AI analysis round {round_no}",
                40 + (45 * (round_no - 1)) // cap,
                data={"round": round_no},
            )
            completion = self._completion.complete(messages, tools=tools)
            self.cancel_token.raise_if_cancelled()
            if not completion.wants_tools:
                logger.info("Model produced a final answer", extra={"rounds": round_no})
                return completion.text.strip(), round_no, False

            messages.append(ChatMessage(role="assistant", content=completion.text, tool_calls=completion.tool_use_requests))
            for req in completion.tool_use_requests:
                call = self._dispatcher.execute_invocation(ToolInvocation(id=req.id, name=req.name, arguments=req.arguments))
                messages.append(ChatMessage(role="tool", content=call.formatted_response, tool_call_id=req.id))
                if req.name == LegalToolName.SEARCH_CASE_LAW.value and call.result.success:
                    found = evidence_from_cases(call.result.metadata.get("cases") or [], source=_TOOL_SEARCH_SOURCE)
                    self._evidence = merge_evidence(self._evidence, found)
                yield self._emit(
                    StepType.TOOL_EXECUTION,
                    f"Executed {req.name}",
                    data={"tool": req.name, "success": call.result.success, "cached": call.result.metadata.get("cached")},
                )

        logger.warning("Tool round cap reached; forcing final synthesis", extra={"cap": cap})
        self.cancel_token.raise_if_cancelled()
        messages.append(ChatMessage(role="user", content=FINAL_SYNTHESIS_PROMPT))
        try:
            final = self._completion.complete(messages, tools=None)
        except CompletionError as e:
            logger.warning("Forced synthesis failed", extra={"error": str(e)})
            return RESEARCH_INCOMPLETE_MESSAGE, cap, True
        self.cancel_token.raise_if_cancelled()
        text = final.text.strip()
        return (text or RESEARCH_INCOMPLETE_MESSAGE), cap, True

    def _verify(self, citation: str) -> CitationVerificationResult:
        result = self._dispatcher.execute(LegalToolName.VERIFY_CITATION.value, {"citation": citation})
        raw = result.metadata.get("verification") if result.success else None
        if raw:
            return CitationVerificationResult.model_validate(raw)
        return CitationVerificationResult(found=False, citation=citation, error_message=result.error)

    def _conclude(self, answer: str, rounds: int, cap_reached: bool) -> ResearchFinding:
        q = self.query
        base: dict[str, Any] = {
            "session_id": self.session_id,
            "query": q,
            "evidence": self._evidence,
            "knowledge_gaps": self._gaps,
            "follow_up_queries": self._follow_ups,
            "recommendations": self._recommendations,
            "rounds_used": rounds,
            "round_cap_reached": cap_reached,
        }
        if not answer and not self._evidence:
            return ResearchFinding(
                **base,
                status=ResearchStatus.NO_RESULTS,
                error=ResearchError(code=ResearchStatus.NO_RESULTS, message=NO_RESULTS_MESSAGE),
            )

        validation = self._temporal.validate_temporal_consistency(answer, self._today)
        authorities: list[Authority] = []
        for citation in extract_citations(answer)[:_MAX_CITATIONS_VERIFIED]:
            verification = self._verify(citation)
            authorities.append(Authority(citation=citation, verification=verification))
            if not verification.found:
                validation.add_warning(f"Citation could not be verified: {citation}")
        if cap_reached:
            validation.add_warning(ROUND_CAP_WARNING)

        if validation.valid:
            logger.info("Validation finished", extra={"summary": validation.summary()})
        else:
            logger.warning("Validation failed", extra={"errors": validation.errors})

        requires_review = not validation.valid
        if requires_review:
            answer = _review_notice(validation.errors) + answer

        return ResearchFinding(
            **base,
            status=ResearchStatus.SUCCEEDED_WITH_WARNINGS if validation.has_issues() else ResearchStatus.SUCCEEDED,
            answer=answer,
            confidence=assess_confidence(validation, authorities, self._evidence),
            authorities=authorities,
            validation=validation,
            requires_manual_review=requires_review,
        )

    def _failed_finding(self) -> ResearchFinding:
        return ResearchFinding(
            session_id=self.session_id,
            query=self.query,
            status=ResearchStatus.SERVICE_UNAVAILABLE,
            evidence=self._evidence,
            knowledge_gaps=self._gaps,
            follow_up_queries=self._follow_ups,
            recommendations=self._recommendations,
            error=ResearchError(code=ResearchStatus.SERVICE_UNAVAILABLE, message=SERVICE_UNAVAILABLE_MESSAGE),
        )


class ResearchOrchestrator:
    """Long-lived owner of the shared collaborators; creates one session per request."""

    def __init__(
        self,
        settings: Settings,
        *,
        completion: CompletionProvider,
        registry: ToolRegistry,
        cache: ToolResultCache,
        today: Today | None = None,
    ) -> None:
        self.settings = settings
        self.completion = completion
        self.registry = registry
        self.cache = cache
        self._today = today or date.today

    def session(
        self,
        query: ResearchQuery,
        *,
        session_id: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> ResearchSession:
        return ResearchSession(
            settings=self.settings,
            completion=self.completion,
            registry=self.registry,
            cache=self.cache,
            query=query,
            today=self._today,
            session_id=session_id,
            cancel_token=cancel_token,
        )

    def run(self, query: ResearchQuery, *, cancel_token: CancellationToken | None = None) -> ResearchFinding:
        session = self.session(query, cancel_token=cancel_token)
        for _ in session.events():
            pass
        if session.finding is None:
            raise RuntimeError("research session finished without producing a finding")
        return session.finding

    def stream(self, query: ResearchQuery, *, cancel_token: CancellationToken | None = None) -> Iterator[ProgressEvent]:
        return self.session(query, cancel_token=cancel_token).events()


def build_orchestrator(settings: Settings, *, completion: CompletionProvider | None = None) -> ResearchOrchestrator:
    """Wire the production collaborators from settings."""

    case_law = create_case_law_search(settings)
    tools = LegalTools(
        case_law=case_law,
        regulations=create_regulation_source(settings),
        search_years=settings.initial_search_years,
    )
    return ResearchOrchestrator(
        settings,
        completion=completion or LLMClient(settings),
        registry=build_registry(tools),
        cache=build_cache(settings),
    )


def _make_query(
    query: str,
    jurisdiction: str,
    effective_date: date | None,
    prior_turns: Sequence[Turn | dict[str, str]] | None,
) -> ResearchQuery:
    turns = tuple(t if isinstance(t, Turn) else Turn.model_validate(t) for t in (prior_turns or ()))
    return ResearchQuery(text=query, jurisdiction=jurisdiction, effective_date=effective_date, prior_turns=turns)


def run_research(
    query: str,
    jurisdiction: str = "",
    effective_date: date | None = None,
    prior_turns: Sequence[Turn | dict[str, str]] | None = None,
    *,
    orchestrator: ResearchOrchestrator | None = None,
    settings: Settings | None = None,
    cancel_token: CancellationToken | None = None,
) -> ResearchFinding:
    """Run one research session to completion.

    Returns:
        ResearchFinding: Always returned for completion failures and empty results; inspect
            ``status`` and ``error``.

    Raises:
        ResearchCancelled: If ``cancel_token`` is cancelled mid-session.
    """

    orch = orchestrator or build_orchestrator(settings or load_settings())
    return orch.run(_make_query(query, jurisdiction, effective_date, prior_turns), cancel_token=cancel_token)


def run_research_stream(
    query: str,
    jurisdiction: str = "",
    effective_date: date | None = None,
    prior_turns: Sequence[Turn | dict[str, str]] | None = None,
    *,
    orchestrator: ResearchOrchestrator | None = None,
    settings: Settings | None = None,
    cancel_token: CancellationToken | None = None,
) -> Iterator[ProgressEvent]:
    """Run one research session and yield progress events.

    The last event is ``complete`` (carrying the finding) or ``error``.
    """

    orch = orchestrator or build_orchestrator(settings or load_settings())
    yield from orch.stream(_make_query(query, jurisdiction, effective_date, prior_turns), cancel_token=cancel_token)


async def run_research_stream_async(
    query: str,
    jurisdiction: str = "",
    effective_date: date | None = None,
    prior_turns: Sequence[Turn | dict[str, str]] | None = None,
    *,
    orchestrator: ResearchOrchestrator | None = None,
    settings: Settings | None = None,
    cancel_token: CancellationToken | None = None,
) -> AsyncIterator[ProgressEvent]:
    """Async version of :func:`run_research_stream` for async servers.

    The session runs on a worker thread so blocking model and HTTP calls never stall the event
    loop. If the consumer stops iterating, the session is cancelled.
    """

    loop = asyncio.get_running_loop()
    token = cancel_token or CancellationToken()
    queue: asyncio.Queue[object] = asyncio.Queue()
    done = object()

    def pump() -> None:
        try:
            for ev in run_research_stream(
                query,
                jurisdiction,
                effective_date,
                prior_turns,
                orchestrator=orchestrator,
                settings=settings,
                cancel_token=token,
            ):
                loop.call_soon_threadsafe(queue.put_nowait, ev)
        except Exception as e:
            loop.call_soon_threadsafe(queue.put_nowait, e)
        finally:
            loop.call_soon_threadsafe(queue.put_nowait, done)

    worker = asyncio.ensure_future(asyncio.to_thread(pump))
    try:
        while True:
            item = await queue.get()
            if item is done:
                break
            if isinstance(item, Exception):
                raise item
            if not isinstance(item, ProgressEvent):
                raise RuntimeError(f"unexpected item on the research stream: {item!r}")
            yield item
    finally:
        if not worker.done():
            token.cancel("stream consumer went away")
