"""Shared fakes for the research engine tests."""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, Sequence

import pytest

from lexagent.cache.tool_cache import InMemoryToolResultCache
from lexagent.config import Settings
from lexagent.llm.client import ChatMessage, CompletionResult
from lexagent.orchestrator.runner import ResearchOrchestrator
from lexagent.tools.case_law import CaseRecord
from lexagent.tools.legal_tools import LegalTools, build_registry

TODAY = date(2025, 6, 1)


class FixedClock:
    """Manually advanced clock for cache expiry tests."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCaseLaw:
    """In-memory case-law service that counts calls."""

    def __init__(
        self,
        records: Sequence[CaseRecord] = (),
        *,
        by_query: dict[str, list[CaseRecord]] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.records = list(records)
        self.by_query = dict(by_query or {})
        self.error = error
        self.calls: list[str] = []
        self.on_call: Callable[[], None] | None = None

    def search_opinions(
        self,
        query: str,
        *,
        jurisdiction: str | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[CaseRecord]:
        self.calls.append(query)
        if self.on_call is not None:
            self.on_call()
        if self.error is not None:
            raise self.error
        if query in self.by_query:
            return list(self.by_query[query])
        return list(self.records)


class FakeRegulations:
    def __init__(self, text: str = "Sec. 1.1 Purpose. This part applies to all filings.") -> None:
        self.text = text
        self.calls: list[tuple[str, str, str | None]] = []

    def get_regulation_text(self, title: str, part: str, section: str | None = None) -> str:
        self.calls.append((title, part, section))
        return f"{title} CFR {part} (as of 2025-05-30):\n{self.text}"


class ScriptedCompletion:
    """Completion provider that replays scripted results.

    Items may be ``CompletionResult`` objects or exceptions to raise. Once the script runs out,
    ``fallback`` (called with the 1-based call number) supplies the result.
    """

    def __init__(
        self,
        script: Sequence[CompletionResult | Exception] = (),
        *,
        fallback: Callable[[int], CompletionResult] | None = None,
    ) -> None:
        self._script = list(script)
        self._fallback = fallback
        self.calls: list[dict[str, Any]] = []

    def complete(
        self,
        messages: Sequence[ChatMessage],
        *,
        tools: Sequence[Any] | None = None,
        temperature: float = 0.2,
    ) -> CompletionResult:
        self.calls.append({"messages": list(messages), "tools": tools})
        if self._script:
            item = self._script.pop(0)
        elif self._fallback is not None:
            item = self._fallback(len(self.calls))
        else:
            item = CompletionResult(text="")
        if isinstance(item, Exception):
            raise item
        return item


def case(name: str, citation: str | None, summary: str = "", court: str = "mass") -> CaseRecord:
    return CaseRecord(
        case_name=name,
        citation=citation,
        court=court,
        date_filed="2019-03-04",
        url=f"/opinion/{abs(hash(name)) % 100000}/{name.lower().replace(' ', '-')}/",
        summary=summary,
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(openai_api_key="test-key", deep_research_enabled=False, max_tool_rounds=3)


@pytest.fixture
def case_law() -> FakeCaseLaw:
    return FakeCaseLaw()


@pytest.fixture
def regulations() -> FakeRegulations:
    return FakeRegulations()


@pytest.fixture
def legal_tools(case_law: FakeCaseLaw, regulations: FakeRegulations) -> LegalTools:
    return LegalTools(case_law=case_law, regulations=regulations, today=lambda: TODAY)


@pytest.fixture
def make_orchestrator(
    settings: Settings, legal_tools: LegalTools
) -> Callable[..., ResearchOrchestrator]:
    def _make(completion: Any, **overrides: Any) -> ResearchOrchestrator:
        s = settings.model_copy(update=overrides) if overrides else settings
        return ResearchOrchestrator(
            s,
            completion=completion,
            registry=build_registry(legal_tools),
            cache=InMemoryToolResultCache(),
            today=lambda: TODAY,
        )

    return _make
