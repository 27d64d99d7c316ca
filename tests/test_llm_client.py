"""Tests for the OpenAI-backed completion client."""

from __future__ import annotations

from types import SimpleNamespace

import httpx
import openai
import pytest

import lexagent.llm.client as client_mod
from lexagent.config import Settings
from lexagent.errors import CompletionError
from lexagent.llm.client import ChatMessage, LLMClient, ToolUseRequest
from lexagent.tools.legal_tools import TOOL_DEFINITIONS

_REQUEST = httpx.Request("POST", "https://api.openai.test/v1/chat/completions")


def _response(content: str | None = "", tool_calls: list | None = None) -> SimpleNamespace:
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(create, **overrides) -> LLMClient:
    settings = Settings(openai_api_key="test-key", openai_retry_backoff_s=0.0, **overrides)
    llm = LLMClient(settings)
    llm._client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    return llm


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch) -> list[float]:
    slept: list[float] = []
    monkeypatch.setattr(client_mod.time, "sleep", slept.append)
    return slept


def test_missing_api_key() -> None:
    with pytest.raises(ValueError, match="LEXAGENT_OPENAI_API_KEY"):
        LLMClient(Settings(openai_api_key=None))


def test_tool_calls_are_parsed() -> None:
    """It should turn function tool calls into tool-use requests with decoded arguments."""

    seen = {}

    def create(**kwargs):
        seen.update(kwargs)
        fn = SimpleNamespace(name="check_deadline_status", arguments='{"deadline_date": "2025-07-01", "event_name": "Hearing"}')
        bad = SimpleNamespace(name="get_current_date", arguments="not json")
        return _response(
            None,
            [SimpleNamespace(id="call_1", function=fn), SimpleNamespace(id="call_2", function=bad)],
        )

    result = _client(create).complete([ChatMessage(role="user", content="hi")], tools=list(TOOL_DEFINITIONS.values()))

    assert result.wants_tools
    assert result.text == ""
    assert result.tool_use_requests == (
        ToolUseRequest(id="call_1", name="check_deadline_status", arguments={"deadline_date": "2025-07-01", "event_name": "Hearing"}),
        ToolUseRequest(id="call_2", name="get_current_date", arguments={}),
    )
    assert seen["tools"][0]["function"]["name"] == "search_case_law"
    assert seen["messages"] == [{"role": "user", "content": "hi"}]


def test_no_tools_omits_tool_schema() -> None:
    seen = {}

    def create(**kwargs):
        seen.update(kwargs)
        return _response("Final answer.")

    result = _client(create).complete([ChatMessage(role="user", content="hi")], tools=None)

    assert result.text == "Final answer."
    assert not result.wants_tools
    assert "tools" not in seen


def test_transient_errors_are_retried(no_sleep) -> None:
    calls = []

    def create(**kwargs):
        calls.append(kwargs)
        if len(calls) < 3:
            raise openai.APIConnectionError(request=_REQUEST)
        return _response("ok")

    result = _client(create, openai_max_retries=2).complete([ChatMessage(role="user", content="hi")])

    assert result.text == "ok"
    assert len(calls) == 3
    assert len(no_sleep) == 2


def test_exhausted_retries_raise_completion_error() -> None:
    def create(**kwargs):
        raise openai.APIConnectionError(request=_REQUEST)

    with pytest.raises(CompletionError) as exc:
        _client(create, openai_max_retries=1).complete([ChatMessage(role="user", content="hi")])
    assert exc.value.transient is True


def test_client_errors_are_not_retried() -> None:
    calls = []

    def create(**kwargs):
        calls.append(kwargs)
        raise openai.BadRequestError("bad request", response=httpx.Response(400, request=_REQUEST), body=None)

    with pytest.raises(CompletionError) as exc:
        _client(create, openai_max_retries=3).complete([ChatMessage(role="user", content="hi")])
    assert len(calls) == 1
    assert exc.value.transient is False


def test_assistant_tool_calls_round_trip_to_payload() -> None:
    msg = ChatMessage(role="assistant", content="", tool_calls=(ToolUseRequest(id="c1", name="get_current_date"),))
    payload = msg.to_payload()

    assert payload["tool_calls"][0]["function"] == {"name": "get_current_date", "arguments": "{}"}
    assert ChatMessage(role="tool", content="x", tool_call_id="c1").to_payload()["tool_call_id"] == "c1"
