"""OpenAI-compatible LLM client.

This wraps the `openai` Python SDK and exposes the one capability the research loop needs:
a chat completion that may answer with text, with tool-use requests, or with both.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Protocol, Sequence

import openai
from openai import OpenAI

from lexagent.config import Settings
from lexagent.errors import CompletionError
from lexagent.logging import get_logger

if TYPE_CHECKING:
    from lexagent.tools.registry import ToolDefinition

logger = get_logger(__name__)

Role = Literal["system", "user", "assistant", "tool"]

_TRANSIENT_STATUS = {408, 409, 429, 500, 502, 503, 504}


@dataclass(frozen=True)
class ToolUseRequest:
    """A tool call requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ChatMessage:
    """A chat message.

    Assistant messages may carry ``tool_calls``; tool messages carry the ``tool_call_id`` they
    answer.
    """

    role: Role
    content: str
    tool_calls: tuple[ToolUseRequest, ...] = ()
    tool_call_id: str | None = None

    def to_payload(self) -> dict[str, Any]:
        out: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            out["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": json.dumps(tc.arguments, ensure_ascii=False)},
                }
                for tc in self.tool_calls
            ]
        if self.tool_call_id is not None:
            out["tool_call_id"] = self.tool_call_id
        return out


@dataclass(frozen=True)
class CompletionResult:
    """What one completion call produced."""

    text: str = ""
    tool_use_requests: tuple[ToolUseRequest, ...] = ()

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_use_requests)


class CompletionProvider(Protocol):
    """Completion capability used by the orchestrator and the research helpers."""

    def complete(
        self,
        messages: Sequence[ChatMessage],
        *,
        tools: Sequence[ToolDefinition] | None = None,
        temperature: float = 0.2,
    ) -> CompletionResult:
        """Run one completion."""


def _parse_arguments(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Tool call arguments are not valid JSON", extra={"raw": raw[:200]})
        return {}
    return data if isinstance(data, dict) else {}


def _is_transient(err: Exception) -> bool:
    if isinstance(err, (openai.APITimeoutError, openai.APIConnectionError, openai.RateLimitError)):
        return True
    if isinstance(err, openai.APIStatusError):
        return err.status_code in _TRANSIENT_STATUS
    return False


class LLMClient:
    """LLM client using OpenAI-compatible Chat Completions API with function tools."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        if not settings.openai_api_key:
            raise ValueError(
                "Missing LEXAGENT_OPENAI_API_KEY. "
                "Set it in environment variables or a .env file."
            )

        # Retries are handled here so that only transient failures are retried.
        self._client = OpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            max_retries=0,
        )

    def complete(
        self,
        messages: Sequence[ChatMessage],
        *,
        tools: Sequence[ToolDefinition] | None = None,
        temperature: float = 0.2,
    ) -> CompletionResult:
        """Generate a completion.

        Args:
            messages: Chat messages.
            tools: Tool definitions the model may call. ``None`` forces a text answer.
            temperature: Sampling temperature.

        Returns:
            CompletionResult with text and/or tool-use requests.

        Raises:
            CompletionError: When the call fails after bounded retries.
        """

        s = self._settings
        kwargs: dict[str, Any] = {
            "model": s.openai_model,
            "messages": [m.to_payload() for m in messages],
            "temperature": temperature,
            "max_tokens": s.openai_max_tokens,
            "timeout": s.openai_timeout_s,
        }
        if tools:
            kwargs["tools"] = [t.to_openai_tool() for t in tools]

        last_err: Exception | None = None
        started = time.monotonic()
        for attempt in range(s.openai_max_retries + 1):
            try:
                resp = self._client.chat.completions.create(**kwargs)
                result = self._to_result(resp)
                logger.info(
                    "Completion ok",
                    extra={
                        "model": s.openai_model,
                        "attempt": attempt,
                        "tool_requests": len(result.tool_use_requests),
                        "latency_ms": int((time.monotonic() - started) * 1000),
                    },
                )
                return result
            except openai.OpenAIError as e:
                last_err = e
                if not _is_transient(e) or attempt >= s.openai_max_retries:
                    break

            sleep_s = min(s.openai_retry_max_backoff_s, s.openai_retry_backoff_s * (2**attempt))
            logger.warning(
                "Completion retry",
                extra={
                    "attempt": attempt,
                    "max_retries": s.openai_max_retries,
                    "error_type": type(last_err).__name__,
                    "sleep_s": sleep_s,
                },
            )
            time.sleep(sleep_s)

        logger.error(
            "Completion failed",
            extra={
                "model": s.openai_model,
                "elapsed_ms": int((time.monotonic() - started) * 1000),
                "error_type": type(last_err).__name__ if last_err is not None else None,
                "error": str(last_err) if last_err is not None else None,
            },
        )
        raise CompletionError(
            "Completion request failed",
            transient=last_err is not None and _is_transient(last_err),
        ) from last_err

    @staticmethod
    def _to_result(resp: Any) -> CompletionResult:
        if not resp.choices:
            return CompletionResult()
        message = resp.choices[0].message
        if message is None:
            return CompletionResult()
        requests: list[ToolUseRequest] = []
        for tc in message.tool_calls or []:
            fn = getattr(tc, "function", None)
            if fn is None or not fn.name:
                continue
            requests.append(ToolUseRequest(id=tc.id, name=fn.name, arguments=_parse_arguments(fn.arguments)))
        return CompletionResult(text=message.content or "", tool_use_requests=tuple(requests))
