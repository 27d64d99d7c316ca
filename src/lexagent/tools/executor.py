"""Tool dispatcher: executes model tool calls against the registry.

Network tools are read through the cache. Tool failures become error results that the model
can see and adapt to; only cancellation escapes :meth:`ToolDispatcher.execute`.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping

from lexagent.cache.tool_cache import ToolResultCache
from lexagent.config import Settings
from lexagent.core.concurrency import CancellationToken
from lexagent.errors import ResearchCancelled
from lexagent.logging import get_logger
from lexagent.tools.registry import NETWORK_TOOLS, LegalToolName, ToolInvocation, ToolRegistry, ToolResult

logger = get_logger(__name__)


class TTLPolicy:
    """Cache lifetime per network tool; ``None`` means the result is not cached."""

    def __init__(self, settings: Settings) -> None:
        self._s = settings

    def ttl_for(self, tool: LegalToolName, result: ToolResult) -> timedelta | None:
        if not result.success:
            return None
        found = bool(result.metadata.get("found", True))
        s = self._s
        if tool is LegalToolName.SEARCH_CASE_LAW:
            return timedelta(days=s.ttl_case_law_days if found else s.ttl_not_found_days)
        if tool is LegalToolName.GET_CFR_TEXT:
            return timedelta(days=s.ttl_regulation_days if found else s.ttl_not_found_days)
        if tool is LegalToolName.VERIFY_CITATION:
            return timedelta(days=s.ttl_citation_verified_days if found else s.ttl_citation_unverified_days)
        return None


@dataclass
class ToolCallResult:
    """Result of executing one invocation, plus the text fed back to the model."""

    invocation: ToolInvocation
    result: ToolResult
    formatted_response: str


class ToolDispatcher:
    """Executes tool calls for one research session."""

    def __init__(
        self,
        registry: ToolRegistry,
        cache: ToolResultCache,
        ttl_policy: TTLPolicy,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        self._registry = registry
        self._cache = cache
        self._ttl = ttl_policy
        self._cancel = cancel_token or CancellationToken()

    def execute(self, name: str, params: Mapping[str, Any] | None = None) -> ToolResult:
        """Execute a tool by name.

        Returns:
            ToolResult. Unknown tools and handler failures produce ``success=False`` results.

        Raises:
            ResearchCancelled: If the session is cancelled before or during the call. A result
                that arrives after cancellation is discarded and never cached.
        """

        self._cancel.raise_if_cancelled()
        params = dict(params or {})
        tool = LegalToolName.lookup(name)
        handler = self._registry.get(name)
        if tool is None or handler is None:
            logger.warning("Unknown tool requested", extra={"tool": name})
            return ToolResult(
                success=False,
                error=f"Error: Unknown tool '{name}'. Available tools: {', '.join(self._registry.names())}",
                metadata={"cached": False},
            )

        started = time.monotonic()

        def run() -> ToolResult:
            try:
                result = handler(params)
            except ResearchCancelled:
                raise
            except Exception as e:
                logger.exception("Tool execution failed", extra={"tool": name})
                result = ToolResult(success=False, error=f"Error executing tool: {e}")
            # Late results from a cancelled session must not reach the cache.
            self._cancel.raise_if_cancelled()
            return result

        if tool in NETWORK_TOOLS:

            def compute() -> tuple[dict[str, Any], timedelta | None]:
                result = run()
                return result.model_dump(), self._ttl.ttl_for(tool, result)

            payload, cached = self._cache.get_or_compute(name, params, compute)
            result = ToolResult.model_validate(payload)
        else:
            result = run()
            cached = False

        result.metadata["cached"] = cached
        logger.info(
            "Tool executed",
            extra={
                "tool": name,
                "success": result.success,
                "cached": cached,
                "latency_ms": int((time.monotonic() - started) * 1000),
            },
        )
        return result

    def execute_invocation(self, invocation: ToolInvocation) -> ToolCallResult:
        result = self.execute(invocation.name, invocation.arguments)
        return ToolCallResult(
            invocation=invocation,
            result=result,
            formatted_response=self.format_result(invocation.name, result),
        )

    @staticmethod
    def format_result(tool_name: str, result: ToolResult) -> str:
        """Render a tool result as the text of a tool message."""

        if not result.success:
            return result.error or f"Error executing tool: {tool_name} failed"
        content = result.content
        if content is None:
            return ""
        if isinstance(content, str):
            return content
        return json.dumps(content, ensure_ascii=False, indent=2)
