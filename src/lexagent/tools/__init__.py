"""Tools the research model may call."""

from __future__ import annotations

from lexagent.tools.executor import ToolCallResult, ToolDispatcher, TTLPolicy
from lexagent.tools.registry import (
    NETWORK_TOOLS,
    LegalToolName,
    ToolDefinition,
    ToolInvocation,
    ToolRegistry,
    ToolResult,
)

__all__ = [
    "LegalToolName",
    "NETWORK_TOOLS",
    "TTLPolicy",
    "ToolCallResult",
    "ToolDefinition",
    "ToolDispatcher",
    "ToolInvocation",
    "ToolRegistry",
    "ToolResult",
]
