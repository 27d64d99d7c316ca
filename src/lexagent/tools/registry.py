"""Tool registry.

The set of tools the model may call is fixed. Each :class:`LegalToolName` member has exactly one
definition (the JSON schema shown to the model) and one handler; the registry refuses to build
if any member is missing either.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Mapping

from pydantic import BaseModel, ConfigDict, Field

from lexagent.logging import get_logger

logger = get_logger(__name__)


class LegalToolName(str, Enum):
    SEARCH_CASE_LAW = "search_case_law"
    GET_CFR_TEXT = "get_cfr_text"
    VERIFY_CITATION = "verify_citation"
    GET_CURRENT_DATE = "get_current_date"
    CHECK_DEADLINE_STATUS = "check_deadline_status"
    VALIDATE_CASE_TIMELINE = "validate_case_timeline"
    GENERATE_CASE_TIMELINE = "generate_case_timeline"
    GENERATE_MOTION_TEMPLATE = "generate_motion_template"

    @classmethod
    def lookup(cls, name: str) -> LegalToolName | None:
        try:
            return cls(name)
        except ValueError:
            return None


# Tools that reach a network service and must be read through the cache.
NETWORK_TOOLS = frozenset(
    {LegalToolName.SEARCH_CASE_LAW, LegalToolName.GET_CFR_TEXT, LegalToolName.VERIFY_CITATION}
)


class ToolDefinition(BaseModel):
    """A tool as advertised to the model."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})

    def to_openai_tool(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {"name": self.name, "description": self.description, "parameters": self.parameters},
        }


class ToolInvocation(BaseModel):
    """A single tool call requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """Result from a tool execution."""

    success: bool = True
    content: str | dict | list | None = None
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


ToolHandler = Callable[[Mapping[str, Any]], ToolResult]


class ToolRegistry:
    """Enum-indexed map of tool definitions and handlers."""

    def __init__(
        self,
        definitions: Mapping[LegalToolName, ToolDefinition],
        handlers: Mapping[LegalToolName, ToolHandler],
    ) -> None:
        missing_defs = [t.value for t in LegalToolName if t not in definitions]
        missing_handlers = [t.value for t in LegalToolName if t not in handlers]
        if missing_defs or missing_handlers:
            raise ValueError(
                f"Tool registry incomplete: missing definitions {missing_defs}, missing handlers {missing_handlers}"
            )
        for name, definition in definitions.items():
            if definition.name != name.value:
                raise ValueError(f"Tool definition name mismatch: {definition.name!r} != {name.value!r}")

        self._definitions = dict(definitions)
        self._handlers = dict(handlers)
        logger.info("Tool registry built", extra={"tools": len(self._definitions)})

    def get_definitions(self) -> list[ToolDefinition]:
        """Tool definitions in enum order."""

        return [self._definitions[t] for t in LegalToolName]

    def get(self, name: str) -> ToolHandler | None:
        tool = LegalToolName.lookup(name)
        return self._handlers.get(tool) if tool is not None else None

    def names(self) -> list[str]:
        return [t.value for t in LegalToolName]

    def list_tools(self) -> list[dict[str, Any]]:
        """List all registered tools with their schemas."""

        return [
            {"name": d.name, "description": d.description, "schema": d.parameters}
            for d in self.get_definitions()
        ]
