"""Parsing of free-form research responses.

A research response is either structured JSON (preferred) or headed prose. Both shapes expose
the same accessors so callers never branch on the raw text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from lexagent.logging import get_logger
from lexagent.utils.tags import extract_json_object, extract_list, extract_section

logger = get_logger(__name__)


def _flatten(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, dict):
        return "\n".join(f"{k}: {_flatten(v)}" for k, v in value.items() if _flatten(v))
    if isinstance(value, list):
        return "\n".join(_flatten(v) for v in value if _flatten(v))
    return str(value)


@dataclass(frozen=True)
class StructuredResponse:
    """A response that parsed as a JSON object."""

    data: dict[str, Any]

    def analysis(self) -> str:
        return _flatten(self.data.get("comprehensiveAnalysis"))

    def confidence_label(self) -> str | None:
        label = self.data.get("confidenceLevel")
        return str(label) if label else None

    def case_law(self) -> str:
        return _flatten(self.data.get("caseLaw"))

    def recommendations(self) -> list[str]:
        recs = self.data.get("practiceRecommendations")
        if isinstance(recs, list):
            return [_flatten(r) for r in recs if _flatten(r)]
        return [recs] if isinstance(recs, str) and recs.strip() else []


@dataclass(frozen=True)
class TextFallbackResponse:
    """A response in prose, split into the sections we could find."""

    raw: str
    sections: dict[str, str] = field(default_factory=dict)
    items: dict[str, list[str]] = field(default_factory=dict)

    def analysis(self) -> str:
        return self.sections.get("comprehensive analysis") or self.raw.strip()

    def confidence_label(self) -> str | None:
        return self.sections.get("confidence level") or None

    def case_law(self) -> str:
        return self.sections.get("controlling cases") or self.sections.get("controlling legal authority", "")

    def recommendations(self) -> list[str]:
        return list(self.items.get("practice recommendations", []))


ParsedResponse = Union[StructuredResponse, TextFallbackResponse]

_SECTION_MARKERS = (
    ("search strategy", "legal authorities"),
    ("controlling cases", "persuasive authority"),
    ("controlling legal authority", "strategic analysis"),
    ("filing requirements", "required forms"),
    ("comprehensive analysis", "practice recommendations"),
    ("confidence level", "sources consulted"),
)


def parse_research_response(text: str) -> ParsedResponse:
    """Parse a research response; JSON is always attempted first."""

    obj = extract_json_object(text or "")
    if obj is not None:
        return StructuredResponse(data=obj)

    raw = text or ""
    logger.debug("Research response is not JSON; using section fallback")
    sections: dict[str, str] = {}
    for start, end in _SECTION_MARKERS:
        value = extract_section(raw, start, end)
        if value:
            sections[start] = value
    items = {"practice recommendations": extract_list(raw, "practice recommendations", "confidence level")}
    return TextFallbackResponse(raw=raw, sections=sections, items=items)
