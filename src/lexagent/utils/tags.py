"""Lenient parsing of model output.

Models wrap JSON in markdown fences, prepend commentary, or abandon JSON altogether and answer
in headed prose. These helpers recover what they can and return ``None`` (or an empty value)
rather than raising.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

from lexagent.logging import get_logger

logger = get_logger(__name__)

_FENCE_JSON_RE = re.compile(r"```json\s*\n?(.*?)\n?```", re.DOTALL | re.IGNORECASE)
_FENCE_ANY_RE = re.compile(r"```\s*\n?(.*?)\n?```", re.DOTALL)
_BULLET_RE = re.compile(r"^(?:[-*•]|\d+[.)])\s+")


def _fenced_body(text: str) -> Optional[str]:
    m = _FENCE_JSON_RE.search(text) or _FENCE_ANY_RE.search(text)
    return m.group(1).strip() if m else None


def _load(candidate: str, kind: type) -> Any:
    try:
        value = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None
    return value if isinstance(value, kind) else None


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Extract a JSON object from text.

    Strategy (strict to lenient):
        1. A markdown-fenced block.
        2. The whole text.
        3. The outermost ``{...}`` span.
    """

    if not text:
        return None
    cleaned = text.strip()

    body = _fenced_body(cleaned)
    if body and body.startswith("{"):
        obj = _load(body, dict)
        if obj is not None:
            return obj

    if cleaned.startswith("{") and cleaned.endswith("}"):
        obj = _load(cleaned, dict)
        if obj is not None:
            return obj

    start, end = cleaned.find("{"), cleaned.rfind("}")
    if 0 <= start < end:
        obj = _load(cleaned[start : end + 1], dict)
        if obj is not None:
            return obj

    logger.debug("extract_json_object: no JSON object found")
    return None


def extract_json_array(text: str) -> Optional[List[Any]]:
    """Extract a JSON array from text, using the same strategy as :func:`extract_json_object`."""

    if not text:
        return None
    cleaned = text.strip()

    body = _fenced_body(cleaned)
    if body and body.startswith("["):
        arr = _load(body, list)
        if arr is not None:
            return arr

    start, end = cleaned.find("["), cleaned.rfind("]")
    if 0 <= start < end:
        arr = _load(cleaned[start : end + 1], list)
        if arr is not None:
            return arr

    logger.debug("extract_json_array: no JSON array found")
    return None


def _section_bounds(text: str, start_marker: str, end_marker: str | None) -> tuple[int, int] | None:
    lower = text.lower()
    start = lower.find(start_marker.lower())
    if start == -1:
        return None
    end = lower.find(end_marker.lower(), start + len(start_marker)) if end_marker else -1
    return start, (end if end != -1 else len(text))


def extract_section(text: str, start_marker: str, end_marker: str | None = None) -> str:
    """Return the prose between two case-insensitive markers, header label removed."""

    bounds = _section_bounds(text or "", start_marker, end_marker)
    if bounds is None:
        return ""
    section = text[bounds[0] : bounds[1]]
    first_line, _, rest = section.partition("\n")
    head, colon, tail = first_line.partition(":")
    body = (tail if colon else "") + "\n" + rest
    return " ".join(body.replace("#", " ").split())


def extract_list(text: str, start_marker: str, end_marker: str | None = None, *, min_chars: int = 10) -> list[str]:
    """Return bullet or numbered items between two markers."""

    bounds = _section_bounds(text or "", start_marker, end_marker)
    if bounds is None:
        return []
    items: list[str] = []
    for line in text[bounds[0] : bounds[1]].splitlines():
        line = line.strip()
        if not _BULLET_RE.match(line):
            continue
        item = _BULLET_RE.sub("", line).strip().strip('"').strip()
        if len(item) > min_chars:
            items.append(item)
    return items
