"""Boolean query parsing for literal-match search filters.

Supports ``AND`` / ``OR`` / ``NOT`` (case-insensitive) and double-quoted phrases. Bare terms
without an operator are combined with ``AND``. ``NOT`` binds to the single term or phrase that
follows it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from lexagent.logging import get_logger

logger = get_logger(__name__)

_PHRASE_RE = re.compile(r'"([^"]*)"')
_PLACEHOLDER = "\x00{}\x00"
_PLACEHOLDER_RE = re.compile(r"^\x00(\d+)\x00$")
_OPERATORS = {"AND", "OR", "NOT"}


@dataclass(frozen=True)
class ParsedQuery:
    """Structured form of a boolean query."""

    original_query: str = ""
    must_terms: tuple[str, ...] = ()
    should_terms: tuple[str, ...] = ()
    must_not_terms: tuple[str, ...] = ()
    phrases: tuple[str, ...] = ()

    def is_empty(self) -> bool:
        return not (self.must_terms or self.should_terms or self.must_not_terms)

    def has_advanced_operators(self) -> bool:
        return bool(self.should_terms or self.must_not_terms or self.phrases)

    def to_search_string(self) -> str:
        """Render back into a normalized boolean string for full-text search backends."""

        def fmt(term: str) -> str:
            return f'"{term}"' if term in self.phrases or " " in term else term

        parts: list[str] = [fmt(t) for t in self.must_terms]
        if self.should_terms:
            group = " OR ".join(fmt(t) for t in self.should_terms)
            parts.append(f"({group})" if len(self.should_terms) > 1 and parts else group)
        out = " AND ".join(parts)
        for t in self.must_not_terms:
            out = f"{out} NOT {fmt(t)}" if out else f"NOT {fmt(t)}"
        return out


class _TermSets:
    """Keeps must/should/must-not disjoint while preserving insertion order."""

    def __init__(self) -> None:
        self.must: dict[str, str] = {}
        self.should: dict[str, str] = {}
        self.must_not: dict[str, str] = {}

    def add_must(self, term: str) -> None:
        key = term.lower()
        if key in self.must_not:
            return
        self.should.pop(key, None)
        self.must.setdefault(key, term)

    def add_should(self, term: str) -> None:
        key = term.lower()
        if key in self.must_not or key in self.must:
            return
        self.should.setdefault(key, term)

    def add_must_not(self, term: str) -> None:
        key = term.lower()
        self.must.pop(key, None)
        self.should.pop(key, None)
        self.must_not.setdefault(key, term)

    def promote_to_should(self, term: str) -> None:
        key = term.lower()
        if key in self.must:
            del self.must[key]
            self.should.setdefault(key, term)


def parse_query(query: str | None) -> ParsedQuery:
    """Parse a free-text boolean query.

    Args:
        query: Raw query text, e.g. ``"breach of contract" AND damages NOT fraud``.

    Returns:
        ParsedQuery with disjoint must / should / must-not term sets.
    """

    if query is None or not query.strip():
        return ParsedQuery()

    raw = query.strip()
    phrases: list[str] = []

    def _stash(m: re.Match[str]) -> str:
        phrase = " ".join(m.group(1).split())
        if not phrase:
            return " "
        phrases.append(phrase)
        return " " + _PLACEHOLDER.format(len(phrases) - 1) + " "

    # A stray unmatched quote carries no meaning once balanced pairs are gone.
    stripped = _PHRASE_RE.sub(_stash, raw).replace('"', " ")

    sets = _TermSets()
    operator = "AND"
    negated = False
    last_term: str | None = None

    for token in stripped.split():
        upper = token.upper()
        if upper in _OPERATORS:
            if upper == "NOT":
                negated = True
                continue
            negated = False
            operator = upper
            if upper == "OR" and last_term is not None:
                sets.promote_to_should(last_term)
            continue

        m = _PLACEHOLDER_RE.match(token)
        term = phrases[int(m.group(1))] if m else token

        if negated:
            sets.add_must_not(term)
            last_term = None
        elif operator == "OR":
            sets.add_should(term)
            last_term = term
        else:
            sets.add_must(term)
            last_term = term
        negated = False
        operator = "AND"

    if not sets.must and not sets.should and not sets.must_not:
        logger.info("Boolean query produced no terms; using whole query as a phrase", extra={"query": raw})
        whole = " ".join(raw.replace('"', " ").split()) or raw
        return ParsedQuery(original_query=raw, must_terms=(whole,), phrases=(whole,))

    return ParsedQuery(
        original_query=raw,
        must_terms=tuple(sets.must.values()),
        should_terms=tuple(sets.should.values()),
        must_not_terms=tuple(sets.must_not.values()),
        phrases=tuple(dict.fromkeys(phrases)),
    )


def _field_value(record: Any, field: str) -> str:
    if isinstance(record, Mapping):
        value = record.get(field)
    else:
        value = getattr(record, field, None)
    return str(value).lower() if value is not None else ""


def to_filter_predicate(parsed: ParsedQuery, *fields: str) -> Callable[[Any], bool]:
    """Build a record filter from a parsed query.

    The predicate is true when every must-term occurs in at least one of ``fields``, no
    must-not term occurs in any of them, and (if should-terms exist) at least one should-term
    occurs. Matching is case-insensitive substring matching.
    """

    if not fields:
        raise ValueError("to_filter_predicate requires at least one field name")

    must = [t.lower() for t in parsed.must_terms]
    should = [t.lower() for t in parsed.should_terms]
    must_not = [t.lower() for t in parsed.must_not_terms]

    def predicate(record: Any) -> bool:
        values = [_field_value(record, f) for f in fields]

        def present(term: str) -> bool:
            return any(term in v for v in values)

        if not all(present(t) for t in must):
            return False
        if any(present(t) for t in must_not):
            return False
        if should and not any(present(t) for t in should):
            return False
        return True

    return predicate
