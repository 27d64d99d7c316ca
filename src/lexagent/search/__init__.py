"""Query parsing for literal-match search."""

from __future__ import annotations

from lexagent.search.boolean_query import ParsedQuery, parse_query, to_filter_predicate

__all__ = ["ParsedQuery", "parse_query", "to_filter_predicate"]
