"""Answer validation: temporal consistency and citation verification."""

from __future__ import annotations

from lexagent.validation.citations import CitationVerifier, extract_citations, format_verification, parse_citation
from lexagent.validation.temporal import TemporalValidator, extract_dates

__all__ = [
    "CitationVerifier",
    "TemporalValidator",
    "extract_citations",
    "extract_dates",
    "format_verification",
    "parse_citation",
]
