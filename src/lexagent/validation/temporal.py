"""Temporal consistency checks for model answers.

The validator compares the dates an answer mentions with the real current date and reports
forward-looking advice about events that have already happened. It never edits the answer.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date

from lexagent.logging import get_logger
from lexagent.models import ValidationResult

logger = get_logger(__name__)

_MONTHS = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sep": 9, "sept": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}  # fmt: skip

_MONTH_ALT = "|".join(sorted(_MONTHS, key=len, reverse=True))
_LONG_DATE = rf"\b(?:{_MONTH_ALT})\.?\s+\d{{1,2}},\s*\d{{4}}\b"
_MONTH_ONLY = rf"\b(?:{_MONTH_ALT})\.?\s+\d{{4}}\b"
_ISO_DATE = r"\b\d{4}-\d{2}-\d{2}\b"

_DATE_RE = re.compile(rf"(?P<long>{_LONG_DATE})|(?P<iso>{_ISO_DATE})|(?P<month>{_MONTH_ONLY})", re.IGNORECASE)
_LONG_PARTS_RE = re.compile(r"([A-Za-z]+)\.?\s+(\d{1,2}),\s*(\d{4})")
_MONTH_PARTS_RE = re.compile(r"([A-Za-z]+)\.?\s+(\d{4})")

FUTURE_ADVICE_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"prepare\s+for.{0,80}?hearing",
        r"\b\d+\s+days?\s+(?:until|from\s+now)\b",
        r"deadline.{0,80}?\bin\s+\d+\s+days?\b",
        r"must.{0,60}?file.{0,60}?\bby\b",
        r"upcoming.{0,40}?(?:hearing|deadline)",
    )
)

_DAYS_CLAIM_RE = re.compile(
    rf"\b(?P<n>\d+)\s+days?\s+(?:until|from\s+now|to|before)\b.{{0,80}}?(?P<date>{_LONG_DATE}|{_ISO_DATE}|{_MONTH_ONLY})",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class MentionedDate:
    """A date found in text. Month-only mentions resolve to the last day of the month."""

    value: date
    text: str
    start: int
    end: int
    month_only: bool = False


def _parse_mention(raw: str) -> tuple[date, bool]:
    raw = raw.strip()
    if re.fullmatch(_ISO_DATE, raw):
        return date.fromisoformat(raw), False
    m = _LONG_PARTS_RE.fullmatch(raw)
    if m:
        return date(int(m.group(3)), _MONTHS[m.group(1).lower()], int(m.group(2))), False
    m = _MONTH_PARTS_RE.fullmatch(raw)
    if m:
        year, month = int(m.group(2)), _MONTHS[m.group(1).lower()]
        return date(year, month, calendar.monthrange(year, month)[1]), True
    raise ValueError(f"unrecognized date: {raw}")


def extract_dates(text: str) -> tuple[list[MentionedDate], list[str]]:
    """Find calendar dates in ``text``.

    Returns:
        ``(dates, unparsable)`` where ``unparsable`` holds date-shaped strings that are not
        real calendar dates (e.g. ``February 30, 2025``).
    """

    found: list[MentionedDate] = []
    bad: list[str] = []
    for m in _DATE_RE.finditer(text):
        raw = m.group(0)
        try:
            value, month_only = _parse_mention(raw)
        except ValueError:
            bad.append(raw)
            continue
        found.append(MentionedDate(value=value, text=raw, start=m.start(), end=m.end(), month_only=month_only))
    return found, bad


class TemporalValidator:
    """Detects date arithmetic errors and advice for already-passed events."""

    def __init__(self, *, window_chars: int = 200, day_tolerance: int = 7) -> None:
        self._window = window_chars
        self._tolerance = day_tolerance

    def validate_temporal_consistency(self, text: str, current_date: date) -> ValidationResult:
        """Validate an answer against ``current_date``.

        Errors are hard contradictions (future advice about a past event, a positive
        "days until" count for a past date). Warnings are soft: day counts off by more than the
        tolerance, unparsable dates.
        """

        result = ValidationResult()
        if not text or not text.strip():
            result.add_error("Response text is empty")
            return result

        dates, unparsable = extract_dates(text)
        for raw in unparsable:
            result.add_warning(f"Unparsable date in response: '{raw}'")

        self._check_past_dates(text, dates, current_date, result)
        self._check_day_counts(text, current_date, result)

        if not result.valid:
            logger.warning(
                "Temporal validation failed",
                extra={"errors": len(result.errors), "warnings": len(result.warnings)},
            )
        elif result.warnings:
            logger.info("Temporal validation warnings", extra={"warnings": len(result.warnings)})
        return result

    def _check_past_dates(
        self, text: str, dates: list[MentionedDate], current_date: date, result: ValidationResult
    ) -> None:
        for mention in dates:
            if mention.value >= current_date:
                continue
            window = text[max(0, mention.start - self._window) : mention.end + self._window]
            for pattern in FUTURE_ADVICE_PATTERNS:
                hit = pattern.search(window)
                if hit is None:
                    continue
                days_ago = (current_date - mention.value).days
                result.add_error(
                    f"Future-oriented advice about {mention.text}, which passed {days_ago} days ago "
                    f"(found: '{' '.join(hit.group(0).split())}')"
                )
                break

    def _check_day_counts(self, text: str, current_date: date, result: ValidationResult) -> None:
        for m in _DAYS_CLAIM_RE.finditer(text):
            claimed = int(m.group("n"))
            try:
                target, month_only = _parse_mention(m.group("date"))
            except ValueError:
                continue
            actual = (target - current_date).days
            if actual < 0 and claimed > 0:
                result.add_error(
                    f"CRITICAL: Response says {claimed} days until {m.group('date')}, "
                    f"but that date passed {abs(actual)} days ago"
                )
            elif not month_only and abs(actual - claimed) > self._tolerance:
                result.add_warning(
                    f"Day count mismatch: response says {claimed} days until {m.group('date')}, "
                    f"actual is {actual} days"
                )
