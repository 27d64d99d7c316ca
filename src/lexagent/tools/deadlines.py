"""Deadline classification and case timeline rendering.

Everything here is computed against a date supplied by the caller's clock. A date the model
claims is "today" is never trusted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, Mapping

from lexagent.logging import get_logger

logger = get_logger(__name__)


class DeadlineStatus(str, Enum):
    PASSED = "PASSED"
    TODAY = "TODAY"
    UPCOMING = "UPCOMING"


class Urgency(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


_URGENCY_MARKERS = {
    Urgency.CRITICAL: "[!!]",
    Urgency.HIGH: "[!]",
    Urgency.MEDIUM: "[~]",
    Urgency.LOW: "[ ]",
}


def parse_iso_date(raw: object) -> date:
    """Parse a ``YYYY-MM-DD`` string.

    Raises:
        ValueError: If ``raw`` is not a string in ISO calendar format.
    """

    if not isinstance(raw, str):
        raise ValueError(f"Invalid date format '{raw}'. Use YYYY-MM-DD format.")
    try:
        return datetime.strptime(raw.strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValueError(f"Invalid date format '{raw}'. Use YYYY-MM-DD format.") from None


def long_date(d: date) -> str:
    return f"{d.strftime('%B')} {d.day}, {d.year}"


def short_date(d: date) -> str:
    return f"{d.strftime('%b')} {d.day}, {d.year}"


@dataclass(frozen=True)
class DeadlineInfo:
    """A dated event classified against today."""

    event_name: str
    date: date
    status: DeadlineStatus
    urgency: Urgency
    days_until: int

    @classmethod
    def classify(cls, event_name: str, when: date, today: date) -> DeadlineInfo:
        days_until = (when - today).days
        if days_until < 0:
            status = DeadlineStatus.PASSED
            # Urgency has no meaning for a passed event; LOW keeps the field total.
            urgency = Urgency.LOW
        elif days_until == 0:
            status = DeadlineStatus.TODAY
            urgency = Urgency.CRITICAL
        else:
            status = DeadlineStatus.UPCOMING
            if days_until < 2:
                urgency = Urgency.CRITICAL
            elif days_until < 7:
                urgency = Urgency.HIGH
            elif days_until < 30:
                urgency = Urgency.MEDIUM
            else:
                urgency = Urgency.LOW
        return cls(event_name=event_name, date=when, status=status, urgency=urgency, days_until=days_until)

    def status_message(self) -> str:
        if self.status is DeadlineStatus.PASSED:
            return f"PASSED ({abs(self.days_until)} days ago)"
        if self.status is DeadlineStatus.TODAY:
            return "TODAY"
        return f"UPCOMING (in {self.days_until} days, urgency {self.urgency.value})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_name": self.event_name,
            "date": self.date.isoformat(),
            "status": self.status.value,
            "urgency": self.urgency.value,
            "days_until": self.days_until,
        }


def describe_deadline(info: DeadlineInfo) -> str:
    """Render a deadline check for the model, including the passed-deadline instruction."""

    lines = [
        f"Deadline Status for '{info.event_name}':",
        f"  Date: {long_date(info.date)}",
        f"  Status: {info.status_message()}",
        "  Days: {} {}".format(
            abs(info.days_until), "ago" if info.status is DeadlineStatus.PASSED else "from now"
        ),
    ]
    if info.status is DeadlineStatus.PASSED:
        lines += [
            "",
            "WARNING: This deadline has ALREADY PASSED.",
            "DO NOT provide advice on preparing for this event.",
            "INSTEAD: Advise on post-deadline remedies or ask about the outcome.",
        ]
    elif info.urgency is Urgency.CRITICAL:
        lines += ["", "CRITICAL: This deadline is within 48 hours!"]
    elif info.urgency is Urgency.HIGH:
        lines += ["", "HIGH URGENCY: This deadline is within 1 week."]
    return "\n".join(lines) + "\n"


@dataclass
class TimelineReport:
    """Events partitioned by status. ``upcoming`` is sorted by ascending day delta."""

    today_date: date
    passed: list[DeadlineInfo] = field(default_factory=list)
    today: list[DeadlineInfo] = field(default_factory=list)
    upcoming: list[DeadlineInfo] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_date": self.today_date.isoformat(),
            "passed": [d.to_dict() for d in self.passed],
            "today": [d.to_dict() for d in self.today],
            "upcoming": [d.to_dict() for d in self.upcoming],
            "errors": list(self.errors),
        }

    def render(self) -> str:
        out = ["CASE TIMELINE VALIDATION:", "", f"Current Date: {long_date(self.today_date)}", ""]
        if self.passed:
            out.append("PASSED DEADLINES (Already Occurred):")
            for d in self.passed:
                out.append(f"  - {d.event_name}: {short_date(d.date)} ({abs(d.days_until)} days ago)")
            out += [
                "",
                "CRITICAL: Do NOT provide preparation advice for these events.",
                "Instead: Ask about outcomes or provide post-deadline guidance.",
                "",
            ]
        if self.today:
            out.append("DEADLINES TODAY:")
            out += [f"  - {d.event_name}" for d in self.today]
            out.append("")
        if self.upcoming:
            out.append("UPCOMING DEADLINES:")
            for d in self.upcoming:
                out.append(
                    f"  {_URGENCY_MARKERS[d.urgency]} {d.event_name}: {short_date(d.date)} (in {d.days_until} days)"
                )
            out.append("")
        if self.errors:
            out.append("ERRORS:")
            out += [f"  - {e}" for e in self.errors]
        return "\n".join(out).rstrip() + "\n"


def _event_fields(event: Any) -> tuple[str, Any]:
    if isinstance(event, Mapping):
        return str(event.get("event_name") or "Unnamed event"), event.get("event_date")
    return "Unnamed event", None


def _parse_events(events: Iterable[Any], today: date) -> tuple[list[DeadlineInfo], list[str]]:
    infos: list[DeadlineInfo] = []
    errors: list[str] = []
    for event in events:
        name, raw = _event_fields(event)
        try:
            when = parse_iso_date(raw)
        except ValueError:
            errors.append(f"Invalid date format for '{name}': {raw}")
            continue
        infos.append(DeadlineInfo.classify(name, when, today))
    return infos, errors


def validate_timeline(events: Iterable[Any], today: date) -> TimelineReport:
    """Partition events into passed / today / upcoming; unparsable dates become errors."""

    infos, errors = _parse_events(events, today)
    report = TimelineReport(today_date=today, errors=errors)
    for info in infos:
        if info.status is DeadlineStatus.PASSED:
            report.passed.append(info)
        elif info.status is DeadlineStatus.TODAY:
            report.today.append(info)
        else:
            report.upcoming.append(info)
    report.upcoming.sort(key=lambda d: d.days_until)
    logger.info(
        "Timeline validated",
        extra={"passed": len(report.passed), "upcoming": len(report.upcoming), "errors": len(errors)},
    )
    return report


def render_timeline_markdown(events: Iterable[Any], today: date) -> str:
    """Markdown timeline sorted by date with urgency markers."""

    infos, errors = _parse_events(events, today)
    if not infos and not errors:
        return "## Timeline\n\nNo events provided for timeline generation."
    if not infos:
        body = "No valid events to display."
    else:
        rows: list[str] = []
        for d in sorted(infos, key=lambda i: i.date):
            if d.status is DeadlineStatus.PASSED:
                marker, note = "[done]", f" ({abs(d.days_until)} days ago)"
            elif d.status is DeadlineStatus.TODAY:
                marker, note = "[today]", " (TODAY)"
            elif d.urgency is Urgency.CRITICAL:
                marker, note = _URGENCY_MARKERS[d.urgency], f" (URGENT - {d.days_until} days)"
            else:
                marker, note = _URGENCY_MARKERS[d.urgency], f" ({d.days_until} days)"
            rows.append(f"- {marker} **{long_date(d.date)}** - {d.event_name}{note}")
        body = "\n".join(rows)
    text = f"## Timeline\n\n{body}\n"
    if errors:
        text += "\n### Skipped\n\n" + "\n".join(f"- {e}" for e in errors) + "\n"
    return text
