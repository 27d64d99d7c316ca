"""CLI entrypoints for LexAgent."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import typer

from lexagent.config import load_settings
from lexagent.errors import ResearchCancelled
from lexagent.logging import configure_logging, get_logger
from lexagent.models.research import ResearchStatus
from lexagent.orchestrator.runner import run_research_stream
from lexagent.search.boolean_query import parse_query
from lexagent.tools.deadlines import DeadlineInfo, describe_deadline, parse_iso_date
from lexagent.tools.motion_templates import render_motion, supported_motion_types
from lexagent.validation.citations import extract_citations
from lexagent.validation.temporal import TemporalValidator

app = typer.Typer(add_completion=False, help="LexAgent legal research CLI")
logger = get_logger(__name__)


def _parse_date_option(raw: str | None) -> date | None:
    if not raw:
        return None
    try:
        return parse_iso_date(raw)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e


@app.command()
def research(
    query: str = typer.Argument(..., help="Legal research question."),
    jurisdiction: str = typer.Option("", "--jurisdiction", "-j", help="Jurisdiction, e.g. 'Massachusetts'"),
    effective_date: str | None = typer.Option(None, "--effective-date", help="YYYY-MM-DD"),
    as_json: bool = typer.Option(False, "--json", help="Print the full finding as JSON"),
) -> None:
    """Run a research session and print the answer."""

    settings = load_settings()
    configure_logging(settings.log_level)
    logger.info("CLI research requested")

    finding = None
    try:
        for ev in run_research_stream(query, jurisdiction, _parse_date_option(effective_date), settings=settings):
            if not as_json:
                typer.echo(f"[{ev.progress_percent:3d}%] {ev.step_type.value}: {ev.message}", err=True)
            if ev.data and "finding" in ev.data:
                finding = ev.data["finding"]
    except ResearchCancelled:
        typer.echo("Research cancelled.", err=True)
        raise typer.Exit(code=130)

    if finding is None:
        raise typer.Exit(code=1)
    if as_json:
        typer.echo(json.dumps(finding, ensure_ascii=False, indent=2))
        return

    if finding.get("error"):
        typer.echo(f"Error: {finding['error']['message']}", err=True)
    if finding.get("answer"):
        typer.echo(finding["answer"])
    typer.echo(f"\nConfidence: {finding['confidence']}  Status: {finding['status']}")
    for rec in finding.get("recommendations") or []:
        typer.echo(f"Recommendation: {rec}")
    for warning in finding["validation"]["warnings"]:
        typer.echo(f"Warning: {warning}")
    if finding["status"] == ResearchStatus.SERVICE_UNAVAILABLE.value:
        raise typer.Exit(code=2)


@app.command("parse-query")
def parse_query_cmd(query: str = typer.Argument(..., help="Boolean query")) -> None:
    """Show how a boolean query is parsed."""

    parsed = parse_query(query)
    typer.echo(
        json.dumps(
            {
                "must_terms": list(parsed.must_terms),
                "should_terms": list(parsed.should_terms),
                "must_not_terms": list(parsed.must_not_terms),
                "phrases": list(parsed.phrases),
                "search": parsed.to_search_string(),
            },
            indent=2,
        )
    )


@app.command("check-deadline")
def check_deadline(
    deadline_date: str = typer.Argument(..., help="YYYY-MM-DD"),
    event_name: str = typer.Argument(..., help="Event name"),
    today: str | None = typer.Option(None, "--today", help="Override the current date (YYYY-MM-DD)"),
) -> None:
    """Classify a deadline as passed, today or upcoming."""

    when = _parse_date_option(deadline_date)
    if when is None:
        raise typer.BadParameter("deadline date is required", param_hint="DEADLINE_DATE")
    info = DeadlineInfo.classify(event_name, when, _parse_date_option(today) or date.today())
    typer.echo(describe_deadline(info))


@app.command()
def motion(
    motion_type: str = typer.Argument(..., help=f"One of: {', '.join(supported_motion_types())}"),
    defendant: str | None = typer.Option(None, "--defendant"),
    grounds: str | None = typer.Option(None, "--grounds"),
    incident_date: str | None = typer.Option(None, "--incident-date"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the template to a file"),
) -> None:
    """Render a motion template."""

    facts = {k: v for k, v in {"defendant": defendant, "grounds": grounds, "incident_date": incident_date}.items() if v}
    text = render_motion(motion_type, facts)
    if output is None:
        typer.echo(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    typer.echo(str(output))


@app.command()
def validate(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Text file to check"),
    current_date: str | None = typer.Option(None, "--current-date", help="YYYY-MM-DD"),
) -> None:
    """Check a written answer for temporal contradictions and list its citations."""

    settings = load_settings()
    text = file.read_text(encoding="utf-8")
    validator = TemporalValidator(window_chars=settings.validation_window_chars, day_tolerance=settings.day_tolerance)
    result = validator.validate_temporal_consistency(text, _parse_date_option(current_date) or date.today())

    typer.echo(result.summary())
    for err in result.errors:
        typer.echo(f"ERROR: {err}")
    for warning in result.warnings:
        typer.echo(f"WARNING: {warning}")
    for citation in extract_citations(text):
        typer.echo(f"CITATION: {citation}")
    if not result.valid:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
