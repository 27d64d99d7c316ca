"""Tests for the command-line entrypoints."""

from __future__ import annotations

import json

from typer.testing import CliRunner

from lexagent.cli import app

runner = CliRunner()


def test_check_deadline_reports_passed_event() -> None:
    result = runner.invoke(app, ["check-deadline", "2024-01-01", "Discovery Cutoff", "--today", "2025-06-01"])

    assert result.exit_code == 0
    assert "PASSED (517 days ago)" in result.output


def test_check_deadline_rejects_missing_date() -> None:
    """It should fail with a usage error instead of classifying nothing."""

    result = runner.invoke(app, ["check-deadline", "", "Hearing", "--today", "2025-06-01"])
    assert result.exit_code == 2


def test_parse_query_prints_sets() -> None:
    result = runner.invoke(app, ["parse-query", "contract NOT fraud"])

    assert result.exit_code == 0
    parsed = json.loads(result.output)
    assert parsed["must_terms"] == ["contract"]
    assert parsed["must_not_terms"] == ["fraud"]


def test_validate_flags_stale_countdown(tmp_path) -> None:
    answer = tmp_path / "answer.txt"
    answer.write_text("You have 129 days until February 2025 to respond.", encoding="utf-8")

    result = runner.invoke(app, ["validate", str(answer), "--current-date", "2025-10-01"])

    assert result.exit_code == 1
    assert "ERROR: CRITICAL" in result.output
