"""Tests for temporal consistency validation."""

from __future__ import annotations

from datetime import date

from lexagent.validation.temporal import TemporalValidator, extract_dates


def test_positive_days_until_past_month_is_an_error() -> None:
    """It should flag a positive day count toward a date that already passed."""

    result = TemporalValidator().validate_temporal_consistency(
        "You have 129 days until February 2025 to respond.", date(2025, 10, 1)
    )

    assert result.valid is False
    assert any(e.startswith("CRITICAL: Response says 129 days until February 2025") for e in result.errors)


def test_preparation_advice_for_past_hearing_is_an_error() -> None:
    result = TemporalValidator().validate_temporal_consistency(
        "The hearing was set for March 3, 2025. You should prepare for the hearing carefully.",
        date(2025, 6, 1),
    )

    assert result.valid is False
    assert "March 3, 2025" in result.errors[0]


def test_correct_future_reference_passes() -> None:
    result = TemporalValidator().validate_temporal_consistency(
        "The motion hearing on July 1, 2025 is 30 days from now.", date(2025, 6, 1)
    )

    assert result.valid is True
    assert result.warnings == []


def test_day_count_mismatch_is_a_warning() -> None:
    """It should only warn when a future day count is off by more than the tolerance."""

    result = TemporalValidator(day_tolerance=7).validate_temporal_consistency(
        "There are 10 days until July 1, 2025.", date(2025, 6, 1)
    )

    assert result.valid is True
    assert len(result.warnings) == 1
    assert "actual is 30 days" in result.warnings[0]


def test_unparsable_date_is_a_warning() -> None:
    result = TemporalValidator().validate_temporal_consistency("Filed on February 30, 2025.", date(2025, 6, 1))
    assert result.valid is True
    assert result.warnings == ["Unparsable date in response: 'February 30, 2025'"]


def test_empty_text_is_an_error() -> None:
    result = TemporalValidator().validate_temporal_consistency("  ", date(2025, 6, 1))
    assert result.errors == ["Response text is empty"]


def test_extract_dates_formats() -> None:
    dates, bad = extract_dates("On 2025-01-15 and Jan. 20, 2025, then in March 2025.")
    assert [d.value for d in dates] == [date(2025, 1, 15), date(2025, 1, 20), date(2025, 3, 31)]
    assert dates[-1].month_only is True
    assert bad == []
