"""Tests for motion templates."""

from __future__ import annotations

from lexagent.tools.motion_templates import render_motion, supported_motion_types


def test_suppress_template_fills_facts() -> None:
    text = render_motion("Motion-To-Suppress", {"defendant": "John Doe", "incident_date": "March 3, 2025"})

    assert "DEFENDANT'S MOTION TO SUPPRESS EVIDENCE" in text
    assert "John Doe" in text
    assert "March 3, 2025" in text
    assert "*Mapp v. Ohio*" in text
    assert "[Defendant Name]" not in text


def test_missing_facts_stay_as_placeholders() -> None:
    text = render_motion("suppress")
    assert "[Defendant Name]" in text
    assert "{" not in text


def test_discovery_template_cites_brady() -> None:
    assert "Brady v. Maryland" in render_motion("motion_for_discovery", {"defendant": "Jane Roe"})


def test_unknown_type_uses_generic_template() -> None:
    text = render_motion("Motion for Change of Venue")
    assert text.startswith("## Sample Motion Language: Motion for Change of Venue")


def test_aliases_are_listed() -> None:
    types = supported_motion_types()
    assert {"suppress", "motion_in_limine", "continuance"} <= set(types)
