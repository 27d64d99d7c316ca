"""Tests for research response parsing."""

from __future__ import annotations

import json

from lexagent.research.responses import StructuredResponse, TextFallbackResponse, parse_research_response


def test_json_response_is_structured() -> None:
    payload = {
        "comprehensiveAnalysis": "Suppression is likely.",
        "practiceRecommendations": ["File within 21 days of arraignment", ""],
        "confidenceLevel": "High - consistent precedent",
    }
    parsed = parse_research_response("```json\n" + json.dumps(payload) + "\n```")

    assert isinstance(parsed, StructuredResponse)
    assert parsed.analysis() == "Suppression is likely."
    assert parsed.recommendations() == ["File within 21 days of arraignment"]
    assert parsed.confidence_label() == "High - consistent precedent"


def test_prose_response_uses_section_fallback() -> None:
    text = (
        "## Comprehensive Analysis\n"
        "The stop lacked reasonable suspicion.\n\n"
        "## Practice Recommendations\n"
        "- Request the dispatch recordings early\n"
        "- Move to suppress before the pretrial conference\n\n"
        "## Confidence Level\n"
        "Medium - limited appellate authority\n"
    )
    parsed = parse_research_response(text)

    assert isinstance(parsed, TextFallbackResponse)
    assert parsed.analysis() == "The stop lacked reasonable suspicion."
    assert parsed.recommendations() == [
        "Request the dispatch recordings early",
        "Move to suppress before the pretrial conference",
    ]
    assert parsed.confidence_label().startswith("Medium")


def test_unstructured_markdown_becomes_the_analysis() -> None:
    parsed = parse_research_response("# Findings\nNo controlling authority located.")
    assert parsed.analysis() == "# Findings\nNo controlling authority located."
    assert parsed.confidence_label() is None
