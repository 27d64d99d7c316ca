"""Tests for the boolean query parser."""

from __future__ import annotations

from lexagent.search.boolean_query import parse_query, to_filter_predicate


def test_and_terms_are_required() -> None:
    """It should put both AND operands in must_terms."""

    parsed = parse_query("contract AND breach")
    assert parsed.must_terms == ("contract", "breach")
    assert parsed.should_terms == ()
    assert parsed.must_not_terms == ()


def test_not_excludes_term() -> None:
    """It should move the NOT operand to must_not_terms."""

    parsed = parse_query("contract NOT fraud")
    assert parsed.must_terms == ("contract",)
    assert parsed.must_not_terms == ("fraud",)


def test_quoted_phrase_is_atomic() -> None:
    """It should keep a quoted phrase as one term."""

    parsed = parse_query('"breach of contract" AND damages')
    assert "breach of contract" in parsed.must_terms
    assert "damages" in parsed.must_terms
    assert "breach" not in parsed.must_terms
    assert parsed.phrases == ("breach of contract",)


def test_or_moves_both_operands_to_should() -> None:
    parsed = parse_query("negligence OR recklessness")
    assert parsed.must_terms == ()
    assert set(parsed.should_terms) == {"negligence", "recklessness"}


def test_empty_query() -> None:
    assert parse_query("   ").is_empty()
    assert parse_query(None).is_empty()


def test_filter_predicate() -> None:
    """It should match records on all must terms and reject must-not terms."""

    keep = to_filter_predicate(parse_query('"search warrant" NOT vehicle'), "case_name", "summary")
    assert keep({"case_name": "State v. Lee", "summary": "The search warrant lacked probable cause."})
    assert not keep({"case_name": "State v. Lee", "summary": "A search warrant for the vehicle."})
    assert not keep({"case_name": "State v. Lee", "summary": "Consent to search."})


def test_operator_only_query_becomes_one_phrase() -> None:
    """It should fall back to the whole query as a single must-phrase."""

    parsed = parse_query("AND OR")
    assert parsed.must_terms == ("AND OR",)
    assert parsed.phrases == ("AND OR",)
    assert parsed.should_terms == ()
    assert parsed.must_not_terms == ()


def test_not_applies_to_one_term_only() -> None:
    parsed = parse_query("NOT fraud damages")
    assert parsed.must_not_terms == ("fraud",)
    assert parsed.must_terms == ("damages",)
