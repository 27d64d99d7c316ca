"""Citation extraction and verification against the case-law service.

A citation is reported as found only when a search result unambiguously corresponds to it. An
ambiguous or empty search yields ``found=False``; the verifier never guesses.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from lexagent.logging import get_logger
from lexagent.models import CitationVerificationResult
from lexagent.tools.case_law import CaseLawSearch, CaseRecord, absolute_url

logger = get_logger(__name__)

# volume, reporter, first page: "410 U.S. 113", "10 N.Y.3d 44", "100 F. Supp. 2d 123"
_REPORTER_RE = re.compile(r"\b(\d{1,4})\s+([A-Z][A-Za-z.\d' ]{0,30}?[A-Za-z.\d])\s+(\d{1,5})\b")
_CASE_NAME_RE = re.compile(
    r"((?:[A-Z][\w.'&-]*,?\s+){0,6}?[A-Z][\w.'&-]*\s+v\.\s+(?:[\w.'&-]+,?\s+){0,8}?[\w.'&-]+?),?\s*$"
)
_STATUTE_REPORTERS = {"u.s.c.", "usc", "c.f.r.", "cfr", "u.s.c.a."}
_SIGNALS = ("see also ", "but see ", "see, e.g., ", "see ", "cf. ", "accord ", "compare ", "in ", "under ", "e.g., ")
_ABBREVIATIONS = (
    (r"\bcorp\.", "corporation"),
    (r"\bco\.", "company"),
    (r"\binc\.", "incorporated"),
    (r"\bdept\.", "department"),
    (r"\bdep't", "department"),
    (r"\bctr\.", "center"),
    (r"\bdist\.", "district"),
    (r"\bgov't", "government"),
    (r"\bnat'l", "national"),
)


@dataclass(frozen=True)
class ParsedCitation:
    raw: str
    reporter_citation: str
    case_name: str | None = None


def normalize_case_name(name: str) -> str:
    out = " ".join(name.lower().split())
    for pattern, repl in _ABBREVIATIONS:
        out = re.sub(pattern, repl, out)
    return out.replace("'", "").replace("’", "").strip(" ,.")


def normalize_reporter(citation: str) -> str:
    return " ".join(citation.lower().split())


def _strip_signal(name: str) -> str:
    lowered = name.lower()
    for signal in _SIGNALS:
        if lowered.startswith(signal):
            return name[len(signal):].strip()
    return name.strip()


def _case_name_before(prefix: str) -> str | None:
    cleaned = prefix.replace("*", "").replace("_", " ")
    m = _CASE_NAME_RE.search(cleaned[-200:])
    if not m:
        return None
    name = _strip_signal(" ".join(m.group(1).split()))
    return name if " v. " in name else None


def parse_citation(citation: str) -> ParsedCitation | None:
    """Split a citation into case name (if any) and ``volume reporter page``."""

    text = " ".join(citation.split())
    m = _REPORTER_RE.search(text)
    if not m:
        return None
    reporter = f"{m.group(1)} {m.group(2).strip()} {m.group(3)}"
    return ParsedCitation(raw=text, reporter_citation=reporter, case_name=_case_name_before(text[: m.start()]))


def extract_citations(text: str) -> list[str]:
    """Return the case citations mentioned in ``text``, in order, without duplicates.

    A citation preceded by a case name (``Roe v. Wade, 410 U.S. 113``) is returned with the name.
    """

    if not text:
        return []
    seen: set[str] = set()
    out: list[str] = []
    for m in _REPORTER_RE.finditer(text):
        reporter = f"{m.group(1)} {' '.join(m.group(2).split())} {m.group(3)}"
        if normalize_reporter(m.group(2)) in _STATUTE_REPORTERS:
            continue
        key = normalize_reporter(reporter)
        if key in seen:
            continue
        seen.add(key)
        name = _case_name_before(text[max(0, m.start() - 200) : m.start()])
        out.append(f"{name}, {reporter}" if name else reporter)
    logger.info("Extracted citations", extra={"count": len(out)})
    return out


class CitationVerifier:
    """Verifies citations through a :class:`CaseLawSearch` provider."""

    def __init__(self, case_law: CaseLawSearch) -> None:
        self._case_law = case_law

    def verify(self, citation: str) -> CitationVerificationResult:
        """Verify one citation.

        Raises:
            ExternalServiceError: When the case-law service is unavailable. Callers decide
                whether that counts as unverified.
        """

        parsed = parse_citation(citation or "")
        if parsed is None:
            return CitationVerificationResult(
                found=False,
                citation=citation,
                error_message="Unrecognized citation format",
            )

        results = self._case_law.search_opinions(f'citation:("{parsed.reporter_citation}")')
        match = self._select(parsed, results)
        if match is None and parsed.case_name:
            results = self._case_law.search_opinions(f'caseName:("{parsed.case_name}")')
            match = self._select(parsed, results)

        if match is None:
            reason = (
                "No matching case found"
                if parsed.case_name
                else f"Need case name to verify citation (got {len(results)} potential matches)"
            )
            logger.info("Citation not verified", extra={"citation": parsed.raw, "results": len(results)})
            return CitationVerificationResult(found=False, citation=citation, error_message=reason)

        logger.info("Citation verified", extra={"citation": parsed.raw, "case_name": match.case_name})
        return CitationVerificationResult(
            found=True,
            citation=citation,
            case_name=match.case_name,
            court=match.court,
            date=match.date_filed,
            url=absolute_url(match.url),
        )

    @staticmethod
    def _cites(record: CaseRecord, reporter: str) -> bool:
        return bool(record.citation) and normalize_reporter(reporter) in normalize_reporter(record.citation or "")

    def _select(self, parsed: ParsedCitation, results: list[CaseRecord]) -> CaseRecord | None:
        if parsed.case_name:
            wanted = normalize_case_name(parsed.case_name)
            for record in results:
                # A name hit only counts when the record itself carries the cited reporter.
                if normalize_case_name(record.case_name) != wanted:
                    continue
                if not self._cites(record, parsed.reporter_citation):
                    continue
                return record
            return None

        # Without a case name only an unambiguous hit on the reporter citation counts.
        if len(results) == 1 and self._cites(results[0], parsed.reporter_citation):
            return results[0]
        return None


def format_verification(result: CitationVerificationResult) -> str:
    """Render a verification result for the model."""

    if not result.found:
        return f"Citation not found or cannot be verified: {result.citation}"
    lines = [f"VERIFIED: {result.case_name} - {result.citation}"]
    if result.court:
        lines.append(f"Court: {result.court}")
    if result.date:
        lines.append(f"Date: {result.date}")
    if result.url:
        lines.append(f"URL: {result.url}")
    return "\n".join(lines)
