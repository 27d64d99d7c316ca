"""Regulation text capability backed by the eCFR versioner API."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol

import httpx
from bs4 import BeautifulSoup

from lexagent.config import Settings
from lexagent.errors import ExternalServiceError
from lexagent.logging import get_logger

logger = get_logger(__name__)

_MAX_TEXT_CHARS = 12000


class RegulationSource(Protocol):
    """Regulation text interface."""

    def get_regulation_text(self, title: str, part: str, section: str | None = None) -> str:
        """Return the plain text of a CFR part or section."""


def flatten_ecfr_xml(xml: str, *, max_chars: int = _MAX_TEXT_CHARS) -> str:
    """Turn eCFR XML into readable text: headings and paragraphs, one per line."""

    soup = BeautifulSoup(xml, "lxml-xml")
    lines: list[str] = []
    for node in soup.find_all(["HEAD", "P", "FP", "CITA"]):
        text = " ".join(node.get_text(" ", strip=True).split())
        if text:
            lines.append(text)
    out = "\n".join(lines)
    if len(out) > max_chars:
        out = out[:max_chars].rstrip() + "\n[... truncated ...]"
    return out


@dataclass(frozen=True)
class ECFRClient:
    """eCFR client.

    The versioner API serves content per issue date; the latest issue date of the title is
    looked up first so requests never ask for a date that has not been published yet.
    """

    base_url: str
    timeout_s: float = 30.0
    user_agent: str = "lexagent"

    def _latest_issue_date(self, client: httpx.Client, title: str) -> str:
        resp = client.get(f"{self.base_url.rstrip('/')}/titles.json")
        resp.raise_for_status()
        data = resp.json()
        for item in data.get("titles", []) if isinstance(data, dict) else []:
            if str(item.get("number")) == str(title) and item.get("latest_issue_date"):
                return str(item["latest_issue_date"])
        raise ExternalServiceError(f"CFR title {title} not found")

    def get_regulation_text(self, title: str, part: str, section: str | None = None) -> str:
        """Fetch a CFR part or section.

        Args:
            title: CFR title number, e.g. ``"29"``.
            part: Part number, e.g. ``"1630"``.
            section: Optional section within the part, e.g. ``"2"`` or ``"1630.2"``.

        Returns:
            Flattened regulation text prefixed with its citation.
        """

        title = str(title).strip()
        part = str(part).strip()
        if not title or not part:
            raise ValueError("CFR title and part are required")

        params = {"part": part}
        citation = f"{title} CFR Part {part}"
        if section:
            sec = str(section).strip()
            if not sec.startswith(f"{part}."):
                sec = f"{part}.{sec}"
            params["section"] = sec
            citation = f"{title} CFR § {sec}"

        started = time.monotonic()
        try:
            with httpx.Client(
                timeout=httpx.Timeout(self.timeout_s),
                headers={"User-Agent": self.user_agent},
                follow_redirects=True,
            ) as client:
                issue_date = self._latest_issue_date(client, title)
                resp = client.get(
                    f"{self.base_url.rstrip('/')}/full/{issue_date}/title-{title}.xml",
                    params=params,
                )
                if resp.status_code == 404:
                    return f"Regulation not found: {citation}"
                resp.raise_for_status()
                xml = resp.text
        except (httpx.HTTPError, ValueError) as e:
            logger.error(
                "eCFR request failed",
                extra={"citation": citation, "error_type": type(e).__name__, "error": str(e)},
            )
            raise ExternalServiceError(f"Regulation lookup failed for {citation}") from e

        text = flatten_ecfr_xml(xml)
        logger.info(
            "eCFR fetch ok",
            extra={
                "citation": citation,
                "chars": len(text),
                "latency_ms": int((time.monotonic() - started) * 1000),
            },
        )
        if not text:
            return f"Regulation not found: {citation}"
        return f"{citation} (as of {issue_date}):\n\n{text}"


def create_regulation_source(settings: Settings) -> RegulationSource:
    return ECFRClient(
        base_url=settings.ecfr_base_url,
        timeout_s=settings.ecfr_timeout_s,
        user_agent=settings.http_user_agent,
    )
