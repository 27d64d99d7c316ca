"""Case-law search capability.

The production provider talks to the CourtListener REST API (v4). Tests and offline runs inject
any object satisfying :class:`CaseLawSearch`.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Protocol

import httpx
from pydantic import BaseModel

from lexagent.config import Settings
from lexagent.errors import ExternalServiceError
from lexagent.logging import get_logger

logger = get_logger(__name__)

COURTLISTENER_SITE = "https://www.courtlistener.com"

# Common jurisdiction names mapped to CourtListener court ids.
_COURT_IDS = {
    "massachusetts": "mass massappct",
    "mass": "mass massappct",
    "federal": "",
    "first circuit": "ca1",
    "1st circuit": "ca1",
    "d. mass.": "mad",
    "district of massachusetts": "mad",
    "supreme court": "scotus",
    "scotus": "scotus",
    "new york": "ny nyappdiv",
    "california": "cal calctapp",
}


class CaseRecord(BaseModel):
    """A single opinion returned by a case-law search."""

    case_name: str
    citation: str | None = None
    court: str | None = None
    date_filed: str | None = None
    url: str | None = None
    summary: str = ""


class CaseLawSearch(Protocol):
    """Case-law search interface."""

    def search_opinions(
        self,
        query: str,
        *,
        jurisdiction: str | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[CaseRecord]:
        """Search court opinions."""


def absolute_url(url: str | None) -> str | None:
    """Make a CourtListener relative URL absolute."""

    if not url:
        return None
    if url.startswith("http://") or url.startswith("https://"):
        return url
    return COURTLISTENER_SITE + ("" if url.startswith("/") else "/") + url


def court_filter(jurisdiction: str | None) -> str | None:
    if not jurisdiction or not jurisdiction.strip():
        return None
    key = jurisdiction.strip().lower()
    if key in _COURT_IDS:
        return _COURT_IDS[key] or None
    # Already looks like a list of court ids.
    if all(part.isalnum() and part.islower() for part in key.split()):
        return key
    return None


def _citations(raw: Any) -> str | None:
    if isinstance(raw, list):
        return "; ".join(str(c) for c in raw) if raw else None
    if raw:
        return str(raw)
    return None


def _snippet(item: dict[str, Any]) -> str:
    opinions = item.get("opinions")
    if isinstance(opinions, list):
        for op in opinions:
            if isinstance(op, dict) and op.get("snippet"):
                return str(op["snippet"]).strip()
    return str(item.get("snippet") or item.get("syllabus") or "").strip()


def parse_search_results(data: Any) -> list[CaseRecord]:
    """Map a CourtListener search response to :class:`CaseRecord` objects."""

    if not isinstance(data, dict):
        raise ExternalServiceError("courtlistener response not a JSON object")
    raw_results = data.get("results")
    if not isinstance(raw_results, list):
        raise ExternalServiceError("courtlistener response missing results list")

    out: list[CaseRecord] = []
    for item in raw_results:
        if not isinstance(item, dict):
            continue
        name = item.get("caseName") or item.get("case_name")
        if not name:
            continue
        out.append(
            CaseRecord(
                case_name=str(name),
                citation=_citations(item.get("citation")),
                court=item.get("court") or item.get("court_id"),
                date_filed=(item.get("dateFiled") or item.get("date_filed") or None),
                url=absolute_url(item.get("absolute_url")),
                summary=_snippet(item),
            )
        )
    return out


@dataclass(frozen=True)
class CourtListenerClient:
    """CourtListener v4 search client.

    Notes:
        - The API token is optional for search but strongly recommended (rate limits).
        - Transient statuses (429, 5xx) and transport errors are retried with capped backoff.
    """

    base_url: str
    api_token: str | None = None
    timeout_s: float = 30.0
    max_results: int = 20
    user_agent: str = "lexagent"
    max_retries: int = 2
    retry_backoff_s: float = 0.75
    retry_max_backoff_s: float = 8.0

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json", "User-Agent": self.user_agent}
        if self.api_token:
            headers["Authorization"] = f"Token {self.api_token}"
        return headers

    def search_opinions(
        self,
        query: str,
        *,
        jurisdiction: str | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[CaseRecord]:
        """Search opinions.

        Args:
            query: Full-text query.
            jurisdiction: Jurisdiction name or CourtListener court ids.
            from_date: Only opinions filed after this date.
            to_date: Only opinions filed before this date.

        Returns:
            At most ``max_results`` records.
        """

        url = f"{self.base_url.rstrip('/')}/search/"
        params: dict[str, str] = {"type": "o", "q": query, "order_by": "score desc"}
        court = court_filter(jurisdiction)
        if court:
            params["court"] = court
        if from_date is not None:
            params["filed_after"] = from_date.isoformat()
        if to_date is not None:
            params["filed_before"] = to_date.isoformat()

        last_err: Exception | None = None
        started = time.monotonic()
        with httpx.Client(timeout=httpx.Timeout(self.timeout_s), headers=self._headers()) as client:
            for attempt in range(self.max_retries + 1):
                try:
                    resp = client.get(url, params=params)
                    if resp.status_code in {429, 500, 502, 503, 504}:
                        raise httpx.HTTPStatusError(
                            f"courtlistener transient status={resp.status_code}",
                            request=resp.request,
                            response=resp,
                        )
                    resp.raise_for_status()
                    results = parse_search_results(resp.json())[: self.max_results]
                    logger.info(
                        "CourtListener search ok",
                        extra={
                            "query_len": len(query),
                            "court": court,
                            "attempt": attempt,
                            "result_count": len(results),
                            "latency_ms": int((time.monotonic() - started) * 1000),
                        },
                    )
                    return results
                except httpx.HTTPStatusError as e:
                    last_err = e
                    if e.response.status_code not in {429, 500, 502, 503, 504}:
                        break
                except (httpx.TimeoutException, httpx.RequestError) as e:
                    last_err = e
                except ValueError as e:
                    # Malformed JSON is not going to fix itself on retry.
                    last_err = e
                    break

                if attempt >= self.max_retries:
                    break
                sleep_s = min(self.retry_max_backoff_s, self.retry_backoff_s * (2**attempt))
                logger.warning(
                    "CourtListener search retry",
                    extra={"attempt": attempt, "sleep_s": sleep_s, "error_type": type(last_err).__name__},
                )
                time.sleep(sleep_s)

        logger.error(
            "CourtListener search failed",
            extra={
                "query_len": len(query),
                "elapsed_ms": int((time.monotonic() - started) * 1000),
                "error_type": type(last_err).__name__ if last_err is not None else None,
            },
        )
        raise ExternalServiceError("Case law search failed") from last_err


def create_case_law_search(settings: Settings) -> CaseLawSearch:
    """Create the configured case-law search provider."""

    return CourtListenerClient(
        base_url=settings.courtlistener_base_url,
        api_token=settings.courtlistener_api_token,
        timeout_s=settings.courtlistener_timeout_s,
        max_results=settings.courtlistener_max_results,
        user_agent=settings.http_user_agent,
    )
