"""HTTP client for the dashboard backend that proxies the Business Profile APIs."""

import logging
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from gbp_audit.errors import (
    AuditError,
    RankLookupError,
    SourceAccessGatedError,
    SourceUnavailableError,
)
from gbp_audit.models import RankQuery, RankResult

logger = logging.getLogger(__name__)

# Statuses the backend uses when the Performance API is not enabled for the account.
_GATED_STATUSES = {403, 503}


def build_session() -> requests.Session:
    """Session that retries idempotent reads on network errors and transient 5xx."""
    session = requests.Session()
    retries = Retry(
        total=3,
        backoff_factor=1,
        status_forcelist=(500, 502, 504),
        allowed_methods=("GET",),
        raise_on_status=False,
    )
    session.mount("http://", HTTPAdapter(max_retries=retries))
    session.mount("https://", HTTPAdapter(max_retries=retries))
    return session


class BackendClient:
    """Thin wrapper around the backend's location, review and rank endpoints."""

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        timeout: int = 10,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.timeout = timeout
        self.session = session or build_session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def _get_json(self, source: str, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = self.session.get(
                f"{self.base_url}{path}", params=params, headers=self._headers(), timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise SourceUnavailableError(source, str(exc)) from exc

        if response.status_code in _GATED_STATUSES:
            message = _error_message(response)
            logger.warning("%s access required (status=%s): %s", source, response.status_code, message)
            raise SourceAccessGatedError(source, message, status_code=response.status_code)
        if not (200 <= response.status_code < 300):
            message = _error_message(response)
            logger.error("%s returned status %s: %s", source, response.status_code, message)
            raise SourceUnavailableError(source, message, status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            raise SourceUnavailableError(source, "invalid JSON payload", status_code=response.status_code) from exc
        if not isinstance(payload, dict):
            raise SourceUnavailableError(source, "unexpected payload shape", status_code=response.status_code)
        return payload

    def fetch_performance(self, location_id: str, start_date: str, end_date: str) -> Dict[str, Any]:
        return self._get_json(
            "performance",
            f"/api/locations/{location_id}/audit/performance",
            params={"startDate": start_date, "endDate": end_date},
        )

    def fetch_reviews(self, location_id: str) -> Dict[str, Any]:
        return self._get_json("reviews", f"/api/locations/{location_id}/reviews")

    def get_rank(self, query: RankQuery) -> RankResult:
        try:
            response = self.session.post(
                f"{self.base_url}/api/rank-tracking/get-rank",
                json=query.to_payload(),
                headers=self._headers(),
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise RankLookupError(f"rank lookup failed: {exc}") from exc

        if not isinstance(data, dict):
            raise RankLookupError("rank lookup returned an unexpected payload")
        found = bool(data.get("found"))
        rank = data.get("rank")
        if found and not isinstance(rank, int):
            raise RankLookupError(f"rank lookup returned a non-integer rank: {rank!r}")
        return RankResult(
            found=found,
            rank=rank if isinstance(rank, int) else 0,
            total_results=int(data.get("totalResults") or 0),
            message=str(data.get("message") or ""),
        )

    def generate_text(self, prompt: str) -> str:
        """Send ``prompt`` to the backend's AI insights endpoint and return the generated text."""
        try:
            response = self.session.post(
                f"{self.base_url}/api/ai/insights",
                json={"prompt": prompt},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise AuditError(f"insights request failed: {exc}") from exc

        if not (200 <= response.status_code < 300):
            message = _error_message(response)
            logger.error("Insights endpoint returned status %s: %s", response.status_code, message)
            raise AuditError(f"insights request failed: {message}")
        try:
            data = response.json()
        except ValueError as exc:
            raise AuditError("insights endpoint returned invalid JSON") from exc
        content = data.get("content") if isinstance(data, dict) else None
        if not isinstance(content, str) or not content.strip():
            raise AuditError("insights endpoint returned no content")
        return content

    def close(self) -> None:
        self.session.close()


def _error_message(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return (response.text or "")[:500]
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or data)[:500]
    return str(data)[:500]
