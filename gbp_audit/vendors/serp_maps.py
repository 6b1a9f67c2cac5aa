"""SerpAPI Google Maps helpers used as an alternative rank-tracking provider."""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Dict, Iterable, List, Optional

from serpapi import GoogleSearch

from gbp_audit.core.config import ConfigError, get_settings

logger = logging.getLogger(__name__)

RETRY_LIMIT = 2
RETRY_DELAY_SECONDS = 1.2
DEFAULT_ZOOM = 14


def build_ll(latitude: float, longitude: float, zoom: int = DEFAULT_ZOOM) -> str:
    """SerpAPI ``ll`` parameter in the form ``@lat,lng,zoomz``."""
    return f"@{latitude},{longitude},{zoom}z"


def build_serpapi_params(query: str, ll: Optional[str] = None) -> Dict[str, Any]:
    """Construct SerpAPI request parameters for the Google Maps engine."""
    if not query or not query.strip():
        raise ValueError("Query must be provided for SerpAPI lookups.")

    settings = get_settings()
    if not settings.serpapi_api_key:
        raise ConfigError("SERPAPI_API_KEY must be set in the environment for SerpAPI rank lookups.")
    params: Dict[str, Any] = {
        "engine": "google_maps",
        "q": query.strip(),
        "api_key": settings.serpapi_api_key,
        "type": "search",
    }
    if ll:
        params["ll"] = ll
    return params


def fetch_from_serpapi(query: str, ll: Optional[str] = None) -> Dict[str, Any]:
    """Call SerpAPI Google Maps and return the raw JSON response with retry logic.

    SerpAPI bills per request, so every attempt is logged for usage tracking.
    """
    params = build_serpapi_params(query, ll)

    attempt = 0
    while True:
        attempt += 1
        try:
            logger.info("Calling SerpAPI (attempt %s) for query=%s ll=%s", attempt, query, ll)
            data = GoogleSearch(params).get_dict()
            if not data:
                raise ValueError("SerpAPI returned an empty payload.")
            if "error" in data:
                raise RuntimeError(f"SerpAPI returned an error response: {data.get('error') or data}")
            return data
        except Exception as exc:  # noqa: BLE001
            logger.warning("SerpAPI request failed (attempt %s/%s): %s", attempt, RETRY_LIMIT + 1, exc)
            if attempt > RETRY_LIMIT:
                logger.error("SerpAPI request exhausted retries for query=%s", query)
                raise
            time.sleep(RETRY_DELAY_SECONDS + random.uniform(0, 0.8))


def parse_local_results(data: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Extract ranked places as ``{"name", "place_id"}`` dicts in result order."""
    if not data:
        return []

    places: List[Dict[str, Any]] = []
    for raw in _extract_items(data):
        if not isinstance(raw, dict):
            continue
        name = (raw.get("title") or raw.get("name") or "").strip()
        if not name:
            continue
        places.append({"name": name, "place_id": raw.get("place_id")})
    return places


def _extract_items(data: Dict[str, Any]) -> Iterable[Any]:
    """SerpAPI sometimes returns local_results as a list or nested dict."""
    local_results = data.get("local_results")
    if isinstance(local_results, list):
        return local_results
    if isinstance(local_results, dict):
        for maybe in (local_results.get("places"), local_results.get("results")):
            if isinstance(maybe, list):
                return maybe
    place_results = data.get("place_results")
    if isinstance(place_results, dict):
        return [place_results]
    return []
