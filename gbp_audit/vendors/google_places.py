"""Client utilities for the Google Places API."""

import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://maps.googleapis.com/maps/api/place"


class GooglePlacesError(RuntimeError):
    """Raised when the Places API returns a non-successful response."""


def nearby_search(
    latitude: float,
    longitude: float,
    keyword: str,
    api_key: str,
    rankby: str = "prominence",
    radius: Optional[int] = None,
) -> Dict[str, Any]:
    """Run a Nearby Search around ``latitude,longitude`` ordered by ``rankby``."""
    params: Dict[str, Any] = {
        "location": f"{latitude},{longitude}",
        "keyword": keyword,
        "rankby": rankby,
        "key": api_key,
    }
    if radius is not None and rankby == "prominence":
        params["radius"] = radius
    response = _SESSION.get(f"{_BASE_URL}/nearbysearch/json", params=params, timeout=10)
    response.raise_for_status()
    payload = response.json()
    status = payload.get("status")
    if status not in {"OK", "ZERO_RESULTS"}:
        logger.error("nearby_search failed: status=%s, error_message=%s", status, payload.get("error_message"))
        raise GooglePlacesError(payload.get("error_message") or status)
    return payload
