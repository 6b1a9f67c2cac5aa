"""Local search-rank tracking for a business around its own coordinates."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional

from gbp_audit.core.config import ConfigError, Settings, get_settings
from gbp_audit.models import RankQuery, RankResult
from gbp_audit.scoring.rank import NOT_FOUND_RANK
from gbp_audit.vendors import google_places, serp_maps

logger = logging.getLogger(__name__)

SEARCH_RADIUS_METERS = 5000
BATCH_DELAY_SECONDS = 0.1


def _names_match(candidate: str, business_name: str) -> bool:
    candidate = candidate.lower()
    business_name = business_name.lower()
    return candidate in business_name or business_name in candidate


def locate_in_results(query: RankQuery, places: List[Dict[str, Any]]) -> RankResult:
    """Find the business in ordered results by place id, then by name containment."""
    if not places:
        return RankResult(found=False, rank=NOT_FOUND_RANK, total_results=0,
                          message="Business not found in search results")

    for position, place in enumerate(places, start=1):
        if query.place_id and place.get("place_id") == query.place_id:
            logger.info("Found %s by place_id at rank %d", query.business_name, position)
            return RankResult(found=True, rank=min(position, NOT_FOUND_RANK), total_results=len(places),
                              message="Rank calculated successfully")
        if _names_match(place.get("name") or "", query.business_name):
            logger.info("Found %s by name at rank %d: %r", query.business_name, position, place.get("name"))
            return RankResult(found=True, rank=min(position, NOT_FOUND_RANK), total_results=len(places),
                              message="Rank calculated successfully")

    logger.info("%s not found in top %d results", query.business_name, len(places))
    return RankResult(found=False, rank=NOT_FOUND_RANK, total_results=len(places),
                      message="Business not found in top results")


def _places_results(query: RankQuery, settings: Settings) -> List[Dict[str, Any]]:
    if not settings.google_api_key:
        raise ConfigError("GOOGLE_API_KEY is required for Google Places rank lookups")
    payload = google_places.nearby_search(
        latitude=query.latitude,
        longitude=query.longitude,
        keyword=query.category or query.business_name,
        api_key=settings.google_api_key,
        radius=SEARCH_RADIUS_METERS,
    )
    return [
        {"name": result.get("name") or "", "place_id": result.get("place_id")}
        for result in payload.get("results", [])
    ]


def _serpapi_results(query: RankQuery) -> List[Dict[str, Any]]:
    data = serp_maps.fetch_from_serpapi(
        query.category or query.business_name,
        serp_maps.build_ll(query.latitude, query.longitude),
    )
    return serp_maps.parse_local_results(data)


def find_rank(query: RankQuery, settings: Optional[Settings] = None) -> RankResult:
    """Rank ``query`` against the configured provider; provider errors propagate."""
    settings = settings or get_settings()
    logger.info("Fetching rank for %s at %s,%s", query.business_name, query.latitude, query.longitude)
    if settings.rank_provider == "serpapi":
        places = _serpapi_results(query)
    else:
        places = _places_results(query, settings)
    return locate_in_results(query, places)


def query_from_payload(payload: Mapping[str, Any]) -> Optional[RankQuery]:
    """Build a RankQuery from a ``get-rank`` request body, or ``None`` if incomplete."""
    business_name = payload.get("businessName")
    try:
        latitude = float(payload.get("latitude") or 0)
        longitude = float(payload.get("longitude") or 0)
    except (TypeError, ValueError):
        return None
    if not business_name or not latitude or not longitude:
        return None
    return RankQuery(
        business_name=str(business_name),
        latitude=latitude,
        longitude=longitude,
        place_id=payload.get("placeId") or None,
        category=payload.get("category") or None,
    )


def find_ranks(locations: Iterable[Mapping[str, Any]], settings: Optional[Settings] = None) -> List[Dict[str, Any]]:
    """Rank several businesses sequentially; each failure is reported inline."""
    settings = settings or get_settings()
    results: List[Dict[str, Any]] = []
    for location in locations:
        business_name = location.get("businessName") if isinstance(location, Mapping) else None
        query = query_from_payload(location) if isinstance(location, Mapping) else None
        if query is None:
            results.append({"businessName": business_name, "rank": NOT_FOUND_RANK, "error": "Missing required fields"})
            continue

        try:
            result = find_rank(query, settings)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Batch rank failed for %s: %s", business_name, exc)
            results.append({"businessName": business_name, "rank": NOT_FOUND_RANK, "error": str(exc)})
            continue

        results.append(
            {
                "businessName": business_name,
                "rank": result.rank,
                "found": result.found,
                "totalResults": result.total_results,
            }
        )
        time.sleep(BATCH_DELAY_SECONDS)
    return results
