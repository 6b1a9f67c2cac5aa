"""Utilities for transforming upstream GBP payloads into audit models."""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from gbp_audit.models import PerformanceMetric, ProfileSnapshot, RankQuery, Review

logger = logging.getLogger(__name__)

_STAR_RATINGS = {"ONE": 1, "TWO": 2, "THREE": 3, "FOUR": 4, "FIVE": 5}
_FRACTION_RE = re.compile(r"\.(\d+)")

_PROFILE_KEYS = {
    "title": "title",
    "name": "name",
    "displayName": "display_name",
    "phoneNumbers": "phone_numbers",
    "storefrontAddress": "storefront_address",
    "websiteUri": "website_uri",
    "categories": "categories",
    "profile": "profile",
    "regularHours": "regular_hours",
    "serviceArea": "service_area",
    "labels": "labels",
    "adWordsLocationExtensions": "ad_words_location_extensions",
    "languageCode": "language_code",
    "metadata": "metadata",
    "attributes": "attributes",
    "moreHours": "more_hours",
    "latlng": "latlng",
    "placeId": "place_id",
}


def _count(value: Any) -> int:
    try:
        number = int(value or 0)
    except (TypeError, ValueError):
        return 0
    return max(number, 0)


def _extract_daily_metrics(payload: Mapping[str, Any]) -> Optional[List[Dict[str, Any]]]:
    daily = payload.get("dailyMetrics")
    if isinstance(daily, list):
        return daily
    performance = payload.get("performance") or {}
    location_metrics = performance.get("locationMetrics") if isinstance(performance, Mapping) else None
    if isinstance(location_metrics, list) and location_metrics:
        nested = (location_metrics[0] or {}).get("dailyMetrics")
        if isinstance(nested, list):
            return nested
    return None


def to_performance_metrics(payload: Optional[Mapping[str, Any]]) -> Optional[List[PerformanceMetric]]:
    """Convert a performance-source response into an ascending daily series.

    Returns ``None`` when the payload carries no daily metrics list at all.
    """
    if not payload:
        return None
    daily = _extract_daily_metrics(payload)
    if daily is None:
        logger.warning("No daily metrics in performance payload: keys=%s", list(payload.keys())[:10])
        return None

    metrics = [
        PerformanceMetric(
            date=str(day.get("date") or ""),
            views=_count(day.get("views")),
            impressions=_count(day.get("impressions")),
            calls=_count(day.get("calls")),
            website_clicks=_count(day.get("websiteClicks")),
            direction_requests=_count(day.get("directionRequests")),
        )
        for day in daily
        if isinstance(day, Mapping)
    ]
    return sorted(metrics, key=lambda metric: metric.date)


def _parse_rating(raw: Mapping[str, Any]) -> Optional[int]:
    value = raw.get("rating", raw.get("starRating"))
    if isinstance(value, str):
        upper = value.strip().upper()
        if upper in _STAR_RATINGS:
            return _STAR_RATINGS[upper]
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _normalize_reply(reply: Any) -> Optional[Mapping[str, Any]]:
    """Any reply object counts, even an empty one; a bare string becomes a comment."""
    if isinstance(reply, Mapping):
        return reply
    if isinstance(reply, str) and reply:
        return {"comment": reply}
    return None


def to_reviews(payload: Optional[Mapping[str, Any]]) -> Optional[List[Review]]:
    """Convert a reviews-source response; ``None`` means the source had no review list."""
    if not payload:
        return None
    raw_reviews = payload.get("reviews")
    if raw_reviews is None:
        return None
    if not isinstance(raw_reviews, list):
        logger.warning("Reviews payload is not a list: %s", type(raw_reviews).__name__)
        return None

    reviews: List[Review] = []
    for raw in raw_reviews:
        if not isinstance(raw, Mapping):
            continue
        reply = raw.get("reviewReply")
        if reply is None:
            reply = raw.get("reply")
        reviews.append(
            Review(
                rating=_parse_rating(raw),
                create_time=raw.get("createTime"),
                reply=_normalize_reply(reply),
            )
        )
    return reviews


def to_profile_snapshot(raw: Optional[Mapping[str, Any]]) -> Optional[ProfileSnapshot]:
    if not raw:
        return None
    values = {attr: raw.get(key) for key, attr in _PROFILE_KEYS.items()}
    return ProfileSnapshot(raw=dict(raw), **values)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp (``Z`` suffix, up to nanosecond fractions) to aware UTC."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda match: "." + match.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.debug("Unable to parse timestamp %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def _first_category_name(categories: Any) -> Optional[str]:
    if isinstance(categories, list) and categories:
        first = categories[0]
        if isinstance(first, Mapping):
            return first.get("displayName") or None
    if isinstance(categories, Mapping):
        primary = categories.get("primaryCategory")
        if isinstance(primary, Mapping):
            return primary.get("displayName") or None
    return None


def _coordinate(profile: ProfileSnapshot, key: str) -> Optional[float]:
    for container in (profile.latlng, profile.storefront_address):
        if isinstance(container, Mapping):
            value = _safe_float(container.get(key))
            if value:
                return value
    return None


def rank_query_from_profile(profile: Optional[ProfileSnapshot]) -> Optional[RankQuery]:
    """Build the rank-lookup request, or ``None`` when name or coordinates are missing."""
    if profile is None:
        return None
    business_name = profile.business_name
    latitude = _coordinate(profile, "latitude")
    longitude = _coordinate(profile, "longitude")
    if not (business_name and latitude and longitude):
        return None

    metadata = profile.metadata if isinstance(profile.metadata, Mapping) else {}
    place_id = profile.place_id or metadata.get("placeId") or None
    return RankQuery(
        business_name=str(business_name),
        latitude=latitude,
        longitude=longitude,
        place_id=place_id,
        category=_first_category_name(profile.categories),
    )
