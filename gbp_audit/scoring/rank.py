"""Search-rank resolution with a seeded fallback."""

import logging
from typing import Callable, Optional

from gbp_audit.etl.transform import rank_query_from_profile
from gbp_audit.models import ProfileSnapshot, RankQuery, RankResult
from gbp_audit.scoring.fallback import fallback_score

logger = logging.getLogger(__name__)

# Rank reported when the business is not among the tracked results.
NOT_FOUND_RANK = 30

RankLookup = Callable[[RankQuery], RankResult]


def fallback_rank(location_id: str) -> int:
    return fallback_score(f"{location_id}rank", 1, 15)


def resolve_search_rank(
    location_id: str,
    *,
    has_metrics: bool,
    profile: Optional[ProfileSnapshot],
    lookup: Optional[RankLookup],
) -> int:
    """Return the location's search rank; lookup failures degrade to the fallback."""
    if not has_metrics or lookup is None:
        return fallback_rank(location_id)

    query = rank_query_from_profile(profile)
    if query is None:
        logger.warning("Missing name or coordinates for rank tracking of %s; using fallback", location_id)
        return fallback_rank(location_id)

    try:
        result = lookup(query)
    except Exception as exc:  # noqa: BLE001
        logger.error("Rank lookup failed for %s: %s", location_id, exc)
        return fallback_rank(location_id)

    if not result.found:
        logger.info("%s not found in search results; rank=%d", query.business_name, NOT_FOUND_RANK)
        return NOT_FOUND_RANK
    if not isinstance(result.rank, int) or result.rank < 1:
        logger.error("Rank lookup returned invalid rank %r for %s", result.rank, location_id)
        return fallback_rank(location_id)
    return result.rank
