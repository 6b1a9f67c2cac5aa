"""Compose the sub-score calculators into one AuditScore."""

import logging
from datetime import datetime
from typing import Optional, Sequence

from gbp_audit.models import AuditScore, PerformanceMetric, ProfileSnapshot, Review
from gbp_audit.scoring.aggregate import overall_score
from gbp_audit.scoring.fallback import round_half_up
from gbp_audit.scoring.performance import calculate_performance
from gbp_audit.scoring.profile import calculate_profile_completion
from gbp_audit.scoring.rank import RankLookup, resolve_search_rank
from gbp_audit.scoring.reviews import calculate_review_scores
from gbp_audit.scoring.seo import calculate_seo

logger = logging.getLogger(__name__)


def calculate_audit_score(
    location_id: str,
    metrics: Sequence[PerformanceMetric],
    profile: Optional[ProfileSnapshot],
    reviews: Optional[Sequence[Review]],
    *,
    rank_lookup: Optional[RankLookup] = None,
    now: Optional[datetime] = None,
) -> AuditScore:
    """Score a location from whatever data is available.

    Missing metrics or profile fields fall back to seeded scores derived from
    ``location_id``; the rank lookup is only attempted when metrics exist.
    """
    location_id = location_id or "0"
    perf = calculate_performance(location_id, metrics)
    search_rank = resolve_search_rank(
        location_id,
        has_metrics=perf.from_metrics,
        profile=profile,
        lookup=rank_lookup,
    )
    completion = calculate_profile_completion(location_id, profile)
    seo = calculate_seo(location_id, profile)
    review = calculate_review_scores(reviews, now=now)

    overall = overall_score(
        performance=perf.performance,
        engagement=perf.engagement,
        profile_completion=completion.score,
        seo_score=seo.score,
        review_score=review.review_score,
        review_reply_score=review.review_reply_score,
    )
    logger.debug(
        "Scored %s: overall=%d metrics=%s profile=%s seo=%s",
        location_id,
        overall,
        perf.from_metrics,
        completion.from_profile,
        seo.from_profile,
    )

    return AuditScore(
        overall=overall,
        performance=round_half_up(perf.performance),
        engagement=round_half_up(perf.engagement),
        search_rank=search_rank,
        profile_completion=round_half_up(completion.score),
        seo_score=round_half_up(seo.score),
        review_score=review.review_score,
        review_reply_score=review.review_reply_score,
        profile_completion_details=completion.details,
        seo_details=seo.details,
        review_details=review.details,
    )
