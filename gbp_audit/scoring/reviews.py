"""Review cadence and reply-rate sub-scores.

Reviews have no seeded fallback: an empty review list is itself a signal, so
missing or empty input scores zero.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from gbp_audit.etl.transform import parse_timestamp
from gbp_audit.models import Review, ReviewDetails
from gbp_audit.scoring.fallback import round_half_up

CADENCE_WINDOW_DAYS = 30


@dataclass(frozen=True)
class ReviewScores:
    review_score: int
    review_reply_score: int
    details: ReviewDetails


def review_score_for_rate(reviews_per_week: float) -> int:
    """Discrete cadence score: 2+/week 100, 1-2 50, under 1 25, none 0."""
    if reviews_per_week >= 2:
        return 100
    if reviews_per_week >= 1:
        return 50
    if reviews_per_week > 0:
        return 25
    return 0


def calculate_review_scores(reviews: Optional[Sequence[Review]], now: Optional[datetime] = None) -> ReviewScores:
    details = ReviewDetails()
    if not reviews:
        return ReviewScores(review_score=0, review_reply_score=0, details=details)

    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=CADENCE_WINDOW_DAYS)

    recent = 0
    for review in reviews:
        created = parse_timestamp(review.create_time)
        if created is not None and created >= cutoff:
            recent += 1

    details.total_reviews = len(reviews)
    details.reviews_last_30_days = recent
    details.reviews_per_week = recent / CADENCE_WINDOW_DAYS * 7
    details.replied_reviews = sum(1 for review in reviews if review.has_reply)
    details.reply_rate = details.replied_reviews / details.total_reviews * 100

    return ReviewScores(
        review_score=review_score_for_rate(details.reviews_per_week),
        review_reply_score=round_half_up(details.reply_rate),
        details=details,
    )
