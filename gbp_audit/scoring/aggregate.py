"""Weighted overall score. Search rank is reported alongside, never blended in."""

from typing import Mapping

from gbp_audit.scoring.fallback import round_half_up

WEIGHTS: Mapping[str, float] = {
    "performance": 0.15,
    "engagement": 0.15,
    "profile_completion": 0.20,
    "seo_score": 0.20,
    "review_score": 0.15,
    "review_reply_score": 0.15,
}


def overall_score(
    *,
    performance: float,
    engagement: float,
    profile_completion: float,
    seo_score: float,
    review_score: float,
    review_reply_score: float,
) -> int:
    """Round the weighted sum of unrounded components exactly once."""
    weighted = (
        performance * WEIGHTS["performance"]
        + engagement * WEIGHTS["engagement"]
        + profile_completion * WEIGHTS["profile_completion"]
        + seo_score * WEIGHTS["seo_score"]
        + review_score * WEIGHTS["review_score"]
        + review_reply_score * WEIGHTS["review_reply_score"]
    )
    return max(0, min(100, round_half_up(weighted)))
