"""Performance and engagement sub-scores from the daily metrics series."""

from dataclasses import dataclass
from typing import Sequence

from gbp_audit.models import PerformanceMetric
from gbp_audit.scoring.fallback import fallback_score

RECENT_DAYS = 7
VIEWS_FOR_FULL_SCORE = 100
ENGAGEMENT_MULTIPLIER = 20


@dataclass(frozen=True)
class PerformanceScores:
    performance: float
    engagement: float
    from_metrics: bool


def engagement_rate(metrics: Sequence[PerformanceMetric]) -> float:
    """Actions per hundred impressions; 0 when there were no impressions."""
    impressions = sum(metric.impressions for metric in metrics)
    if impressions <= 0:
        return 0.0
    actions = sum(metric.actions for metric in metrics)
    return actions / impressions * 100


def calculate_performance(location_id: str, metrics: Sequence[PerformanceMetric]) -> PerformanceScores:
    if not metrics:
        return PerformanceScores(
            performance=fallback_score(f"{location_id}perf", 45, 95),
            engagement=fallback_score(f"{location_id}engage", 50, 90),
            from_metrics=False,
        )

    recent = list(metrics)[-RECENT_DAYS:]
    avg_daily_views = sum(metric.views for metric in recent) / len(recent)
    performance = min(100.0, avg_daily_views / VIEWS_FOR_FULL_SCORE * 100)
    engagement = min(100.0, engagement_rate(recent) * ENGAGEMENT_MULTIPLIER)
    return PerformanceScores(
        performance=max(0.0, performance),
        engagement=max(0.0, engagement),
        from_metrics=True,
    )
