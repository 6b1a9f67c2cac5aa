"""Prompt assembly for AI-written audit insights.

The text-generation service itself is opaque: any ``prompt -> text`` callable.
"""

import logging
from typing import Callable, Optional, Sequence

from gbp_audit.models import AuditScore, PerformanceMetric

logger = logging.getLogger(__name__)

TextGenerator = Callable[[str], str]

_FORMAT_INSTRUCTIONS = """Provide a brief, scannable analysis in this exact format (NO hashtags, NO emojis, short sentences):

PERFORMANCE SUMMARY
[2-3 sentences about current performance]

KEY STRENGTHS
- [strength 1]
- [strength 2]
- [strength 3]

AREAS TO IMPROVE
- [area 1]
- [area 2]
- [area 3]

TOP 3 ACTIONS
1. [specific action with expected impact]
2. [specific action with expected impact]
3. [specific action with expected impact]

Keep it professional, specific with numbers, and under 200 words total."""


def views_trend(metrics: Sequence[PerformanceMetric]) -> Optional[float]:
    """Percent change in views, last 7 days versus the 7 before; None without a baseline."""
    current = sum(metric.views for metric in metrics[-7:])
    previous = sum(metric.views for metric in metrics[-14:-7])
    if previous <= 0:
        return None
    return (current - previous) / previous * 100


def build_insights_prompt(business_name: Optional[str], score: AuditScore,
                          metrics: Sequence[PerformanceMetric]) -> str:
    recent = list(metrics)[-7:]
    views = sum(m.views for m in recent)
    impressions = sum(m.impressions for m in recent)
    calls = sum(m.calls for m in recent)
    clicks = sum(m.website_clicks for m in recent)
    directions = sum(m.direction_requests for m in recent)
    conversion = f"{(calls + clicks + directions) / impressions * 100:.2f}" if impressions > 0 else "0"
    trend = views_trend(list(metrics))
    trend_text = f"{trend:.1f}" if trend is not None else "N/A"

    return (
        "You are an expert Google Business Profile consultant. "
        "Analyze this data and provide concise, actionable insights.\n\n"
        f"Business: {business_name or 'Unknown'}\n"
        f"Overall Score: {score.overall}% | Performance: {score.performance}% | Engagement: {score.engagement}%\n\n"
        f"Last 7 Days: {views} views, {impressions} impressions, {calls} calls, "
        f"{clicks} clicks, {directions} directions\n"
        f"Conversion Rate: {conversion}% | Trend: {trend_text}%\n\n"
        f"{_FORMAT_INSTRUCTIONS}"
    )


def generate_insights(
    generate: TextGenerator,
    business_name: Optional[str],
    score: Optional[AuditScore],
    metrics: Sequence[PerformanceMetric],
) -> str:
    """Ask ``generate`` for insights; requires a score and at least one day of metrics."""
    if not metrics or score is None:
        raise ValueError("Performance data must be fetched before generating insights")
    prompt = build_insights_prompt(business_name, score, metrics)
    logger.info("Requesting audit insights for %s", business_name)
    return generate(prompt)
