"""Core data models shared by the audit scoring pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional


@dataclass(frozen=True, slots=True)
class PerformanceMetric:
    """One calendar day of activity for a location."""

    date: str
    views: int = 0
    impressions: int = 0
    calls: int = 0
    website_clicks: int = 0
    direction_requests: int = 0

    @property
    def actions(self) -> int:
        return self.calls + self.website_clicks + self.direction_requests

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "views": self.views,
            "impressions": self.impressions,
            "calls": self.calls,
            "websiteClicks": self.website_clicks,
            "directionRequests": self.direction_requests,
        }


@dataclass(frozen=True, slots=True)
class ProfileSnapshot:
    """Read-only view of the raw business-profile record."""

    title: Any = None
    name: Any = None
    display_name: Any = None
    phone_numbers: Any = None
    storefront_address: Any = None
    website_uri: Any = None
    categories: Any = None
    profile: Any = None
    regular_hours: Any = None
    service_area: Any = None
    labels: Any = None
    ad_words_location_extensions: Any = None
    language_code: Any = None
    metadata: Any = None
    attributes: Any = None
    more_hours: Any = None
    latlng: Any = None
    place_id: Any = None
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False)

    @property
    def has_identity(self) -> bool:
        return bool(self.title or self.name)

    @property
    def business_name(self) -> Optional[str]:
        return self.title or self.name or self.display_name or None

    @property
    def description(self) -> Any:
        if isinstance(self.profile, Mapping):
            return self.profile.get("description")
        return None


@dataclass(frozen=True, slots=True)
class Review:
    rating: Optional[int] = None
    create_time: Optional[str] = None
    reply: Optional[Mapping[str, Any]] = None

    @property
    def has_reply(self) -> bool:
        return self.reply is not None


@dataclass(slots=True)
class ProfileCompletionDetails:
    total_fields: int
    completed_fields: int
    missing_fields: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalFields": self.total_fields,
            "completedFields": self.completed_fields,
            "missingFields": list(self.missing_fields),
        }


@dataclass(slots=True)
class SeoDetails:
    has_description: bool
    has_keywords: bool
    has_categories: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hasDescription": self.has_description,
            "hasKeywords": self.has_keywords,
            "hasCategories": self.has_categories,
        }


@dataclass(slots=True)
class ReviewDetails:
    total_reviews: int = 0
    reviews_last_30_days: int = 0
    reviews_per_week: float = 0.0
    replied_reviews: int = 0
    reply_rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalReviews": self.total_reviews,
            "reviewsLast30Days": self.reviews_last_30_days,
            "reviewsPerWeek": self.reviews_per_week,
            "repliedReviews": self.replied_reviews,
            "replyRate": self.reply_rate,
        }


@dataclass(frozen=True, slots=True)
class AuditScore:
    """Composite health score produced by one audit run.

    ``overall`` is only ever produced by the aggregator; build instances through
    :func:`gbp_audit.scoring.engine.calculate_audit_score`.
    """

    overall: int
    performance: int
    engagement: int
    search_rank: int
    profile_completion: int
    seo_score: int
    review_score: int
    review_reply_score: int
    profile_completion_details: Optional[ProfileCompletionDetails] = None
    seo_details: Optional[SeoDetails] = None
    review_details: Optional[ReviewDetails] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "overall": self.overall,
            "performance": self.performance,
            "engagement": self.engagement,
            "searchRank": self.search_rank,
            "profileCompletion": self.profile_completion,
            "seoScore": self.seo_score,
            "reviewScore": self.review_score,
            "reviewReplyScore": self.review_reply_score,
        }
        if self.profile_completion_details is not None:
            payload["profileCompletionDetails"] = self.profile_completion_details.to_dict()
        if self.seo_details is not None:
            payload["seoDetails"] = self.seo_details.to_dict()
        if self.review_details is not None:
            payload["reviewDetails"] = self.review_details.to_dict()
        return payload


@dataclass(frozen=True, slots=True)
class RankQuery:
    business_name: str
    latitude: float
    longitude: float
    place_id: Optional[str] = None
    category: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "businessName": self.business_name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "placeId": self.place_id,
            "category": self.category,
        }


@dataclass(frozen=True, slots=True)
class RankResult:
    found: bool
    rank: int
    total_results: int = 0
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "found": self.found,
            "rank": self.rank,
            "totalResults": self.total_results,
            "message": self.message,
        }


@dataclass(slots=True)
class AuditRunRecord:
    """Write-once record of one audit run, shipped to the persistence sink."""

    user_id: Optional[str]
    location_id: str
    score: AuditScore
    performance_series: List[PerformanceMetric] = field(default_factory=list)
    recommendations: Dict[str, Any] = field(default_factory=lambda: {"recommendations": []})
    date_range: Dict[str, str] = field(default_factory=dict)
    timestamp: str = ""
    user_email: Optional[str] = None
    location_name: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "userEmail": self.user_email or "unknown",
            "locationId": self.location_id,
            "locationName": self.location_name,
            "performance": {"timeSeriesData": [metric.to_dict() for metric in self.performance_series]},
            "score": self.score.to_dict(),
            "recommendations": self.recommendations,
            "dateRange": dict(self.date_range),
            "metadata": {"source": "audit_tool", "timestamp": self.timestamp},
        }
