"""SEO sub-score from description length and categories."""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from gbp_audit.models import ProfileSnapshot, SeoDetails
from gbp_audit.scoring.fallback import fallback_score

DESCRIPTION_MIN_LENGTH = 50
KEYWORDS_MIN_LENGTH = 100


@dataclass(frozen=True)
class SeoResult:
    score: float
    details: SeoDetails
    from_profile: bool


def _utf16_length(text: str) -> int:
    return len(text.encode("utf-16-le", errors="surrogatepass")) // 2


def _has_categories(categories: Any) -> bool:
    if not categories:
        return False
    if isinstance(categories, (list, tuple)):
        return len(categories) > 0
    if isinstance(categories, Mapping):
        return bool(categories.get("primaryCategory"))
    return False


def calculate_seo(location_id: str, profile: Optional[ProfileSnapshot]) -> SeoResult:
    fallback = fallback_score(f"{location_id}seo", 55, 95)
    if profile is None or not profile.has_identity:
        return SeoResult(score=fallback, details=SeoDetails(True, True, True), from_profile=False)

    details = SeoDetails(has_description=False, has_keywords=False, has_categories=False)
    score = 0
    description = profile.description
    length = _utf16_length(description) if isinstance(description, str) else 0
    if length > DESCRIPTION_MIN_LENGTH:
        details.has_description = True
        score += 33
    if length > KEYWORDS_MIN_LENGTH:
        details.has_keywords = True
        score += 33
    if _has_categories(profile.categories):
        details.has_categories = True
        score += 34

    if score > 0:
        return SeoResult(score=score, details=details, from_profile=True)
    return SeoResult(score=fallback, details=details, from_profile=False)
