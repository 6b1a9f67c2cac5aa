"""Profile completeness against a fixed checklist of GBP fields."""

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple

from gbp_audit.models import ProfileCompletionDetails, ProfileSnapshot
from gbp_audit.scoring.fallback import fallback_score, round_half_up

Accessor = Callable[[ProfileSnapshot], Any]

PROFILE_CHECKLIST: Tuple[Tuple[str, Accessor], ...] = (
    ("Business Name", lambda p: p.title),
    ("Phone Number", lambda p: p.phone_numbers),
    ("Address", lambda p: p.storefront_address),
    ("Website", lambda p: p.website_uri),
    ("Categories", lambda p: p.categories),
    ("Description", lambda p: p.description),
    ("Business Hours", lambda p: p.regular_hours),
    ("Service Area", lambda p: p.service_area),
    ("Labels", lambda p: p.labels),
    ("Google Ads", lambda p: p.ad_words_location_extensions),
    ("Language", lambda p: p.language_code),
    ("Metadata", lambda p: p.metadata),
    ("Profile", lambda p: p.profile),
    ("Attributes", lambda p: p.attributes),
    ("Special Hours", lambda p: p.more_hours),
)

TOTAL_FIELDS = len(PROFILE_CHECKLIST)


@dataclass(frozen=True)
class ProfileCompletion:
    score: float
    details: ProfileCompletionDetails
    from_profile: bool


def is_present(value: Any) -> bool:
    """Truthy, and not an empty list or empty mapping."""
    if not value:
        return False
    if isinstance(value, (list, tuple)) and len(value) == 0:
        return False
    if isinstance(value, Mapping) and len(value.keys()) == 0:
        return False
    return True


def evaluate_checklist(
    profile: ProfileSnapshot,
    checklist: Sequence[Tuple[str, Accessor]] = PROFILE_CHECKLIST,
) -> ProfileCompletionDetails:
    missing = [name for name, accessor in checklist if not is_present(accessor(profile))]
    return ProfileCompletionDetails(
        total_fields=len(checklist),
        completed_fields=len(checklist) - len(missing),
        missing_fields=missing,
    )


def calculate_profile_completion(location_id: str, profile: Optional[ProfileSnapshot]) -> ProfileCompletion:
    fallback = fallback_score(f"{location_id}profile", 65, 98)
    default = ProfileCompletion(
        score=fallback,
        details=ProfileCompletionDetails(
            total_fields=TOTAL_FIELDS,
            completed_fields=round_half_up(fallback / 100 * TOTAL_FIELDS),
        ),
        from_profile=False,
    )
    if profile is None or not profile.has_identity:
        return default

    details = evaluate_checklist(profile)
    completion = round_half_up(details.completed_fields / details.total_fields * 100)
    # A wholly empty checklist keeps the seeded score but reports the real details.
    if completion > 0:
        return ProfileCompletion(score=completion, details=details, from_profile=True)
    return ProfileCompletion(score=fallback, details=details, from_profile=False)
