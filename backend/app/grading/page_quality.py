"""CGC page-quality grade caps."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType

UNKNOWN_PAGE_QUALITY = "Unknown"

PAGE_QUALITY_CAPS = MappingProxyType(
    {
        "White Pages": 10.0,
        "Off-White to White": 9.9,
        "Light Tan to Off-White": 8.5,
        "Tan to Off-White": 7.5,
        "Slightly Brittle": 6.5,
        "Brittle": 3.5,
        UNKNOWN_PAGE_QUALITY: 10.0,
    }
)


@dataclass(frozen=True)
class CapValidation:
    is_valid: bool
    cap: float
    difference: float
    message: str


def cap_for(page_quality: str | None) -> float:
    """Maximum grade allowed for a page-quality designation.

    Keys match verbatim; anything else resolves to the ``Unknown`` cap.
    """
    if page_quality is None:
        return PAGE_QUALITY_CAPS[UNKNOWN_PAGE_QUALITY]
    return PAGE_QUALITY_CAPS.get(page_quality, PAGE_QUALITY_CAPS[UNKNOWN_PAGE_QUALITY])


def apply_grade_cap(grade: float, page_quality: str | None) -> float:
    return min(grade, cap_for(page_quality))


def validate_grade_for_page_quality(grade: float, page_quality: str | None) -> CapValidation:
    cap = cap_for(page_quality)
    is_valid = grade <= cap
    difference = 0.0 if is_valid else round(grade - cap, 1)
    if is_valid:
        message = f'Grade {grade} is valid for "{page_quality}" pages (cap: {cap})'
    else:
        message = f'Grade {grade} exceeds the cap for "{page_quality}" pages (cap: {cap}). Reduced by {difference} points.'
    return CapValidation(is_valid=is_valid, cap=cap, difference=difference, message=message)


def all_page_quality_caps() -> dict[str, float]:
    return dict(PAGE_QUALITY_CAPS)
