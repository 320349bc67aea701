"""Restoration and conservation classification from free text.

Classification is a keyword scan over the lowercased description. Each
category is an ordered list of ``(keywords, result)`` rules; the first rule
with any keyword contained in the text wins.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class RestorationType(str, Enum):
    NONE = "None"
    CONSERVATION = "Conservation"
    RESTORATION = "Restoration"


UNKNOWN = "Unknown"

QUALITY_LEVELS = {
    "A": "Professional/Highest Quality",
    "B": "Good Quality",
    "C": "Fair/Noticeable Quality",
}

QUANTITY_LEVELS = {
    1: "Minimal",
    2: "Small",
    3: "Moderate",
    4: "Extensive",
    5: "Very Extensive",
}

CONSERVATION_TYPES = (
    "Tear Seals",
    "De-acidification",
    "Paper Reinforcement",
    "Wheat Glue Application",
    "Rice Paper Backing",
)

RESTORATION_TYPES = (
    "Color Touch",
    "Piece Fill",
    "Regluing",
    "Spine Repair",
    "Edge Reinforcement",
    "Staple Replacement",
)

ABSENCE_KEYWORDS = (
    "none",
    "no restoration",
    "no conservation",
    "no evidence of restoration",
    "no signs of restoration",
    "not restored",
    "unrestored",
)

CONSERVATION_KEYWORDS = tuple(term.lower() for term in CONSERVATION_TYPES) + (
    "conservation",
    "rice paper",
    "wheat glue",
)

QUALITY_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("quality a", "professional", "highest"), "A"),
    (("quality b", "good"), "B"),
    (("quality c", "fair", "noticeable"), "C"),
)

# "small amount" must be tested before the bare "small " keyword, and
# "extensive" shadows "very extensive"; the order is part of the contract.
QUANTITY_RULES: tuple[tuple[tuple[str, ...], int], ...] = (
    (("minimal", "small amount", "quantity 1"), 1),
    (("quantity 2", "small "), 2),
    (("quantity 3", "moderate"), 3),
    (("quantity 4", "extensive"), 4),
    (("quantity 5", "very extensive"), 5),
)

GRADE_REDUCTION_MATRIX: dict[str, dict[int, float]] = {
    "A": {1: 0.5, 2: 1.0, 3: 1.5, 4: 2.0, 5: 2.5},
    "B": {1: 1.0, 2: 1.5, 3: 2.0, 4: 2.5, 5: 3.0},
    "C": {1: 1.5, 2: 2.0, 3: 2.5, 4: 3.0, 5: 3.0},
}

NO_IMPACT = "No impact"
CONSERVATION_IMPACT = "Minimal to no grade impact (professional archival work)"
UNKNOWN_IMPACT = "Unknown impact"

# (limited work, moderate extent, extensive) per quality level
_RESTORATION_IMPACTS = {
    "A": (
        "Minimal grade impact (high-quality, limited work)",
        "Small grade impact (high-quality work, moderate extent)",
        "Moderate grade impact (high-quality work, extensive)",
    ),
    "B": (
        "Moderate grade impact (good quality, limited work)",
        "Significant grade impact (good quality, moderate extent)",
        "Major grade impact (good quality, extensive)",
    ),
    "C": (
        "Significant grade impact (fair quality, limited work)",
        "Major grade impact (fair quality, moderate extent)",
        "Severe grade impact (fair quality, extensive)",
    ),
}


@dataclass(frozen=True)
class RestorationAnalysis:
    type: RestorationType
    quality: str | None
    quantity: int | str | None
    description: str
    impact: str
    estimated_grade_reduction: float = field(default=0.0)


def _first_match(text: str, rules: tuple[tuple[tuple[str, ...], Any], ...]) -> Any | None:
    for keywords, result in rules:
        if any(keyword in text for keyword in keywords):
            return result
    return None


def parse_restoration(restoration_text: str | None) -> RestorationAnalysis:
    description = restoration_text or ""
    text = description.lower()

    if not text.strip() or any(keyword in text for keyword in ABSENCE_KEYWORDS):
        return RestorationAnalysis(
            type=RestorationType.NONE,
            quality=None,
            quantity=None,
            description=description,
            impact=NO_IMPACT,
        )

    restoration_type = RestorationType.RESTORATION
    quality: str | None = None
    if any(keyword in text for keyword in CONSERVATION_KEYWORDS):
        restoration_type = RestorationType.CONSERVATION
        quality = "A"

    quality = _first_match(text, QUALITY_RULES) or quality or UNKNOWN
    quantity = _first_match(text, QUANTITY_RULES) or UNKNOWN

    return RestorationAnalysis(
        type=restoration_type,
        quality=quality,
        quantity=quantity,
        description=description,
        impact=calculate_restoration_impact(restoration_type, quality, quantity),
        estimated_grade_reduction=estimate_grade_reduction(restoration_type, quality, quantity),
    )


def calculate_restoration_impact(
    restoration_type: RestorationType | str,
    quality: str | None,
    quantity: int | str | None,
) -> str:
    restoration_type = RestorationType(restoration_type)
    if restoration_type is RestorationType.NONE:
        return NO_IMPACT
    if restoration_type is RestorationType.CONSERVATION:
        return CONSERVATION_IMPACT

    impacts = _RESTORATION_IMPACTS.get(quality or "")
    if impacts is None:
        return UNKNOWN_IMPACT

    # An unknown quantity counts as limited work.
    amount = quantity if isinstance(quantity, int) else 0
    if amount <= 2:
        return impacts[0]
    if amount <= 3:
        return impacts[1]
    return impacts[2]


def estimate_grade_reduction(
    restoration_type: RestorationType | str,
    quality: str | None,
    quantity: int | str | None,
) -> float:
    """Estimated grade penalty in points (0 to 3) for restoration work."""
    restoration_type = RestorationType(restoration_type)
    if restoration_type in (RestorationType.NONE, RestorationType.CONSERVATION):
        return 0.0
    if not isinstance(quantity, int):
        return 0.0
    return GRADE_REDUCTION_MATRIX.get(quality or "", {}).get(quantity, 0.0)


def restoration_definitions() -> dict[str, Any]:
    return {
        "types": {
            "conservation": list(CONSERVATION_TYPES),
            "restoration": list(RESTORATION_TYPES),
        },
        "qualities": dict(QUALITY_LEVELS),
        "quantities": dict(QUANTITY_LEVELS),
    }
