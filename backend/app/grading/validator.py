"""CGC grade labels, page-quality cap enforcement and response validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from app.grading.page_quality import CapValidation, apply_grade_cap, validate_grade_for_page_quality
from app.grading.parser import ParsedResponse
from app.grading.restoration import RestorationAnalysis, parse_restoration

GRADE_LABELS: dict[float, str] = {
    10.0: "Gem Mint (GM)",
    9.8: "Near Mint/Mint (NM/M)",
    9.6: "Near Mint Plus (NM+)",
    9.4: "Near Mint (NM)",
    9.2: "Near Mint Minus (NM-)",
    9.0: "Very Fine/Near Mint (VF/NM)",
    8.5: "Very Fine Plus (VF+)",
    8.0: "Very Fine (VF)",
    7.5: "Very Fine Minus (VF-)",
    7.0: "Fine/Very Fine (FN/VF)",
    6.5: "Fine Plus (FN+)",
    6.0: "Fine (FN)",
    5.5: "Fine Minus (FN-)",
    5.0: "Very Good/Fine (VG/FN)",
    4.5: "Very Good Plus (VG+)",
    4.0: "Very Good (VG)",
    3.5: "Very Good Minus (VG-)",
    3.0: "Good/Very Good (GD/VG)",
    2.5: "Good Plus (GD+)",
    2.0: "Good (GD)",
    1.5: "Fair/Good (FR/GD)",
    1.0: "Fair (FR)",
    0.5: "Poor (PR)",
}

NO_GRADE_ERROR = "No numerical grade found in response"
MISSING_PAGE_QUALITY_WARNING = "Page quality not clearly specified"
MISSING_DEFECTS_WARNING = "Defects section is empty or unclear"
MISSING_SUGGESTIONS_WARNING = "Restoration or prevention suggestions are missing"


class CapStrategy(str, Enum):
    """How the reported grade is derived once a page-quality cap is known.

    ``CLAMP`` reports ``min(grade, cap)``. ``CEILING`` reports the cap itself,
    which is what older reports did whenever validation ran.
    """

    CLAMP = "clamp"
    CEILING = "ceiling"


@dataclass(frozen=True)
class GradeCorrection:
    final_grade: float
    label: str
    was_capped: bool
    cap: float
    original_grade: float
    validation: CapValidation


@dataclass
class ValidationResult:
    parsed: ParsedResponse
    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    grade_correction: GradeCorrection | None = None
    restoration_analysis: RestorationAnalysis | None = None


def round_grade(grade: float) -> float:
    return float(Decimal(str(grade)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def get_grade_label(grade: float) -> str:
    closest = round_grade(grade)
    return GRADE_LABELS.get(closest, f"Grade {closest}")


def validate_and_cap_grade(
    suggested_grade: float,
    page_quality: str | None,
    strategy: CapStrategy = CapStrategy.CLAMP,
) -> GradeCorrection:
    validation = validate_grade_for_page_quality(suggested_grade, page_quality)
    if CapStrategy(strategy) is CapStrategy.CEILING:
        final_grade = validation.cap
    else:
        final_grade = apply_grade_cap(suggested_grade, page_quality)

    return GradeCorrection(
        final_grade=final_grade,
        label=get_grade_label(final_grade),
        was_capped=not validation.is_valid,
        cap=validation.cap,
        original_grade=suggested_grade,
        validation=validation,
    )


def validate_grading_response(
    parsed: ParsedResponse,
    strategy: CapStrategy = CapStrategy.CLAMP,
) -> ValidationResult:
    """Check a parsed response for missing sections and enforce the page-quality cap.

    Problems never raise: they are collected as ``errors`` (no usable grade)
    or ``warnings`` (missing sections, cap corrections).
    """
    result = ValidationResult(parsed=parsed)

    if parsed.grade is None:
        result.is_valid = False
        result.errors.append(NO_GRADE_ERROR)

    if parsed.page_quality is None:
        result.warnings.append(MISSING_PAGE_QUALITY_WARNING)

    if parsed.grade is not None and parsed.page_quality is not None:
        correction = validate_and_cap_grade(parsed.grade, parsed.page_quality, strategy)
        if correction.was_capped:
            result.warnings.append(
                f'Grade was capped from {parsed.grade} to {correction.final_grade} based on page quality "{parsed.page_quality}"'
            )
            result.grade_correction = correction

    if parsed.restoration is not None:
        result.restoration_analysis = parse_restoration(parsed.restoration)

    if parsed.defects is None:
        result.warnings.append(MISSING_DEFECTS_WARNING)

    if parsed.repair is None and parsed.prevention is None:
        result.warnings.append(MISSING_SUGGESTIONS_WARNING)

    return result
