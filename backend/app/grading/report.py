"""Final grading report assembly."""

from __future__ import annotations

import logging

from app.ai.base import ProviderResult
from app.grading.parser import parse_ai_response
from app.grading.restoration import RestorationAnalysis
from app.grading.validator import CapStrategy, ValidationResult, get_grade_label, validate_grading_response
from app.schemas import (
    FinalReport,
    GradingReport,
    ReportAnalysis,
    ReportMetadata,
    ReportSuggestions,
    RestorationAnalysisRead,
)

logger = logging.getLogger(__name__)

DEFAULT_DEFECTS = "Not specified"
DEFAULT_PAGE_QUALITY = "Unknown"
DEFAULT_RESTORATION = "None detected"
DEFAULT_REPAIR = "Standard archival storage recommended"
DEFAULT_PREVENTION = "Store in acid-free materials in controlled environment"
NO_GRADE_LABEL = "N/A"


def _restoration_read(analysis: RestorationAnalysis | None) -> RestorationAnalysisRead | None:
    if analysis is None:
        return None
    return RestorationAnalysisRead(
        type=analysis.type.value,
        quality=analysis.quality,
        quantity=analysis.quantity,
        description=analysis.description,
        impact=analysis.impact,
        estimated_grade_reduction=analysis.estimated_grade_reduction,
    )


def format_final_report(validation: ValidationResult, *, provider: str, timestamp: str) -> FinalReport:
    parsed = validation.parsed
    correction = validation.grade_correction

    if correction is not None:
        grade: float | None = correction.final_grade
        label = correction.label
    else:
        grade = parsed.grade
        label = get_grade_label(parsed.grade) if parsed.grade is not None else NO_GRADE_LABEL

    return FinalReport(
        grade=grade,
        grade_label=label,
        analysis=ReportAnalysis(
            defects=parsed.defects or DEFAULT_DEFECTS,
            page_quality=parsed.page_quality or DEFAULT_PAGE_QUALITY,
            restoration=parsed.restoration or DEFAULT_RESTORATION,
        ),
        suggestions=ReportSuggestions(
            repair=parsed.repair or DEFAULT_REPAIR,
            prevention=parsed.prevention or DEFAULT_PREVENTION,
        ),
        metadata=ReportMetadata(
            grade_was_capped=correction is not None,
            original_grade=correction.original_grade if correction else None,
            page_quality_cap=correction.cap if correction else None,
            warnings=list(validation.warnings),
            errors=list(validation.errors),
            restoration_analysis=_restoration_read(validation.restoration_analysis),
        ),
        provider=provider,
        timestamp=timestamp,
        raw_response=parsed.raw_response,
    )


def format_grading_report(result: ProviderResult, strategy: CapStrategy = CapStrategy.CLAMP) -> GradingReport:
    """Run parse, validate and assemble on a provider result; upstream failures pass through."""
    if not result.success:
        return GradingReport(
            success=False,
            provider=result.provider,
            timestamp=result.timestamp,
            model=result.model,
            error=result.error,
        )

    if result.response is None:
        raise ValueError("Successful provider result carries no response text")

    parsed = parse_ai_response(result.response)
    validation = validate_grading_response(parsed, strategy)
    report = format_final_report(validation, provider=result.provider, timestamp=result.timestamp)
    logger.info(
        "grading report assembled",
        extra={
            "stage": "format_report",
            "provider": result.provider,
            "grade": report.grade,
            "grade_was_capped": report.metadata.grade_was_capped,
            "warnings": len(report.metadata.warnings),
            "errors": len(report.metadata.errors),
        },
    )
    return GradingReport(
        success=True,
        provider=result.provider,
        timestamp=result.timestamp,
        model=result.model,
        report=report,
    )


def format_multiple_reports(results: list[ProviderResult], strategy: CapStrategy = CapStrategy.CLAMP) -> list[GradingReport]:
    return [format_grading_report(result, strategy) for result in results]
