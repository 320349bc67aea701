"""Request and response schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Report models serialize with camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class RestorationAnalysisRead(CamelModel):
    type: str
    quality: str | None
    quantity: int | str | None
    description: str
    impact: str
    estimated_grade_reduction: float = 0.0


class ReportAnalysis(CamelModel):
    defects: str
    page_quality: str
    restoration: str


class ReportSuggestions(CamelModel):
    repair: str
    prevention: str


class ReportMetadata(CamelModel):
    grade_was_capped: bool
    original_grade: float | None = None
    page_quality_cap: float | None = None
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    restoration_analysis: RestorationAnalysisRead | None = None


class FinalReport(CamelModel):
    grade: float | None
    grade_label: str
    analysis: ReportAnalysis
    suggestions: ReportSuggestions
    metadata: ReportMetadata
    provider: str
    timestamp: str
    raw_response: str


class GradingReport(CamelModel):
    """Outcome of one provider call: a report, or the upstream error."""

    success: bool
    provider: str
    timestamp: str
    model: str | None = None
    error: str | None = None
    report: FinalReport | None = None


class GradeResponse(BaseModel):
    success: bool = True
    data: GradingReport


class BatchGradeResponse(BaseModel):
    success: bool = True
    data: list[GradingReport]


class HealthResponse(BaseModel):
    status: str
    providers: dict[str, bool]
    timestamp: str
