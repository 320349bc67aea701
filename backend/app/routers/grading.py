"""Comic grading endpoints."""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse, Response

from app.ai.base import GradingProvider, failure_result, utc_timestamp
from app.ai.prompt import get_system_prompt
from app.ai.registry import AVAILABLE_PROVIDERS, UnknownProviderError, get_grading_provider, provider_status
from app.grading.report import format_grading_report, format_multiple_reports
from app.pipeline.images import NormalizedImage, normalize_comic_image
from app.pipeline.uploads import UploadedImage, validate_image_uploads
from app.reports.export import MEDIA_TYPES, ExportFormat, content_disposition, export_filename, export_report
from app.schemas import BatchGradeResponse, GradeResponse, GradingReport, HealthResponse
from app.settings import settings

router = APIRouter(prefix="/api", tags=["grading"])
logger = logging.getLogger(__name__)


def _err(status_code: int, error: str, request_id: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error, "request_id": request_id})


def _require_fields(comic_name: str | None, issue_number: str | None) -> tuple[str, str]:
    if not comic_name or not comic_name.strip() or not issue_number or not issue_number.strip():
        raise HTTPException(status_code=400, detail="Comic name and issue number are required")
    return comic_name.strip(), issue_number.strip()


def _read_uploads(images: list[UploadFile] | None) -> list[UploadedImage]:
    uploads: list[UploadedImage] = []
    for upload in images or []:
        upload.file.seek(0)
        uploads.append(
            UploadedImage(
                filename=upload.filename or "upload.bin",
                content_type=upload.content_type or "",
                data=upload.file.read(),
            )
        )
    return uploads


def _prepare_images(images: list[UploadFile] | None) -> list[NormalizedImage]:
    uploads = _read_uploads(images)
    problems = validate_image_uploads(uploads, max_files=settings.max_images, max_bytes=settings.max_upload_bytes)
    if problems:
        raise HTTPException(status_code=400, detail={"error": "File validation failed", "details": problems})

    normalized: list[NormalizedImage] = []
    for index, upload in enumerate(uploads, start=1):
        try:
            normalized.append(
                normalize_comic_image(
                    upload.data,
                    max_width=settings.image_max_width,
                    jpeg_quality=settings.image_jpeg_quality,
                )
            )
        except OSError as exc:
            raise HTTPException(
                status_code=400,
                detail={"error": "File validation failed", "details": [f"File {index}: Could not decode image"]},
            ) from exc
    return normalized


def _resolve_provider(name: str, system_prompt: str) -> GradingProvider:
    try:
        return get_grading_provider(name, system_prompt)
    except UnknownProviderError as exc:
        raise HTTPException(
            status_code=400,
            detail={"error": str(exc), "availableProviders": list(AVAILABLE_PROVIDERS)},
        ) from exc


@router.get("/health", response_model=HealthResponse)
def health(system_prompt: str = Depends(get_system_prompt)) -> HealthResponse:
    return HealthResponse(status="ok", providers=provider_status(system_prompt), timestamp=utc_timestamp())


@router.post("/grade", response_model=GradeResponse)
def grade_comic(
    comic_name: str | None = Form(default=None),
    issue_number: str | None = Form(default=None),
    ai_provider: str = Form(default="openai"),
    images: list[UploadFile] | None = File(default=None),
    system_prompt: str = Depends(get_system_prompt),
) -> GradeResponse | JSONResponse:
    request_id = str(uuid.uuid4())
    started = time.perf_counter()
    stage = "validate_request"
    try:
        name, issue = _require_fields(comic_name, issue_number)
        provider = _resolve_provider(ai_provider, system_prompt)
        if not provider.is_configured():
            raise HTTPException(status_code=400, detail=f"{provider.display_name} is not configured")

        stage = "normalize_images"
        normalized = _prepare_images(images)

        stage = "call_provider"
        result = provider.grade_comic(name, issue, normalized)

        stage = "format_report"
        report = format_grading_report(result, settings.cap_strategy)
        logger.info(
            "grade complete",
            extra={
                "request_id": request_id,
                "stage": stage,
                "provider": provider.name,
                "num_images": len(normalized),
                "success": report.success,
                "total_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return GradeResponse(data=report)
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("grade failed", extra={"request_id": request_id, "stage": stage})
        return _err(500, f"Grading failed: {type(exc).__name__}: {str(exc)[:300]}", request_id)


@router.post("/grade/batch", response_model=BatchGradeResponse)
def grade_comic_batch(
    comic_name: str | None = Form(default=None),
    issue_number: str | None = Form(default=None),
    providers: str = Form(default=",".join(AVAILABLE_PROVIDERS)),
    images: list[UploadFile] | None = File(default=None),
    system_prompt: str = Depends(get_system_prompt),
) -> BatchGradeResponse | JSONResponse:
    request_id = str(uuid.uuid4())
    stage = "validate_request"
    try:
        name, issue = _require_fields(comic_name, issue_number)
        names = [item.strip() for item in providers.split(",") if item.strip()]
        if not names:
            raise HTTPException(status_code=400, detail="At least one provider is required")
        clients = [_resolve_provider(item, system_prompt) for item in names]

        stage = "normalize_images"
        normalized = _prepare_images(images)

        stage = "call_provider"
        results = []
        for client in clients:
            if not client.is_configured():
                results.append(failure_result(client.display_name, f"{client.display_name} is not configured"))
                continue
            results.append(client.grade_comic(name, issue, normalized))

        stage = "format_report"
        reports = format_multiple_reports(results, settings.cap_strategy)
        logger.info(
            "batch grade complete",
            extra={
                "request_id": request_id,
                "stage": stage,
                "providers": [client.name for client in clients],
                "succeeded": sum(1 for report in reports if report.success),
            },
        )
        return BatchGradeResponse(data=reports)
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("batch grade failed", extra={"request_id": request_id, "stage": stage})
        return _err(500, f"Batch grading failed: {type(exc).__name__}: {str(exc)[:300]}", request_id)


@router.post("/reports/export")
def export_grading_report(
    report: GradingReport,
    export_format: ExportFormat = Query(default=ExportFormat.JSON, alias="format"),
    comic_name: str | None = Query(default=None),
) -> Response:
    content = export_report(report, export_format)
    filename = export_filename(report, export_format, comic_name)
    return Response(
        content=content,
        media_type=MEDIA_TYPES[export_format],
        headers={"Content-Disposition": content_disposition(filename)},
    )
