"""Shared types for AI grading provider clients."""

from __future__ import annotations

import base64
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Protocol, TypeVar

import httpx

from app.pipeline.images import NormalizedImage

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RETRYABLE_STATUS = {429, 503, 504}


@dataclass
class ProviderResult:
    success: bool
    provider: str
    timestamp: str
    response: str | None = None
    error: str | None = None
    model: str | None = None


@dataclass
class ProviderRequestError(Exception):
    status_code: int | None
    body: str
    message: str

    def __str__(self) -> str:
        return self.message


class GradingProvider(Protocol):
    name: str
    display_name: str

    def is_configured(self) -> bool:
        """Whether credentials/endpoint for this provider are available."""

    def grade_comic(self, comic_name: str, issue_number: str, images: list[NormalizedImage]) -> ProviderResult:
        """Send the comic images with the grading prompt and return the raw response text."""


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def build_user_prompt(comic_name: str, issue_number: str) -> str:
    return (
        "Please grade the following comic book:\n\n"
        f"Title: {comic_name}\n"
        f"Issue #: {issue_number}\n\n"
        "Analyze all provided images and provide your grading assessment."
    )


def build_grading_prompt(system_prompt: str, comic_name: str, issue_number: str) -> str:
    """System prompt and user request combined, for providers without a system role."""
    return f"{system_prompt}\n\n---\n\n{build_user_prompt(comic_name, issue_number)}"


def encode_image(image: NormalizedImage) -> str:
    return base64.b64encode(image.image_bytes).decode("utf-8")


def image_data_url(image: NormalizedImage) -> str:
    return f"data:{image.mime_type};base64,{encode_image(image)}"


def to_request_error(exc: Exception, provider: str) -> ProviderRequestError:
    if isinstance(exc, ProviderRequestError):
        return exc

    status_code = getattr(exc, "status_code", None)
    if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
        status_code = 504
    response_obj = getattr(exc, "response", None)
    if status_code is None and response_obj is not None:
        status_code = getattr(response_obj, "status_code", None)
    body_text = ""
    if response_obj is not None:
        body_text = getattr(response_obj, "text", "") or ""
    if not body_text:
        body_text = str(exc)
    return ProviderRequestError(status_code=status_code, body=body_text, message=f"{provider} request failed: {exc}")


def call_with_retry(
    call: Callable[[], T],
    *,
    provider: str,
    backoffs: tuple[float, ...],
    request_id: str | None = None,
) -> T:
    """Run ``call``, retrying timeouts and 429/503/504 responses with the given backoffs."""
    attempts = len(backoffs) + 1
    for attempt in range(attempts):
        try:
            return call()
        except Exception as exc:
            error = to_request_error(exc, provider)
            retryable = isinstance(exc, (httpx.TimeoutException, TimeoutError)) or error.status_code in _RETRYABLE_STATUS
            if retryable and attempt < attempts - 1:
                logger.warning(
                    "provider retry",
                    extra={
                        "request_id": request_id,
                        "stage": "provider_retry",
                        "provider": provider,
                        "attempt": attempt + 1,
                        "status_code": error.status_code,
                    },
                )
                time.sleep(backoffs[attempt])
                continue
            raise error from exc
    raise ProviderRequestError(status_code=None, body="Unknown provider error", message=f"{provider} request failed")


def failure_result(provider: str, error: Exception | str, model: str | None = None) -> ProviderResult:
    return ProviderResult(success=False, provider=provider, error=str(error), timestamp=utc_timestamp(), model=model)


def success_result(provider: str, response: str, model: str | None = None) -> ProviderResult:
    return ProviderResult(success=True, provider=provider, response=response, timestamp=utc_timestamp(), model=model)
