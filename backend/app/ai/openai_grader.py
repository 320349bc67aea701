"""OpenAI vision grading client."""

from __future__ import annotations

import logging
import os
import time
from typing import Any

from app.ai.base import (
    ProviderRequestError,
    ProviderResult,
    build_grading_prompt,
    call_with_retry,
    failure_result,
    image_data_url,
    success_result,
)
from app.pipeline.images import NormalizedImage

logger = logging.getLogger(__name__)


def build_openai_grading_request(
    model: str,
    prompt: str,
    images: list[NormalizedImage],
    max_tokens: int,
) -> dict[str, object]:
    content: list[dict[str, Any]] = [{"type": "text", "text": prompt}]
    for image in images:
        content.append(
            {
                "type": "image_url",
                "image_url": {"url": image_data_url(image), "detail": "high"},
            }
        )

    return {
        "model": model,
        "max_tokens": max_tokens,
        "messages": [{"role": "user", "content": content}],
    }


class OpenAIComicGrader:
    name = "openai"
    display_name = "OpenAI"

    def __init__(
        self,
        system_prompt: str,
        model: str = "gpt-4o",
        max_tokens: int = 2000,
        timeout_seconds: float = 60.0,
        retry_backoffs_seconds: tuple[float, ...] = (1.0, 2.0),
        client: Any | None = None,
    ) -> None:
        self._system_prompt = system_prompt
        self._model = model
        self._max_tokens = max_tokens
        self._timeout_seconds = timeout_seconds
        self._retry_backoffs_seconds = retry_backoffs_seconds
        self._client = client

    def is_configured(self) -> bool:
        return bool(os.getenv("OPENAI_API_KEY", "").strip())

    def _get_client(self) -> Any:
        if self._client is None:
            api_key = os.getenv("OPENAI_API_KEY", "").strip()
            if not api_key:
                raise RuntimeError("OPENAI_API_KEY is not set")

            from openai import OpenAI

            self._client = OpenAI(api_key=api_key, timeout=self._timeout_seconds)
        return self._client

    def grade_comic(self, comic_name: str, issue_number: str, images: list[NormalizedImage]) -> ProviderResult:
        if not images:
            return failure_result(self.display_name, "No images provided for grading", model=self._model)

        request_payload = build_openai_grading_request(
            model=self._model,
            prompt=build_grading_prompt(self._system_prompt, comic_name, issue_number),
            images=images,
            max_tokens=self._max_tokens,
        )
        started = time.perf_counter()
        try:
            client = self._get_client()
            response = call_with_retry(
                lambda: client.chat.completions.create(**request_payload),
                provider=self.display_name,
                backoffs=self._retry_backoffs_seconds,
            )
            text = response.choices[0].message.content or ""
            if not text.strip():
                raise ProviderRequestError(status_code=None, body="", message="Empty response from OpenAI")
        except Exception as exc:
            logger.exception(
                "grade openai failed",
                extra={"stage": "call_provider", "provider": self.name, "model": self._model},
            )
            return failure_result(self.display_name, exc, model=self._model)

        logger.info(
            "grade openai timing",
            extra={
                "stage": "call_provider",
                "provider": self.name,
                "model": self._model,
                "num_images": len(images),
                "provider_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return success_result(self.display_name, text, model=self._model)
