"""Google Gemini grading client."""

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
    success_result,
)
from app.pipeline.images import NormalizedImage

logger = logging.getLogger(__name__)


class GeminiComicGrader:
    name = "gemini"
    display_name = "Gemini"

    def __init__(
        self,
        system_prompt: str,
        model: str = "gemini-1.5-flash",
        max_tokens: int = 2000,
        retry_backoffs_seconds: tuple[float, ...] = (1.0, 2.0),
        client: Any | None = None,
    ) -> None:
        self._system_prompt = system_prompt
        self._model = model
        self._max_tokens = max_tokens
        self._retry_backoffs_seconds = retry_backoffs_seconds
        self._client = client

    def is_configured(self) -> bool:
        return bool(os.getenv("GEMINI_API_KEY", "").strip())

    def _get_client(self) -> Any:
        if self._client is None:
            api_key = os.getenv("GEMINI_API_KEY", "").strip()
            if not api_key:
                raise RuntimeError("GEMINI_API_KEY is not set")

            from google import genai

            self._client = genai.Client(api_key=api_key)
        return self._client

    def _generate(self, prompt: str, images: list[NormalizedImage]) -> str:
        from google.genai import types

        client = self._get_client()
        contents = [types.Part.from_text(text=prompt)]
        for image in images:
            contents.append(types.Part.from_bytes(data=image.image_bytes, mime_type=image.mime_type))

        response = client.models.generate_content(
            model=self._model,
            contents=contents,
            config=types.GenerateContentConfig(max_output_tokens=self._max_tokens),
        )
        return response.text or ""

    def grade_comic(self, comic_name: str, issue_number: str, images: list[NormalizedImage]) -> ProviderResult:
        if not images:
            return failure_result(self.display_name, "No images provided for grading", model=self._model)

        prompt = build_grading_prompt(self._system_prompt, comic_name, issue_number)
        started = time.perf_counter()
        try:
            text = call_with_retry(
                lambda: self._generate(prompt, images),
                provider=self.display_name,
                backoffs=self._retry_backoffs_seconds,
            )
            if not text.strip():
                raise ProviderRequestError(status_code=None, body="", message="Empty response from Gemini")
        except Exception as exc:
            logger.exception(
                "grade gemini failed",
                extra={"stage": "call_provider", "provider": self.name, "model": self._model},
            )
            return failure_result(self.display_name, exc, model=self._model)

        logger.info(
            "grade gemini timing",
            extra={
                "stage": "call_provider",
                "provider": self.name,
                "model": self._model,
                "num_images": len(images),
                "provider_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return success_result(self.display_name, text, model=self._model)
