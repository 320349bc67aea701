"""Anthropic Claude grading client over the Messages HTTP API."""

from __future__ import annotations

import logging
import os
import time
from typing import Any

import httpx

from app.ai.base import (
    ProviderRequestError,
    ProviderResult,
    build_user_prompt,
    call_with_retry,
    encode_image,
    failure_result,
    success_result,
)
from app.pipeline.images import NormalizedImage

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


def build_anthropic_grading_request(
    model: str,
    system_prompt: str,
    user_prompt: str,
    images: list[NormalizedImage],
    max_tokens: int,
) -> dict[str, object]:
    content: list[dict[str, Any]] = [{"type": "text", "text": user_prompt}]
    for image in images:
        content.append(
            {
                "type": "image",
                "source": {"type": "base64", "media_type": image.mime_type, "data": encode_image(image)},
            }
        )

    return {
        "model": model,
        "max_tokens": max_tokens,
        "system": system_prompt,
        "messages": [{"role": "user", "content": content}],
    }


def extract_anthropic_text(payload: dict[str, Any]) -> str:
    blocks = payload.get("content") or []
    texts = [str(block.get("text", "")) for block in blocks if isinstance(block, dict) and block.get("type") == "text"]
    return "\n".join(texts).strip()


class AnthropicComicGrader:
    name = "anthropic"
    display_name = "Claude"

    def __init__(
        self,
        system_prompt: str,
        model: str = "claude-3-5-sonnet-20241022",
        max_tokens: int = 2000,
        base_url: str = "https://api.anthropic.com",
        timeout_seconds: float = 60.0,
        retry_backoffs_seconds: tuple[float, ...] = (1.0, 2.0),
        http_client: httpx.Client | None = None,
    ) -> None:
        self._system_prompt = system_prompt
        self._model = model
        self._max_tokens = max_tokens
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._retry_backoffs_seconds = retry_backoffs_seconds
        self._http_client = http_client

    def is_configured(self) -> bool:
        return bool(os.getenv("ANTHROPIC_API_KEY", "").strip())

    def _post_messages(self, request_payload: dict[str, object]) -> dict[str, Any]:
        api_key = os.getenv("ANTHROPIC_API_KEY", "").strip()
        if not api_key:
            raise RuntimeError("ANTHROPIC_API_KEY is not set")

        headers = {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        client = self._http_client or httpx.Client(timeout=self._timeout_seconds)
        try:
            response = client.post(f"{self._base_url}/v1/messages", json=request_payload, headers=headers)
            response.raise_for_status()
            return response.json()
        finally:
            if self._http_client is None:
                client.close()

    def grade_comic(self, comic_name: str, issue_number: str, images: list[NormalizedImage]) -> ProviderResult:
        if not images:
            return failure_result(self.display_name, "No images provided for grading", model=self._model)

        request_payload = build_anthropic_grading_request(
            model=self._model,
            system_prompt=self._system_prompt,
            user_prompt=build_user_prompt(comic_name, issue_number),
            images=images,
            max_tokens=self._max_tokens,
        )
        started = time.perf_counter()
        try:
            payload = call_with_retry(
                lambda: self._post_messages(request_payload),
                provider=self.display_name,
                backoffs=self._retry_backoffs_seconds,
            )
            text = extract_anthropic_text(payload)
            if not text:
                raise ProviderRequestError(status_code=None, body=str(payload)[:2000], message="Empty response from Claude")
        except Exception as exc:
            logger.exception(
                "grade anthropic failed",
                extra={"stage": "call_provider", "provider": self.name, "model": self._model},
            )
            return failure_result(self.display_name, exc, model=self._model)

        logger.info(
            "grade anthropic timing",
            extra={
                "stage": "call_provider",
                "provider": self.name,
                "model": self._model,
                "num_images": len(images),
                "provider_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return success_result(self.display_name, text, model=self._model)
