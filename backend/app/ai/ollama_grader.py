"""Local Ollama vision-model grading client."""

from __future__ import annotations

import logging
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


def _strip_latest(model: str) -> str:
    return model[: -len(":latest")] if model.endswith(":latest") else model


def model_matches(requested: str, available: str) -> bool:
    """Ollama tags match with or without ``:latest`` or by base name."""
    normalized_available = _strip_latest(available)
    return (
        available == requested
        or available == f"{requested}:latest"
        or normalized_available == _strip_latest(requested)
        or normalized_available == requested.split(":")[0]
    )


def build_ollama_chat_request(
    model: str,
    system_prompt: str,
    user_prompt: str,
    images: list[NormalizedImage],
) -> dict[str, object]:
    return {
        "model": model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt, "images": [encode_image(image) for image in images]},
        ],
        "stream": False,
        "options": {"temperature": 0.3},
    }


class OllamaComicGrader:
    name = "ollama"
    display_name = "Ollama"

    def __init__(
        self,
        system_prompt: str,
        model: str = "llama3.2-vision",
        base_url: str = "http://localhost:11434",
        timeout_seconds: float = 600.0,
        retry_backoffs_seconds: tuple[float, ...] = (),
        http_client: httpx.Client | None = None,
    ) -> None:
        self._system_prompt = system_prompt
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._retry_backoffs_seconds = retry_backoffs_seconds
        self._http_client = http_client

    def is_configured(self) -> bool:
        return bool(self._base_url)

    def _client(self) -> httpx.Client:
        return self._http_client or httpx.Client(timeout=self._timeout_seconds)

    def _close(self, client: httpx.Client) -> None:
        if client is not self._http_client:
            client.close()

    def list_available_models(self) -> list[str]:
        client = self._client()
        try:
            response = client.get(f"{self._base_url}/api/tags")
            response.raise_for_status()
            models = response.json().get("models") or []
        except httpx.HTTPError as exc:
            logger.warning("ollama model listing failed", extra={"stage": "list_models", "provider": self.name, "error": str(exc)})
            response = getattr(exc, "response", None)
            raise ProviderRequestError(
                status_code=getattr(response, "status_code", None),
                body=str(exc),
                message=(
                    f"Ollama server is not reachable at {self._base_url}: {exc}. "
                    "Make sure Ollama is running (ollama serve)."
                ),
            ) from exc
        finally:
            self._close(client)
        return [str(item.get("name", "")) for item in models if isinstance(item, dict)]

    def _chat(self, request_payload: dict[str, object]) -> dict[str, Any]:
        client = self._client()
        try:
            response = client.post(f"{self._base_url}/api/chat", json=request_payload)
            response.raise_for_status()
            return response.json()
        finally:
            self._close(client)

    def grade_comic(self, comic_name: str, issue_number: str, images: list[NormalizedImage]) -> ProviderResult:
        if not images:
            return failure_result(self.display_name, "No images provided for grading", model=self._model)

        started = time.perf_counter()
        try:
            available = self.list_available_models()
            if not any(model_matches(self._model, name) for name in available):
                raise ProviderRequestError(
                    status_code=None,
                    body="",
                    message=(
                        f'Model "{self._model}" is not available in Ollama. '
                        f"Available models: {', '.join(available) or 'none'}. "
                        f"Please pull it first using: ollama pull {self._model}"
                    ),
                )

            request_payload = build_ollama_chat_request(
                model=self._model,
                system_prompt=self._system_prompt,
                user_prompt=build_user_prompt(comic_name, issue_number),
                images=images,
            )
            payload = call_with_retry(
                lambda: self._chat(request_payload),
                provider=self.display_name,
                backoffs=self._retry_backoffs_seconds,
            )
            text = str((payload.get("message") or {}).get("content") or "")
            if not text.strip():
                raise ProviderRequestError(status_code=None, body=str(payload)[:2000], message="Empty response from Ollama model")
        except Exception as exc:
            logger.exception(
                "grade ollama failed",
                extra={"stage": "call_provider", "provider": self.name, "model": self._model, "base_url": self._base_url},
            )
            return failure_result(self.display_name, exc, model=self._model)

        logger.info(
            "grade ollama timing",
            extra={
                "stage": "call_provider",
                "provider": self.name,
                "model": self._model,
                "num_images": len(images),
                "response_chars": len(text),
                "provider_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return success_result(self.display_name, text, model=self._model)
