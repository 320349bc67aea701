"""Grading provider factory/dispatcher."""

from __future__ import annotations

import os

from app.ai.anthropic_grader import AnthropicComicGrader
from app.ai.base import GradingProvider, ProviderResult, success_result
from app.ai.gemini_grader import GeminiComicGrader
from app.ai.ollama_grader import OllamaComicGrader
from app.ai.openai_grader import OpenAIComicGrader
from app.pipeline.images import NormalizedImage
from app.settings import Settings, settings

AVAILABLE_PROVIDERS = ("openai", "anthropic", "gemini", "ollama")
PROVIDER_ALIASES = {"claude": "anthropic"}
DISPLAY_NAMES = {"openai": "OpenAI", "anthropic": "Claude", "gemini": "Gemini", "ollama": "Ollama"}

MOCK_RESPONSE = """**GRADE:** 9.4 Near Mint (NM)
**Defects:** Light spine stress near the top staple, tiny corner blunting at bottom right
**Page Quality:** Off-White to White
**Restoration:** None
**Repair/Improvement:** Pressing by a professional could remove the spine stress
**Prevention:** Store upright in a Mylar sleeve with an acid-free backing board"""


class UnknownProviderError(ValueError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown AI provider: {name}")
        self.name = name


class MockComicGrader:
    """Canned provider used for local development and tests."""

    def __init__(self, name: str, response: str = MOCK_RESPONSE) -> None:
        self.name = name
        self.display_name = DISPLAY_NAMES.get(name, name)
        self._response = response

    def is_configured(self) -> bool:
        return True

    def grade_comic(self, comic_name: str, issue_number: str, images: list[NormalizedImage]) -> ProviderResult:
        _ = (comic_name, issue_number, images)
        return success_result(self.display_name, self._response, model="mock")


def resolve_provider_name(name: str) -> str:
    provider = name.strip().lower()
    provider = PROVIDER_ALIASES.get(provider, provider)
    if provider not in AVAILABLE_PROVIDERS:
        raise UnknownProviderError(name)
    return provider


def _mock_enabled() -> bool:
    return os.getenv("COMICGRADER_AI_MOCK", "").strip() == "1"


def get_grading_provider(name: str, system_prompt: str, config: Settings = settings) -> GradingProvider:
    provider = resolve_provider_name(name)
    if _mock_enabled():
        return MockComicGrader(provider)

    backoffs = config.retry_backoff_seconds
    if provider == "openai":
        return OpenAIComicGrader(
            system_prompt,
            model=config.openai_model,
            max_tokens=config.max_output_tokens,
            timeout_seconds=config.request_timeout_seconds,
            retry_backoffs_seconds=backoffs,
        )
    if provider == "anthropic":
        return AnthropicComicGrader(
            system_prompt,
            model=config.anthropic_model,
            max_tokens=config.max_output_tokens,
            base_url=config.anthropic_base_url,
            timeout_seconds=config.request_timeout_seconds,
            retry_backoffs_seconds=backoffs,
        )
    if provider == "gemini":
        return GeminiComicGrader(
            system_prompt,
            model=config.gemini_model,
            max_tokens=config.max_output_tokens,
            retry_backoffs_seconds=backoffs,
        )
    return OllamaComicGrader(
        system_prompt,
        model=config.ollama_model,
        base_url=config.ollama_url,
        timeout_seconds=config.ollama_timeout_seconds,
        retry_backoffs_seconds=backoffs,
    )


def provider_status(system_prompt: str = "", config: Settings = settings) -> dict[str, bool]:
    return {name: get_grading_provider(name, system_prompt, config).is_configured() for name in AVAILABLE_PROVIDERS}
