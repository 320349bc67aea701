from __future__ import annotations

import json
from types import SimpleNamespace

import httpx
import pytest

from app.ai import base
from app.ai.anthropic_grader import AnthropicComicGrader, build_anthropic_grading_request, extract_anthropic_text
from app.ai.base import ProviderRequestError, build_grading_prompt, build_user_prompt, call_with_retry
from app.ai.ollama_grader import OllamaComicGrader, build_ollama_chat_request, model_matches
from app.ai.openai_grader import OpenAIComicGrader, build_openai_grading_request
from app.ai.registry import (
    MOCK_RESPONSE,
    MockComicGrader,
    UnknownProviderError,
    get_grading_provider,
    provider_status,
    resolve_provider_name,
)
from app.pipeline.images import NormalizedImage


def _image(payload: bytes = b"\xff\xd8fake-jpeg") -> NormalizedImage:
    return NormalizedImage(
        image_bytes=payload,
        mime_type="image/jpeg",
        width=10,
        height=10,
        original_size_bytes=len(payload),
        final_size_bytes=len(payload),
    )


@pytest.fixture
def no_sleep(monkeypatch) -> list[float]:
    delays: list[float] = []
    monkeypatch.setattr(base.time, "sleep", delays.append)
    return delays


def test_user_prompt_format() -> None:
    prompt = build_user_prompt("Amazing Spider-Man", "300")

    assert prompt == (
        "Please grade the following comic book:\n\n"
        "Title: Amazing Spider-Man\n"
        "Issue #: 300\n\n"
        "Analyze all provided images and provide your grading assessment."
    )
    assert build_grading_prompt("SYSTEM", "X-Men", "1").startswith("SYSTEM\n\n---\n\nPlease grade")


def test_build_openai_grading_request_uses_data_urls() -> None:
    payload = build_openai_grading_request(model="gpt-4o", prompt="Grade it", images=[_image(), _image()], max_tokens=2000)

    assert payload["model"] == "gpt-4o"
    assert payload["max_tokens"] == 2000
    content = payload["messages"][0]["content"]
    assert content[0] == {"type": "text", "text": "Grade it"}
    assert content[1]["type"] == "image_url"
    assert content[1]["image_url"]["url"].startswith("data:image/jpeg;base64,")
    assert content[1]["image_url"]["detail"] == "high"
    assert len(content) == 3


def test_build_anthropic_grading_request_uses_base64_blocks() -> None:
    payload = build_anthropic_grading_request(
        model="claude-3-5-sonnet-20241022",
        system_prompt="SYSTEM",
        user_prompt="USER",
        images=[_image()],
        max_tokens=1000,
    )

    assert payload["system"] == "SYSTEM"
    content = payload["messages"][0]["content"]
    assert content[0] == {"type": "text", "text": "USER"}
    assert content[1]["source"]["type"] == "base64"
    assert content[1]["source"]["media_type"] == "image/jpeg"


def test_extract_anthropic_text_joins_text_blocks() -> None:
    payload = {"content": [{"type": "text", "text": "GRADE: 9.0"}, {"type": "tool_use"}, {"type": "text", "text": "Defects: none"}]}

    assert extract_anthropic_text(payload) == "GRADE: 9.0\nDefects: none"


def test_build_ollama_chat_request() -> None:
    payload = build_ollama_chat_request("llama3.2-vision", "SYSTEM", "USER", [_image()])

    assert payload["stream"] is False
    assert payload["messages"][0] == {"role": "system", "content": "SYSTEM"}
    assert payload["messages"][1]["images"] == [base.encode_image(_image())]


@pytest.mark.parametrize(
    ("requested", "available", "expected"),
    [
        ("llama3.2-vision", "llama3.2-vision:latest", True),
        ("llama3.2-vision:latest", "llama3.2-vision", True),
        ("llava:13b", "llava:latest", True),
        ("llava", "bakllava:latest", False),
    ],
)
def test_ollama_model_matches(requested: str, available: str, expected: bool) -> None:
    assert model_matches(requested, available) is expected


def test_openai_grader_returns_response_text() -> None:
    calls: list[dict] = []

    def create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=MOCK_RESPONSE))])

    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    grader = OpenAIComicGrader("SYSTEM", client=client)

    result = grader.grade_comic("X-Men", "1", [_image()])

    assert result.success is True
    assert result.provider == "OpenAI"
    assert result.response == MOCK_RESPONSE
    assert result.model == "gpt-4o"
    assert result.timestamp.endswith("Z")
    assert calls[0]["messages"][0]["content"][0]["text"].startswith("SYSTEM")


def test_openai_grader_retries_rate_limits(no_sleep: list[float]) -> None:
    attempts = {"count": 0}

    class RateLimited(Exception):
        status_code = 429

    def create(**kwargs):
        attempts["count"] += 1
        if attempts["count"] == 1:
            raise RateLimited("slow down")
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="GRADE: 9.0"))])

    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    grader = OpenAIComicGrader("SYSTEM", client=client, retry_backoffs_seconds=(0.5,))

    result = grader.grade_comic("X-Men", "1", [_image()])

    assert result.success is True
    assert attempts["count"] == 2
    assert no_sleep == [0.5]


def test_openai_grader_empty_reply_is_failure() -> None:
    client = SimpleNamespace(
        chat=SimpleNamespace(
            completions=SimpleNamespace(
                create=lambda **kwargs: SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=""))])
            )
        )
    )

    result = OpenAIComicGrader("SYSTEM", client=client).grade_comic("X-Men", "1", [_image()])

    assert result.success is False
    assert result.error == "Empty response from OpenAI"


@pytest.mark.parametrize(
    "grader",
    [
        OpenAIComicGrader("SYSTEM", client=object()),
        AnthropicComicGrader("SYSTEM"),
        OllamaComicGrader("SYSTEM"),
    ],
)
def test_graders_reject_empty_image_list(grader) -> None:
    result = grader.grade_comic("X-Men", "1", [])

    assert result.success is False
    assert result.error == "No images provided for grading"


def test_anthropic_grader_posts_messages(monkeypatch) -> None:
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["api_key"] = request.headers["x-api-key"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"content": [{"type": "text", "text": MOCK_RESPONSE}]})

    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    grader = AnthropicComicGrader("SYSTEM", http_client=http_client)

    result = grader.grade_comic("X-Men", "1", [_image()])

    assert result.success is True
    assert result.provider == "Claude"
    assert result.response == MOCK_RESPONSE
    assert seen["url"] == "https://api.anthropic.com/v1/messages"
    assert seen["api_key"] == "test-key"
    assert seen["body"]["system"] == "SYSTEM"


def test_anthropic_grader_retries_overloaded_then_succeeds(monkeypatch, no_sleep: list[float]) -> None:
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
    statuses = iter([503, 200])

    def handler(request: httpx.Request) -> httpx.Response:
        status = next(statuses)
        if status != 200:
            return httpx.Response(status, json={"error": {"type": "overloaded_error"}})
        return httpx.Response(200, json={"content": [{"type": "text", "text": "GRADE: 8.0"}]})

    grader = AnthropicComicGrader(
        "SYSTEM",
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        retry_backoffs_seconds=(1.0, 2.0),
    )

    result = grader.grade_comic("X-Men", "1", [_image()])

    assert result.success is True
    assert result.response == "GRADE: 8.0"
    assert no_sleep == [1.0]


def test_anthropic_grader_does_not_retry_client_errors(monkeypatch, no_sleep: list[float]) -> None:
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(400, json={"error": {"message": "bad image"}})

    grader = AnthropicComicGrader("SYSTEM", http_client=httpx.Client(transport=httpx.MockTransport(handler)))

    result = grader.grade_comic("X-Men", "1", [_image()])

    assert result.success is False
    assert "Claude request failed" in (result.error or "")
    assert calls["count"] == 1
    assert no_sleep == []


def test_anthropic_grader_without_key_fails(monkeypatch) -> None:
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    grader = AnthropicComicGrader("SYSTEM")

    assert grader.is_configured() is False
    result = grader.grade_comic("X-Men", "1", [_image()])
    assert result.success is False


def _ollama_handler(models: list[str], content: str = MOCK_RESPONSE):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": name} for name in models]})
        if request.url.path == "/api/chat":
            body = json.loads(request.content)
            assert body["stream"] is False
            return httpx.Response(200, json={"message": {"role": "assistant", "content": content}})
        return httpx.Response(404)

    return handler


def test_ollama_grader_checks_model_and_chats() -> None:
    http_client = httpx.Client(transport=httpx.MockTransport(_ollama_handler(["llama3.2-vision:latest"])))
    grader = OllamaComicGrader("SYSTEM", http_client=http_client)

    result = grader.grade_comic("X-Men", "1", [_image()])

    assert result.success is True
    assert result.provider == "Ollama"
    assert result.response == MOCK_RESPONSE


def test_ollama_grader_reports_missing_model() -> None:
    http_client = httpx.Client(transport=httpx.MockTransport(_ollama_handler(["llava:latest"])))
    grader = OllamaComicGrader("SYSTEM", model="llama3.2-vision", http_client=http_client)

    result = grader.grade_comic("X-Men", "1", [_image()])

    assert result.success is False
    assert "ollama pull llama3.2-vision" in (result.error or "")
    assert "llava:latest" in (result.error or "")


def _unreachable_client() -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return httpx.Client(transport=httpx.MockTransport(handler))


def test_ollama_model_listing_raises_when_server_unreachable() -> None:
    grader = OllamaComicGrader("SYSTEM", base_url="http://ollama.local:11434", http_client=_unreachable_client())

    with pytest.raises(ProviderRequestError) as exc_info:
        grader.list_available_models()

    assert "not reachable at http://ollama.local:11434" in str(exc_info.value)
    assert exc_info.value.status_code is None


def test_ollama_grader_reports_unreachable_server_instead_of_missing_model() -> None:
    grader = OllamaComicGrader("SYSTEM", http_client=_unreachable_client())

    result = grader.grade_comic("X-Men", "1", [_image()])

    assert result.success is False
    assert "not reachable" in (result.error or "")
    assert "ollama serve" in (result.error or "")
    assert "ollama pull" not in (result.error or "")


def test_gemini_grader_sends_prompt_and_images() -> None:
    pytest.importorskip("google.genai")
    from app.ai.gemini_grader import GeminiComicGrader

    seen: dict[str, object] = {}

    def generate_content(**kwargs):
        seen.update(kwargs)
        return SimpleNamespace(text=MOCK_RESPONSE)

    client = SimpleNamespace(models=SimpleNamespace(generate_content=generate_content))
    grader = GeminiComicGrader("SYSTEM", client=client)

    result = grader.grade_comic("X-Men", "1", [_image()])

    assert result.success is True
    assert result.provider == "Gemini"
    assert seen["model"] == "gemini-1.5-flash"
    assert len(seen["contents"]) == 2


def test_call_with_retry_gives_up_after_backoffs(no_sleep: list[float]) -> None:
    def call():
        raise httpx.ReadTimeout("timed out")

    with pytest.raises(ProviderRequestError) as exc_info:
        call_with_retry(call, provider="Gemini", backoffs=(1.0, 2.0))

    assert exc_info.value.status_code == 504
    assert no_sleep == [1.0, 2.0]


@pytest.mark.parametrize(
    ("name", "expected"),
    [("openai", "openai"), ("Claude", "anthropic"), (" GEMINI ", "gemini"), ("ollama", "ollama")],
)
def test_resolve_provider_name(name: str, expected: str) -> None:
    assert resolve_provider_name(name) == expected


def test_unknown_provider_raises() -> None:
    with pytest.raises(UnknownProviderError) as exc_info:
        get_grading_provider("watson", "SYSTEM")

    assert isinstance(exc_info.value, ValueError)
    assert exc_info.value.name == "watson"


def test_registry_builds_real_clients() -> None:
    assert isinstance(get_grading_provider("openai", "SYSTEM"), OpenAIComicGrader)
    assert isinstance(get_grading_provider("claude", "SYSTEM"), AnthropicComicGrader)
    assert isinstance(get_grading_provider("ollama", "SYSTEM"), OllamaComicGrader)


def test_registry_returns_mock_when_enabled(monkeypatch) -> None:
    monkeypatch.setenv("COMICGRADER_AI_MOCK", "1")

    grader = get_grading_provider("anthropic", "SYSTEM")
    result = grader.grade_comic("X-Men", "1", [])

    assert isinstance(grader, MockComicGrader)
    assert result.success is True
    assert result.provider == "Claude"
    assert result.model == "mock"


def test_provider_status_reflects_environment(monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.setenv("GEMINI_API_KEY", "   ")

    status = provider_status()

    assert status == {"openai": True, "anthropic": False, "gemini": False, "ollama": True}
