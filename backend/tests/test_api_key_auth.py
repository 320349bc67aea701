from __future__ import annotations

import pytest

pytest.importorskip("httpx")

from fastapi.testclient import TestClient

from app.main import app


def test_grade_requires_api_key_when_configured(monkeypatch, png_bytes: bytes) -> None:
    monkeypatch.setenv("BACKEND_API_KEY", "test-api-key")
    monkeypatch.setenv("COMICGRADER_AI_MOCK", "1")
    form = {"comic_name": "X-Men", "issue_number": "1", "ai_provider": "openai"}
    files = [("images", ("cover.png", png_bytes, "image/png"))]

    with TestClient(app) as client:
        unauthorized = client.post("/api/grade", data=form, files=files)
        wrong_key = client.post("/api/grade", data=form, files=files, headers={"X-API-Key": "nope"})
        authorized = client.post("/api/grade", data=form, files=files, headers={"X-API-Key": "test-api-key"})

    assert unauthorized.status_code == 401
    assert unauthorized.json() == {"detail": "Unauthorized"}
    assert wrong_key.status_code == 401
    assert authorized.status_code == 200


def test_health_and_preflight_bypass_api_key(monkeypatch) -> None:
    monkeypatch.setenv("BACKEND_API_KEY", "test-api-key")

    with TestClient(app) as client:
        health = client.get("/api/health")
        preflight = client.options(
            "/api/grade",
            headers={
                "Origin": "https://example.com",
                "Access-Control-Request-Method": "POST",
            },
        )

    assert health.status_code == 200
    assert preflight.status_code in (200, 204)
    assert "access-control-allow-origin" in preflight.headers
