from __future__ import annotations

import io
import sys
from pathlib import Path

import pytest
from PIL import Image

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch) -> None:
    monkeypatch.delenv("BACKEND_API_KEY", raising=False)
    monkeypatch.delenv("COMICGRADER_AI_MOCK", raising=False)


@pytest.fixture
def png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (64, 96), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


BRITTLE_RESPONSE = """**GRADE:** 9.6 Near Mint Plus (NM+)
**Defects:** Minor spine stress at top staple
**Page Quality:** Brittle
**Restoration:** None
**Repair/Improvement:** None needed
**Prevention:** Store in a Mylar sleeve with an acid-free board"""


@pytest.fixture
def brittle_response() -> str:
    return BRITTLE_RESPONSE
