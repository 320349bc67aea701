"""Grading system prompt loading."""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import Request

from app.settings import settings

logger = logging.getLogger(__name__)


def load_system_prompt(path: Path) -> str:
    prompt = path.read_text(encoding="utf-8").strip()
    if not prompt:
        raise RuntimeError(f"System prompt file is empty: {path}")
    logger.info("system prompt loaded", extra={"stage": "load_system_prompt", "path": str(path), "chars": len(prompt)})
    return prompt


def get_system_prompt(request: Request) -> str:
    """Prompt cached on the application at startup; loaded on first use otherwise."""
    prompt = getattr(request.app.state, "system_prompt", None)
    if prompt is None:
        prompt = load_system_prompt(settings.system_prompt_file)
        request.app.state.system_prompt = prompt
    return prompt
