"""Backend application factory.

Returns a dictionary of dependencies in the same "service container" style the
Streamlit shell consumes: one AI client bound to the resolved credential plus
the generators and tuning settings built on top of it.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv

from .ai.openai_client import OpenAIClient
from .generator import StoryboardGenerator
from .sketch import SketchGenerator

# Ensure local `.env` values are available when running via Streamlit/CLI.
load_dotenv(Path(__file__).resolve().parents[2] / ".env", override=False)


def _read_env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _read_number(name: str, default: float) -> float:
    raw = _read_env(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def create_app(api_key: str | None = None) -> Dict[str, Any]:
    """Create the backend dependency container for one credential."""
    ai_client = OpenAIClient(
        api_key=api_key,
        base_url=_read_env("STORYBOARD_BASE_URL"),
        default_chat_model=_read_env("STORYBOARD_TEXT_MODEL"),
        default_image_model=_read_env("STORYBOARD_IMAGE_MODEL"),
    )

    return {
        "ai_client": ai_client,
        "storyboard": StoryboardGenerator(ai_client),
        "sketches": SketchGenerator(ai_client),
        "settings": {
            "sketch_workers": max(1, int(_read_number("STORYBOARD_SKETCH_WORKERS", 2))),
            "sketch_retries": max(0, int(_read_number("STORYBOARD_SKETCH_RETRIES", 2))),
            "sketch_backoff": max(0.0, _read_number("STORYBOARD_SKETCH_BACKOFF", 2.0)),
            "log_level": (_read_env("STORYBOARD_LOG_LEVEL") or "INFO").upper(),
        },
    }
