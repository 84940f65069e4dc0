"""Remote storyboard generation: Brief in, validated Storyboard out."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from .ai.openai_client import extract_content
from .errors import ErrorKind, GenerationError, classify_error
from .models import Brief, Storyboard
from .prompts import RESPONSE_FORMAT, build_messages

logger = logging.getLogger(__name__)


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        text = text.rsplit("```", 1)[0]
    return text.strip()


class StoryboardGenerator:
    """One-shot, schema-constrained storyboard generation.

    No retries. Every failure surfaces as ``GenerationError`` so the shell can
    show a single message and decide whether the credential must be revoked.
    """

    def __init__(self, ai_client: Any, model: str | None = None):
        self._client = ai_client
        self._model = model

    def generate(self, brief: Brief) -> Storyboard:
        if not brief.is_submittable():
            raise GenerationError(ErrorKind.INVALID, "Topic and purpose are required.")

        try:
            resp = self._client.chat(
                messages=build_messages(brief),
                model=self._model,
                response_format=RESPONSE_FORMAT,
            )
        except GenerationError as exc:
            logger.error("Storyboard generation refused: %s", exc)
            raise
        except Exception as exc:
            kind = classify_error(exc)
            logger.error("Storyboard generation failed (%s): %s", kind.value, exc)
            raise GenerationError(kind, str(exc)) from exc

        text = _strip_code_fence(extract_content(resp))
        if not text:
            logger.error("Storyboard generation returned an empty response")
            raise GenerationError(ErrorKind.INVALID, "No response from the text model.")

        try:
            storyboard = Storyboard.model_validate_json(text)
        except ValidationError as exc:
            logger.error("Storyboard payload did not match the schema: %s", exc)
            raise GenerationError(ErrorKind.INVALID, "Malformed storyboard payload.") from exc

        logger.info("Generated storyboard %r with %d cuts", storyboard.title, len(storyboard.cuts))
        return storyboard
