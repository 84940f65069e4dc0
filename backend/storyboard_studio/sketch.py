"""Remote sketch generation for individual cuts."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from .ai.openai_client import extract_image_data
from .errors import ErrorKind, classify_error
from .models import ImageAsset
from .prompts import sketch_prompt

logger = logging.getLogger(__name__)


class SketchGenerator:
    """Best-effort storyboard sketches.

    ``sketch`` never raises: a failed call and a response without an image
    both come back as ``None`` so a missing illustration can't block the rest
    of the storyboard.
    """

    def __init__(self, ai_client: Any, model: str | None = None):
        self._client = ai_client
        self._model = model

    def request(self, prompt: str) -> Optional[ImageAsset]:
        """Single image call that lets transport and API errors propagate."""
        resp = self._client.images(prompt=sketch_prompt(prompt), model=self._model)
        payload = extract_image_data(resp)
        if not payload:
            return None
        return ImageAsset(data=payload, mime_type="image/png")

    def sketch(self, prompt: str) -> Optional[ImageAsset]:
        try:
            image = self.request(prompt)
        except Exception as exc:
            logger.warning("Sketch generation failed (%s): %s", classify_error(exc).value, exc)
            return None
        if image is None:
            logger.info("Sketch response contained no image part")
        return image


def _sketch_with_backoff(
    generator: SketchGenerator,
    prompt: str,
    max_retries: int,
    backoff_seconds: float,
    sleep: Callable[[float], None],
) -> Optional[ImageAsset]:
    attempt = 0
    while True:
        try:
            return generator.request(prompt)
        except Exception as exc:
            kind = classify_error(exc)
            if kind is ErrorKind.RATE_LIMITED and attempt < max_retries:
                delay = backoff_seconds * (2**attempt)
                logger.info("Sketch rate limited, retrying in %.1fs", delay)
                sleep(delay)
                attempt += 1
                continue
            logger.warning("Sketch generation failed (%s): %s", kind.value, exc)
            return None


def generate_sketches(
    generator: SketchGenerator,
    jobs: Sequence[Tuple[int, str]],
    max_workers: int = 2,
    max_retries: int = 2,
    backoff_seconds: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[int, Optional[ImageAsset]]:
    """Run ``(row_index, prompt)`` jobs through a bounded worker pool.

    Only rate-limit failures are retried; every other failure maps to ``None``
    for that row.
    """
    results: Dict[int, Optional[ImageAsset]] = {}
    if not jobs:
        return results

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        futures = {
            executor.submit(
                _sketch_with_backoff, generator, prompt, max_retries, backoff_seconds, sleep
            ): index
            for index, prompt in jobs
        }
        for future in as_completed(futures):
            results[futures[future]] = future.result()
    return results
