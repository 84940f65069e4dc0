"""Per-cut sketch workflow: edit the prompt, fetch, display, revise."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .errors import InvalidTransition
from .models import Cut, ImageAsset, Storyboard

logger = logging.getLogger(__name__)


class RowStage(str, Enum):
    EDITING_PROMPT = "editing_prompt"
    LOADING = "loading"
    DISPLAYING = "displaying"


@dataclass
class CutRow:
    """UI state owned by a single storyboard row.

    ``token`` increases on every trigger; a result carrying an older token
    belongs to a superseded request and is dropped.
    """

    index: int
    prompt: str
    stage: RowStage = RowStage.EDITING_PROMPT
    image: Optional[ImageAsset] = None
    error: bool = False
    token: int = 0

    @classmethod
    def from_cut(cls, index: int, cut: Cut) -> "CutRow":
        return cls(index=index, prompt=cut.image_prompt or cut.visual_description)

    def edit_prompt(self, storyboard: Storyboard, text: str) -> None:
        if self.stage is not RowStage.EDITING_PROMPT:
            raise InvalidTransition(f"Row {self.index} prompt is not editable while {self.stage.value}.")
        self.prompt = text
        storyboard.cuts[self.index].image_prompt = text

    def begin(self) -> int:
        self.token += 1
        self.stage = RowStage.LOADING
        self.error = False
        return self.token

    def finish(self, token: int, image: Optional[ImageAsset]) -> bool:
        if token != self.token:
            logger.debug("Dropping stale sketch for row %d (token %d < %d)", self.index, token, self.token)
            return False
        if image is not None:
            self.image = image
            self.stage = RowStage.DISPLAYING
            self.error = False
        else:
            self.stage = RowStage.EDITING_PROMPT
            self.error = True
        return True

    def revise(self) -> None:
        if self.stage is not RowStage.DISPLAYING:
            raise InvalidTransition(f"Row {self.index} has no sketch to revise.")
        self.stage = RowStage.EDITING_PROMPT

    def run(self, generator: Any) -> bool:
        token = self.begin()
        return self.finish(token, generator.sketch(self.prompt))
