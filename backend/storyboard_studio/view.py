"""Storyboard view state: rows, edit mode and export gating."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from .errors import InvalidTransition
from .models import ImageAsset, Storyboard
from .rows import CutRow

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "visual_description",
    "source_file_name",
    "subtitles",
    "narration",
)

LEAVE_EDIT_MODE_MESSAGE = "편집 모드를 종료한 후 PDF로 저장해주세요."
EXPORT_BUSY_MESSAGE = "PDF를 이미 생성하는 중입니다."
EXPORT_FAILED_MESSAGE = "PDF 생성 중 오류가 발생했습니다."

Exporter = Callable[[Storyboard, Mapping[int, Optional[ImageAsset]]], Tuple[str, bytes]]


@dataclass
class ExportResult:
    file_name: str | None = None
    data: bytes | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.data is not None


@dataclass
class StoryboardView:
    storyboard: Storyboard
    rows: List[CutRow] = field(default_factory=list)
    edit_mode: bool = False
    exporting: bool = False
    revision: str = field(default_factory=lambda: uuid.uuid4().hex[:8])

    @classmethod
    def from_storyboard(cls, storyboard: Storyboard) -> "StoryboardView":
        rows = [CutRow.from_cut(index, cut) for index, cut in enumerate(storyboard.cuts)]
        return cls(storyboard=storyboard, rows=rows)

    def set_edit_mode(self, enabled: bool) -> None:
        self.edit_mode = enabled

    def _require_edit_mode(self) -> None:
        if not self.edit_mode:
            raise InvalidTransition("Storyboard fields are read-only outside edit mode.")

    def update_cut(self, index: int, field_name: str, value: str) -> None:
        if field_name not in EDITABLE_FIELDS:
            raise ValueError(f"Field {field_name!r} is not editable.")
        self._require_edit_mode()
        setattr(self.storyboard.cuts[index], field_name, value)

    def update_header(self, title: str | None = None, synopsis: str | None = None) -> None:
        self._require_edit_mode()
        if title is not None:
            self.storyboard.title = title
        if synopsis is not None:
            self.storyboard.synopsis = synopsis

    def edit_prompt(self, index: int, text: str) -> None:
        self.rows[index].edit_prompt(self.storyboard, text)

    def images(self) -> Dict[int, Optional[ImageAsset]]:
        return {row.index: row.image for row in self.rows}

    def can_export(self) -> bool:
        return not self.edit_mode and not self.exporting

    def export_pdf(self, exporter: Exporter) -> ExportResult:
        if self.edit_mode:
            return ExportResult(message=LEAVE_EDIT_MODE_MESSAGE)
        if self.exporting:
            return ExportResult(message=EXPORT_BUSY_MESSAGE)

        self.exporting = True
        try:
            file_name, data = exporter(self.storyboard, self.images())
        except Exception:
            logger.exception("Storyboard export failed")
            return ExportResult(message=EXPORT_FAILED_MESSAGE)
        finally:
            self.exporting = False
        return ExportResult(file_name=file_name, data=data)
