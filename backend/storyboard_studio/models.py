"""Brief, storyboard and image records."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import List, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_CUT_COUNT = "10~15컷 내외"
DEFAULT_CONSTRAINTS = "폭력적 표현 금지, 캐릭터 외형 유지"


@dataclass(frozen=True)
class ReferenceFile:
    """Concept board attached to a brief (PDF or image)."""

    name: str
    data: str  # base64 without the data-URI prefix
    mime_type: str

    @classmethod
    def from_bytes(cls, name: str, payload: bytes, mime_type: str | None) -> "ReferenceFile":
        return cls(
            name=name,
            data=base64.b64encode(payload).decode("ascii"),
            mime_type=mime_type or "application/octet-stream",
        )

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")


@dataclass(frozen=True)
class NoReference:
    """Marker for a brief without an attached concept board."""


NO_REFERENCE = NoReference()

Reference = Union[ReferenceFile, NoReference]


@dataclass
class Brief:
    topic: str = ""
    purpose: str = ""
    target_audience: str = ""
    key_concepts: str = ""
    narrative_flow: str = ""
    cut_count: str = DEFAULT_CUT_COUNT
    constraints: str = DEFAULT_CONSTRAINTS
    concept_settings: str = ""
    reference: Reference = field(default=NO_REFERENCE)

    def is_submittable(self) -> bool:
        return bool(self.topic.strip()) and bool(self.purpose.strip())


class Cut(BaseModel):
    """One storyboard row as returned by the text model."""

    model_config = ConfigDict(populate_by_name=True)

    cut_number: int = Field(alias="cutNumber")
    visual_description: str = Field(alias="visualDescription")
    source_file_name: str = Field(alias="sourceFileName")
    subtitles: str
    narration: str
    image_prompt: str = Field(default="", alias="imagePrompt")

    @model_validator(mode="after")
    def _default_image_prompt(self) -> "Cut":
        if not self.image_prompt.strip():
            self.image_prompt = self.visual_description
        return self


class Storyboard(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    synopsis: str
    cuts: List[Cut]

    def to_wire(self) -> dict:
        """Dump in the camelCase shape the text model produces."""
        return self.model_dump(by_alias=True)


@dataclass(frozen=True)
class ImageAsset:
    """Inline image returned by the sketch model."""

    data: str
    mime_type: str = "image/png"

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.data)
