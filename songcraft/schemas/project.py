from __future__ import annotations

import time
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from songcraft.db.enums import BlockTypeEnum

_CAMEL_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def new_id() -> str:
    return uuid4().hex


def now_ms() -> int:
    return int(time.time() * 1000)


def default_block_duration(block_type: BlockTypeEnum) -> int:
    if block_type in (BlockTypeEnum.intro, BlockTypeEnum.outro):
        return 4
    return 8


class SongBlock(BaseModel):
    model_config = _CAMEL_CONFIG

    id: str = Field(default_factory=new_id)
    type: BlockTypeEnum
    description: str = ""
    duration: int = Field(default=8, gt=0)


class LyricVariation(BaseModel):
    title: str = Field(min_length=1)
    rationale: str
    lyrics: str = Field(min_length=1)


class ProjectSeed(BaseModel):
    model_config = _CAMEL_CONFIG

    title: str = Field(min_length=1)
    genre: str = Field(min_length=1)
    sub_genre: str = ""
    mood: str = Field(min_length=1)
    instruments: list[str] = Field(default_factory=list)


class Project(BaseModel):
    model_config = _CAMEL_CONFIG

    id: str = Field(default_factory=new_id)
    title: str
    genre: str
    sub_genre: str = ""
    mood: str
    style_description: str = ""
    bpm: int = 0
    key: str = ""
    created_at: int = Field(default_factory=now_ms)

    reference_song_title: str | None = None
    reference_artist: str | None = None

    concept: str | None = None
    generated_titles: list[str] = Field(default_factory=list)
    structure: list[SongBlock] = Field(default_factory=list)
    lyrics: str = ""
    excluded_themes: str | None = None
    sound_prompt: str = Field(default="", alias="sunoPrompt")
    cover_image: str | None = None
    composition_advice: str | None = None

    lyric_variations: list[LyricVariation] = Field(default_factory=list)
    selected_lyric_variation_index: int | None = None

    instruments: list[str] = Field(default_factory=list)
    vocal_type: str = "Male"
    dj_name: str | None = None
    intro_style: str | None = None

    @model_validator(mode="after")
    def validate_selected_variation(self) -> "Project":
        index = self.selected_lyric_variation_index
        if index is not None and not 0 <= index < len(self.lyric_variations):
            raise ValueError(
                f"selectedLyricVariationIndex {index} is out of range for "
                f"{len(self.lyric_variations)} lyric variations"
            )
        return self

    def to_store(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class BlockInsertRequest(BaseModel):
    model_config = _CAMEL_CONFIG

    type: BlockTypeEnum
    description: str = ""
    duration: int | None = Field(default=None, gt=0)
    position: int | None = Field(default=None, ge=0)


class BlockMoveRequest(BaseModel):
    direction: Literal["up", "down"]


class BlockDescriptionRequest(BaseModel):
    description: str


class StructureReplaceRequest(BaseModel):
    blocks: list[SongBlock]


class TitleApplyRequest(BaseModel):
    title: str = Field(min_length=1)


class InstrumentToggleRequest(BaseModel):
    instrument: str = Field(min_length=1)
