from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from songcraft.db.enums import BlockTypeEnum, GenerationFacetEnum, ImageTierEnum
from songcraft.schemas.project import LyricVariation, Project

_CAMEL_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IdeaPack(BaseModel):
    title: str = Field(min_length=1)
    topic: str = Field(min_length=1)
    style: str = Field(min_length=1)


class ReferenceSuggestion(BaseModel):
    song: str = Field(min_length=1)
    artist: str = Field(min_length=1)


class IntroStyle(BaseModel):
    model_config = _CAMEL_CONFIG

    id: str
    label: str
    description: str = ""
    tags: str = ""


class IdeaPackOptions(BaseModel):
    model_config = _CAMEL_CONFIG

    keywords: str = ""


class LyricsOptions(BaseModel):
    model_config = _CAMEL_CONFIG

    language: str = "Korean & English Mix"
    target_duration: str = "Standard (~3:00)"
    strict_dance: bool = False
    auto_adjust_length: bool = False
    intro_style: IntroStyle | None = None


class SoundPromptOptions(BaseModel):
    model_config = _CAMEL_CONFIG

    suno_version: Literal["v5", "v3.5"] = "v5"
    strict_dance: bool = True
    intro_style: IntroStyle | None = None


class ArtDirection(BaseModel):
    model_config = _CAMEL_CONFIG

    visual_mood: str = ""
    visual_style: str = ""
    characters: str = ""
    description: str = ""
    target_ratio: str = "1:1"
    ratio_label: str | None = None
    circular: bool = False
    tier: ImageTierEnum = ImageTierEnum.standard
    image_size: Literal["1K", "2K", "4K"] = "1K"


class StructureViolationOut(BaseModel):
    model_config = _CAMEL_CONFIG

    position: int
    block_type: BlockTypeEnum
    reason: str


class GeneratedImageOut(BaseModel):
    model_config = _CAMEL_CONFIG

    mime_type: str
    width: int
    height: int
    data_url: str


class GenerationResult(BaseModel):
    model_config = _CAMEL_CONFIG

    facet: GenerationFacetEnum
    applied: bool
    stale: bool = False
    project: Project
    violations: list[StructureViolationOut] = Field(default_factory=list)


class IdeaPacksResult(GenerationResult):
    value: list[IdeaPack]


class TitlesResult(GenerationResult):
    value: list[str]


class ReferencesResult(GenerationResult):
    value: list[ReferenceSuggestion]


class TextResult(GenerationResult):
    value: str


class VariationsResult(GenerationResult):
    value: list[LyricVariation]


class CoverArtResult(GenerationResult):
    value: GeneratedImageOut


class TempoResult(GenerationResult):
    value: int


class CoverArtPromptResponse(BaseModel):
    prompt: str
