from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, File, UploadFile

from songcraft.config import settings
from songcraft.deps import get_generation
from songcraft.schemas.generation import (
    ArtDirection,
    CoverArtPromptResponse,
    CoverArtResult,
    GeneratedImageOut,
    IdeaPackOptions,
    IdeaPacksResult,
    LyricsOptions,
    ReferencesResult,
    SoundPromptOptions,
    StructureViolationOut,
    TempoResult,
    TextResult,
    TitlesResult,
    VariationsResult,
)
from songcraft.services.generation import GenerationOutcome, GenerationService

router = APIRouter(prefix="/projects/{project_id}/generate", tags=["generation"])


def _result_fields(outcome: GenerationOutcome[Any]) -> dict[str, Any]:
    return {
        "facet": outcome.facet,
        "applied": outcome.applied,
        "stale": outcome.stale,
        "project": outcome.project,
        "violations": [
            StructureViolationOut(position=v.position, block_type=v.block_type, reason=v.reason)
            for v in outcome.violations
        ],
    }


@router.post("/ideas", response_model=IdeaPacksResult)
async def generate_ideas(
    project_id: str,
    options: Optional[IdeaPackOptions] = None,
    generation: GenerationService = Depends(get_generation),
):
    outcome = await generation.suggest_idea_packs(project_id, options)
    return IdeaPacksResult(value=outcome.value, **_result_fields(outcome))


@router.post("/titles", response_model=TitlesResult)
async def generate_titles(project_id: str, generation: GenerationService = Depends(get_generation)):
    outcome = await generation.suggest_titles(project_id)
    return TitlesResult(value=outcome.value, **_result_fields(outcome))


@router.post("/references", response_model=ReferencesResult)
async def generate_references(project_id: str, generation: GenerationService = Depends(get_generation)):
    outcome = await generation.suggest_references(project_id)
    return ReferencesResult(value=outcome.value, **_result_fields(outcome))


@router.post("/lyrics", response_model=TextResult)
async def generate_lyrics(
    project_id: str,
    options: Optional[LyricsOptions] = None,
    generation: GenerationService = Depends(get_generation),
):
    outcome = await generation.generate_lyrics(project_id, options)
    return TextResult(value=outcome.value, **_result_fields(outcome))


@router.post("/variations", response_model=VariationsResult)
async def generate_variations(project_id: str, generation: GenerationService = Depends(get_generation)):
    outcome = await generation.generate_variations(project_id)
    return VariationsResult(value=outcome.value, **_result_fields(outcome))


@router.post("/sound-prompt", response_model=TextResult)
async def generate_sound_prompt(
    project_id: str,
    options: Optional[SoundPromptOptions] = None,
    generation: GenerationService = Depends(get_generation),
):
    outcome = await generation.generate_sound_prompt(project_id, options)
    return TextResult(value=outcome.value, **_result_fields(outcome))


@router.post("/composition-advice", response_model=TextResult)
async def generate_composition_advice(project_id: str, generation: GenerationService = Depends(get_generation)):
    outcome = await generation.generate_composition_advice(project_id)
    return TextResult(value=outcome.value, **_result_fields(outcome))


@router.post("/cover-art-prompt", response_model=CoverArtPromptResponse)
def cover_art_prompt(
    project_id: str,
    direction: ArtDirection,
    generation: GenerationService = Depends(get_generation),
):
    return CoverArtPromptResponse(prompt=generation.cover_art_prompt(project_id, direction))


@router.post("/cover-art", response_model=CoverArtResult)
async def generate_cover_art(
    project_id: str,
    direction: ArtDirection,
    generation: GenerationService = Depends(get_generation),
):
    outcome = await generation.generate_cover_art(project_id, direction)
    image = outcome.value
    return CoverArtResult(
        value=GeneratedImageOut(
            mime_type=image.mime_type,
            width=image.width,
            height=image.height,
            data_url=image.data_url,
        ),
        **_result_fields(outcome),
    )


@router.post("/tempo", response_model=TempoResult)
async def detect_tempo(
    project_id: str,
    audio: UploadFile = File(...),
    generation: GenerationService = Depends(get_generation),
):
    data = await audio.read(settings.TEMPO_AUDIO_MAX_BYTES + 1)
    outcome = await generation.detect_tempo(project_id, data, audio.content_type or "")
    return TempoResult(value=outcome.value, **_result_fields(outcome))
