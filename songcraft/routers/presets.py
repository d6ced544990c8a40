from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from songcraft.deps import get_presets, get_projects
from songcraft.schemas.presets import (
    InstrumentPreset,
    InstrumentPresetCreateRequest,
    LegibilityPayload,
    SamplePrompt,
)
from songcraft.schemas.project import Project
from songcraft.services.presets import PresetService
from songcraft.services.projects import ProjectService

router = APIRouter(prefix="/presets", tags=["presets"])


@router.get("/sample-prompts", response_model=list[SamplePrompt])
def list_sample_prompts(presets: PresetService = Depends(get_presets)):
    return presets.list_sample_prompts()


@router.post("/sample-prompts", response_model=list[SamplePrompt], status_code=status.HTTP_201_CREATED)
def add_sample_prompt(prompt: SamplePrompt, presets: PresetService = Depends(get_presets)):
    return presets.add_sample_prompt(prompt)


@router.delete("/sample-prompts/{index}", response_model=list[SamplePrompt])
def delete_sample_prompt(index: int, presets: PresetService = Depends(get_presets)):
    return presets.delete_sample_prompt(index)


@router.get("/instruments", response_model=list[InstrumentPreset])
def list_instrument_presets(presets: PresetService = Depends(get_presets)):
    return presets.list_instrument_presets()


@router.post("/instruments", response_model=InstrumentPreset, status_code=status.HTTP_201_CREATED)
def save_instrument_preset(
    payload: InstrumentPresetCreateRequest,
    presets: PresetService = Depends(get_presets),
    projects: ProjectService = Depends(get_projects),
):
    return presets.save_instrument_preset(payload.name, projects.get_project(payload.project_id))


@router.delete("/instruments/{index}", response_model=list[InstrumentPreset])
def delete_instrument_preset(index: int, presets: PresetService = Depends(get_presets)):
    return presets.delete_instrument_preset(index)


@router.post("/instruments/{index}/apply", response_model=Project)
def apply_instrument_preset(
    index: int,
    project_id: str = Query(alias="projectId"),
    presets: PresetService = Depends(get_presets),
    projects: ProjectService = Depends(get_projects),
):
    return presets.apply_instrument_preset(projects, project_id, index)


@router.get("/legibility", response_model=LegibilityPayload)
def get_legibility(presets: PresetService = Depends(get_presets)):
    return LegibilityPayload(enabled=presets.legibility)


@router.put("/legibility", response_model=LegibilityPayload)
def set_legibility(payload: LegibilityPayload, presets: PresetService = Depends(get_presets)):
    return LegibilityPayload(enabled=presets.set_legibility(payload.enabled))
