from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, status

from songcraft.deps import get_generation, get_projects
from songcraft.schemas.generation import IdeaPack, ReferenceSuggestion
from songcraft.schemas.project import (
    BlockDescriptionRequest,
    BlockInsertRequest,
    BlockMoveRequest,
    InstrumentToggleRequest,
    Project,
    ProjectSeed,
    StructureReplaceRequest,
    TitleApplyRequest,
)
from songcraft.services.generation import GenerationService
from songcraft.services.projects import ProjectService

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("", response_model=list[Project])
def list_projects(projects: ProjectService = Depends(get_projects)):
    return projects.list_projects()


@router.post("", response_model=Project, status_code=status.HTTP_201_CREATED)
def create_project(seed: ProjectSeed, projects: ProjectService = Depends(get_projects)):
    return projects.create_project(seed)


@router.get("/{project_id}", response_model=Project)
def get_project(project_id: str, projects: ProjectService = Depends(get_projects)):
    return projects.get_project(project_id)


@router.patch("/{project_id}", response_model=Project)
def update_project(
    project_id: str,
    changes: dict[str, Any] = Body(...),
    projects: ProjectService = Depends(get_projects),
):
    return projects.update_project(project_id, changes)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_project(project_id: str, generation: GenerationService = Depends(get_generation)) -> None:
    generation.delete_project(project_id)


@router.post("/{project_id}/remix", response_model=Project, status_code=status.HTTP_201_CREATED)
def remix_project(project_id: str, projects: ProjectService = Depends(get_projects)):
    return projects.remix_project(project_id)


@router.post("/{project_id}/variations/{variation_index}/apply", response_model=Project)
def apply_variation(project_id: str, variation_index: int, projects: ProjectService = Depends(get_projects)):
    return projects.apply_variation(project_id, variation_index)


@router.put("/{project_id}/structure", response_model=Project)
def replace_structure(
    project_id: str,
    payload: StructureReplaceRequest,
    projects: ProjectService = Depends(get_projects),
):
    return projects.apply_structure_template(project_id, payload.blocks)


@router.post("/{project_id}/structure/blocks", response_model=Project, status_code=status.HTTP_201_CREATED)
def insert_block(
    project_id: str,
    payload: BlockInsertRequest,
    projects: ProjectService = Depends(get_projects),
):
    project, _block = projects.insert_block(
        project_id,
        payload.type,
        description=payload.description,
        duration=payload.duration,
        position=payload.position,
    )
    return project


@router.patch("/{project_id}/structure/blocks/{block_id}", response_model=Project)
def update_block_description(
    project_id: str,
    block_id: str,
    payload: BlockDescriptionRequest,
    projects: ProjectService = Depends(get_projects),
):
    return projects.update_block_description(project_id, block_id, payload.description)


@router.delete("/{project_id}/structure/blocks/{block_id}", response_model=Project)
def remove_block(project_id: str, block_id: str, projects: ProjectService = Depends(get_projects)):
    return projects.remove_block(project_id, block_id)


@router.post("/{project_id}/structure/blocks/{block_id}/move", response_model=Project)
def move_block(
    project_id: str,
    block_id: str,
    payload: BlockMoveRequest,
    projects: ProjectService = Depends(get_projects),
):
    return projects.reorder_block(project_id, block_id, payload.direction)


@router.post("/{project_id}/structure/dj-intro", response_model=Project)
def ensure_dj_intro(project_id: str, projects: ProjectService = Depends(get_projects)):
    return projects.ensure_dj_intro(project_id)


@router.post("/{project_id}/structure/dj-outro", response_model=Project)
def ensure_dj_outro(project_id: str, projects: ProjectService = Depends(get_projects)):
    return projects.ensure_dj_outro(project_id)


@router.post("/{project_id}/instruments/toggle", response_model=Project)
def toggle_instrument(
    project_id: str,
    payload: InstrumentToggleRequest,
    projects: ProjectService = Depends(get_projects),
):
    return projects.toggle_instrument(project_id, payload.instrument)


@router.post("/{project_id}/apply/idea-pack", response_model=Project)
def apply_idea_pack(project_id: str, pack: IdeaPack, projects: ProjectService = Depends(get_projects)):
    return projects.apply_idea_pack(project_id, pack)


@router.post("/{project_id}/apply/title", response_model=Project)
def apply_title(project_id: str, payload: TitleApplyRequest, projects: ProjectService = Depends(get_projects)):
    return projects.apply_title(project_id, payload.title)


@router.post("/{project_id}/apply/reference", response_model=Project)
def apply_reference(
    project_id: str,
    reference: ReferenceSuggestion,
    projects: ProjectService = Depends(get_projects),
):
    return projects.apply_reference(project_id, reference)
