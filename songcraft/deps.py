from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request

from songcraft.llm.client import GeminiClient, GenerationBackend
from songcraft.persistence import PersistenceAdapter, SqlPersistenceAdapter
from songcraft.services.credentials import CredentialVerifier
from songcraft.services.generation import GenerationService
from songcraft.services.presets import PresetService
from songcraft.services.projects import ProjectService


@dataclass
class Studio:
    persistence: PersistenceAdapter
    backend: GenerationBackend
    verifier: CredentialVerifier
    projects: ProjectService
    presets: PresetService
    generation: GenerationService


def build_studio(
    persistence: Optional[PersistenceAdapter] = None,
    backend: Optional[GenerationBackend] = None,
) -> Studio:
    persistence = persistence or SqlPersistenceAdapter()
    backend = backend or GeminiClient()
    verifier = CredentialVerifier(backend, persistence)
    projects = ProjectService(persistence)
    return Studio(
        persistence=persistence,
        backend=backend,
        verifier=verifier,
        projects=projects,
        presets=PresetService(persistence),
        generation=GenerationService(backend, verifier, projects),
    )


def get_studio(request: Request) -> Studio:
    return request.app.state.studio


def get_verifier(studio: Studio = Depends(get_studio)) -> CredentialVerifier:
    return studio.verifier


def get_projects(studio: Studio = Depends(get_studio)) -> ProjectService:
    return studio.projects


def get_presets(studio: Studio = Depends(get_studio)) -> PresetService:
    return studio.presets


def get_generation(studio: Studio = Depends(get_studio)) -> GenerationService:
    return studio.generation
