from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Annotated, Any, Awaitable, Callable, Generic, Optional, TypeVar

from pydantic import StringConstraints, TypeAdapter

from songcraft.config import settings
from songcraft.db.enums import GenerationFacetEnum
from songcraft.errors import GenerationError
from songcraft.llm.client import GenerationBackend
from songcraft.schemas.generation import (
    ArtDirection,
    IdeaPack,
    IdeaPackOptions,
    LyricsOptions,
    ReferenceSuggestion,
    SoundPromptOptions,
)
from songcraft.schemas.project import LyricVariation, Project
from songcraft.services import interpreter
from songcraft.services import prompt_builder
from songcraft.services.credentials import CredentialVerifier
from songcraft.services.interpreter import GeneratedImage, StructureViolation
from songcraft.services.projects import ProjectService

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

_IDEA_PACKS = TypeAdapter(list[IdeaPack])
_TITLES = TypeAdapter(list[Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]])
_REFERENCES = TypeAdapter(list[ReferenceSuggestion])
_VARIATIONS = TypeAdapter(list[LyricVariation])


@dataclass
class GenerationOutcome(Generic[T]):
    facet: GenerationFacetEnum
    value: T
    project: Project
    applied: bool
    stale: bool = False
    violations: list[StructureViolation] = field(default_factory=list)


class GenerationService:
    """
    Runs one generation pipeline per call: build the request, call the backend,
    interpret the response, then fold the result into the project.

    Calls for the same (project, facet) are tagged with an increasing sequence
    number. A completion whose number is no longer the latest is returned with
    `stale=True` and never written into the project.
    """

    def __init__(self, backend: GenerationBackend, verifier: CredentialVerifier, projects: ProjectService) -> None:
        self._backend = backend
        self._verifier = verifier
        self._projects = projects
        self._sequence: dict[str, dict[GenerationFacetEnum, int]] = {}

    def _begin(self, project_id: str, facet: GenerationFacetEnum) -> int:
        tickets = self._sequence.setdefault(project_id, {})
        tickets[facet] = tickets.get(facet, 0) + 1
        return tickets[facet]

    def _is_latest(self, project_id: str, facet: GenerationFacetEnum, ticket: int) -> bool:
        return self._sequence.get(project_id, {}).get(facet) == ticket

    def delete_project(self, project_id: str) -> None:
        self._projects.delete_project(project_id)
        self._sequence.pop(project_id, None)

    async def _run(
        self,
        *,
        project_id: str,
        facet: GenerationFacetEnum,
        call: Callable[[str], Awaitable[R]],
        interpret: Callable[[R], T],
        apply: Optional[Callable[[T], Project]] = None,
        violations: Optional[Callable[[T], list[StructureViolation]]] = None,
    ) -> GenerationOutcome[T]:
        ticket = self._begin(project_id, facet)
        credential = self._verifier.resolve_credential()
        log_extra: dict[str, Any] = {"project_id": project_id, "facet": facet.value, "sequence": ticket}
        try:
            raw = await call(credential)
            value = interpret(raw)
        except GenerationError as exc:
            logger.exception("Generation failed", extra={**log_extra, "error": type(exc).__name__, "detail": str(exc)})
            raise

        project = self._projects.get_project(project_id)
        found = violations(value) if violations else []
        if not self._is_latest(project_id, facet, ticket):
            logger.warning("Discarding stale generation result", extra=log_extra)
            return GenerationOutcome(facet=facet, value=value, project=project, applied=False, stale=True, violations=found)
        if apply is None:
            return GenerationOutcome(facet=facet, value=value, project=project, applied=False, violations=found)
        updated = apply(value)
        logger.info("Generation applied", extra=log_extra)
        return GenerationOutcome(facet=facet, value=value, project=updated, applied=True, violations=found)

    async def suggest_idea_packs(
        self, project_id: str, options: Optional[IdeaPackOptions] = None
    ) -> GenerationOutcome[list[IdeaPack]]:
        request = prompt_builder.build_idea_pack_request(self._projects.get_project(project_id), options)
        return await self._run(
            project_id=project_id,
            facet=GenerationFacetEnum.ideas,
            call=lambda credential: self._backend.generate_text(credential, request),
            interpret=lambda raw: interpreter.parse_structured(raw, _IDEA_PACKS, label="Idea pack generation"),
        )

    async def suggest_titles(self, project_id: str) -> GenerationOutcome[list[str]]:
        request = prompt_builder.build_title_request(self._projects.get_project(project_id))
        return await self._run(
            project_id=project_id,
            facet=GenerationFacetEnum.titles,
            call=lambda credential: self._backend.generate_text(credential, request),
            interpret=lambda raw: interpreter.parse_structured(raw, _TITLES, label="Title suggestion"),
            apply=lambda titles: self._projects.update_project(project_id, {"generated_titles": titles}),
        )

    async def suggest_references(self, project_id: str) -> GenerationOutcome[list[ReferenceSuggestion]]:
        request = prompt_builder.build_reference_request(self._projects.get_project(project_id))
        return await self._run(
            project_id=project_id,
            facet=GenerationFacetEnum.references,
            call=lambda credential: self._backend.generate_text(credential, request),
            interpret=lambda raw: interpreter.parse_structured(raw, _REFERENCES, label="Reference suggestion"),
        )

    async def generate_lyrics(
        self, project_id: str, options: Optional[LyricsOptions] = None
    ) -> GenerationOutcome[str]:
        project = self._projects.get_project(project_id)
        request = prompt_builder.build_lyrics_request(project, options)
        structure = list(project.structure)
        return await self._run(
            project_id=project_id,
            facet=GenerationFacetEnum.lyrics,
            call=lambda credential: self._backend.generate_text(credential, request),
            interpret=lambda raw: interpreter.require_text(raw, label="Lyrics generation"),
            apply=lambda lyrics: self._projects.update_project(project_id, {"lyrics": lyrics}),
            violations=lambda lyrics: interpreter.find_block_order_violations(lyrics, structure),
        )

    async def generate_variations(self, project_id: str) -> GenerationOutcome[list[LyricVariation]]:
        request = prompt_builder.build_variations_request(self._projects.get_project(project_id))
        return await self._run(
            project_id=project_id,
            facet=GenerationFacetEnum.variations,
            call=lambda credential: self._backend.generate_text(credential, request),
            interpret=lambda raw: interpreter.parse_structured(raw, _VARIATIONS, label="Lyric variation generation"),
            apply=lambda variations: self._projects.replace_variations(project_id, variations),
        )

    async def generate_sound_prompt(
        self, project_id: str, options: Optional[SoundPromptOptions] = None
    ) -> GenerationOutcome[str]:
        request = prompt_builder.build_sound_prompt_request(self._projects.get_project(project_id), options)
        return await self._run(
            project_id=project_id,
            facet=GenerationFacetEnum.sound_prompt,
            call=lambda credential: self._backend.generate_text(credential, request),
            interpret=lambda raw: interpreter.require_text(raw, label="Sound prompt generation"),
            apply=lambda text: self._projects.update_project(project_id, {"sound_prompt": text}),
        )

    async def generate_composition_advice(self, project_id: str) -> GenerationOutcome[str]:
        request = prompt_builder.build_composition_advice_request(self._projects.get_project(project_id))
        return await self._run(
            project_id=project_id,
            facet=GenerationFacetEnum.composition_advice,
            call=lambda credential: self._backend.generate_text(credential, request),
            interpret=lambda raw: interpreter.require_text(raw, label="Composition advice"),
            apply=lambda text: self._projects.update_project(project_id, {"composition_advice": text}),
        )

    def cover_art_prompt(self, project_id: str, direction: ArtDirection) -> str:
        return prompt_builder.build_cover_art_prompt(self._projects.get_project(project_id), direction)

    async def generate_cover_art(self, project_id: str, direction: ArtDirection) -> GenerationOutcome[GeneratedImage]:
        request = prompt_builder.build_cover_art_request(self._projects.get_project(project_id), direction)
        return await self._run(
            project_id=project_id,
            facet=GenerationFacetEnum.cover_art,
            call=lambda credential: self._backend.generate_image(credential, request),
            interpret=interpreter.extract_first_image,
            apply=lambda image: self._projects.update_project(project_id, {"cover_image": image.data_url}),
        )

    async def detect_tempo(self, project_id: str, audio: bytes, mime_type: str) -> GenerationOutcome[int]:
        self._projects.get_project(project_id)
        request = prompt_builder.build_tempo_request(audio, mime_type)
        return await self._run(
            project_id=project_id,
            facet=GenerationFacetEnum.tempo,
            call=lambda credential: self._backend.analyze_audio_for_tempo(credential, request),
            interpret=lambda raw: interpreter.extract_tempo(raw, max_bpm=settings.TEMPO_MAX_BPM),
            apply=lambda bpm: self._projects.update_project(project_id, {"bpm": bpm}),
        )
