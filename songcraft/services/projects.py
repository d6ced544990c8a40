from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Literal, Mapping, Optional

from pydantic import ValidationError

from songcraft.db.enums import BlockTypeEnum
from songcraft.errors import (
    BlockNotFoundError,
    PersistenceFailure,
    ProjectFieldError,
    ProjectNotFoundError,
    VariationIndexError,
)
from songcraft.persistence import PersistenceAdapter
from songcraft.schemas.generation import IdeaPack, ReferenceSuggestion
from songcraft.schemas.project import (
    LyricVariation,
    Project,
    ProjectSeed,
    SongBlock,
    default_block_duration,
    new_id,
    now_ms,
)

logger = logging.getLogger(__name__)

DJ_INTRO_DESCRIPTION = "DJ Friendly Intro (Percussion only)"
DJ_OUTRO_DESCRIPTION = "DJ Friendly Outro (Beat loop)"
REMIX_SUFFIX = " (Remix)"

_PROTECTED_FIELDS = frozenset({"id", "created_at", "selected_lyric_variation_index"})
_LEADING_TITLE_RE = re.compile(r"^([^(]+)")


def primary_title(full_title: str) -> str:
    """'Neon Nights (네온의 밤)' -> 'Neon Nights'"""
    match = _LEADING_TITLE_RE.match(full_title or "")
    cleaned = match.group(1).strip() if match else ""
    return cleaned or full_title


def _field_names() -> dict[str, str]:
    names: dict[str, str] = {}
    for name, info in Project.model_fields.items():
        names[name] = name
        if info.alias:
            names[info.alias] = name
    return names


_FIELD_NAMES = _field_names()


class ProjectService:
    """
    Owns the in-memory project collection and every mutation applied to it.

    Each operation builds the next Project value fully before swapping it into the
    collection, then writes the collection through the persistence adapter. A failed
    write leaves the in-memory collection authoritative and records a warning.
    """

    def __init__(self, persistence: PersistenceAdapter) -> None:
        self._persistence = persistence
        self.persistence_warning: Optional[str] = None
        try:
            self._projects: list[Project] = persistence.get_projects()
        except PersistenceFailure as exc:
            logger.warning("Could not load stored projects; starting empty", extra={"error": str(exc)})
            self.persistence_warning = str(exc)
            self._projects = []

    def _persist(self) -> None:
        try:
            self._persistence.set_projects(self._projects)
        except PersistenceFailure as exc:
            logger.warning("Project store write failed; keeping in-memory state", extra={"error": str(exc)})
            self.persistence_warning = str(exc)
            return
        self.persistence_warning = None

    def _index_of(self, project_id: str) -> int:
        for index, project in enumerate(self._projects):
            if project.id == project_id:
                return index
        raise ProjectNotFoundError(project_id)

    def _replace(self, project: Project) -> Project:
        self._projects[self._index_of(project.id)] = project
        self._persist()
        return project

    def list_projects(self) -> list[Project]:
        return list(self._projects)

    def get_project(self, project_id: str) -> Project:
        return self._projects[self._index_of(project_id)]

    def create_project(self, seed: ProjectSeed) -> Project:
        project = Project(
            title=seed.title,
            genre=seed.genre,
            sub_genre=seed.sub_genre,
            mood=seed.mood,
            instruments=list(seed.instruments),
        )
        self._projects.insert(0, project)
        self._persist()
        logger.info("Project created", extra={"project_id": project.id})
        return project

    def delete_project(self, project_id: str) -> None:
        del self._projects[self._index_of(project_id)]
        self._persist()
        logger.info("Project deleted", extra={"project_id": project_id})

    def update_project(self, project_id: str, changes: Mapping[str, Any]) -> Project:
        """
        Shallow merge of `changes` (field names or camelCase aliases) into the project.
        List-valued fields are replaced as a whole. Replacing `lyric_variations`
        clears the applied variation index.
        """
        current = self.get_project(project_id)
        resolved: dict[str, Any] = {}
        for key, value in changes.items():
            name = _FIELD_NAMES.get(key)
            if name is None:
                raise ProjectFieldError(f"Unknown project field: {key}")
            if name in _PROTECTED_FIELDS:
                raise ProjectFieldError(f"Project field {key} cannot be updated directly")
            resolved[name] = value
        if not resolved:
            return current

        data = current.model_dump()
        data.update(resolved)
        if "lyric_variations" in resolved:
            data["selected_lyric_variation_index"] = None
        try:
            updated = Project.model_validate(data)
        except ValidationError as exc:
            raise ProjectFieldError(f"Invalid project update: {exc}") from exc
        return self._replace(updated)

    def remix_project(self, project_id: str) -> Project:
        source = self.get_project(project_id)
        remix = source.model_copy(
            update={"id": new_id(), "title": f"{source.title}{REMIX_SUFFIX}", "created_at": now_ms()},
            deep=True,
        )
        self._projects.insert(0, remix)
        self._persist()
        logger.info("Project remixed", extra={"project_id": project_id, "remix_id": remix.id})
        return remix

    # Variations

    def apply_variation(self, project_id: str, variation_index: int) -> Project:
        project = self.get_project(project_id)
        if not 0 <= variation_index < len(project.lyric_variations):
            raise VariationIndexError(
                f"Variation index {variation_index} is out of range for {len(project.lyric_variations)} variations"
            )
        variation = project.lyric_variations[variation_index]
        return self._replace(
            project.model_copy(update={"lyrics": variation.lyrics, "selected_lyric_variation_index": variation_index})
        )

    def replace_variations(self, project_id: str, variations: Iterable[LyricVariation]) -> Project:
        project = self.get_project(project_id)
        return self._replace(
            project.model_copy(
                update={"lyric_variations": list(variations), "selected_lyric_variation_index": None}
            )
        )

    # Structure

    def _with_structure(self, project: Project, structure: list[SongBlock]) -> Project:
        return self._replace(project.model_copy(update={"structure": structure}))

    @staticmethod
    def _block_index(project: Project, block_id: str) -> int:
        for index, block in enumerate(project.structure):
            if block.id == block_id:
                return index
        raise BlockNotFoundError(f"Block {block_id} not found in project {project.id}")

    def reorder_block(self, project_id: str, block_id: str, direction: Literal["up", "down"]) -> Project:
        """Swap a block with its neighbour. Moving past either end is a no-op."""
        project = self.get_project(project_id)
        index = self._block_index(project, block_id)
        target = index - 1 if direction == "up" else index + 1
        if not 0 <= target < len(project.structure):
            return project
        structure = list(project.structure)
        structure[index], structure[target] = structure[target], structure[index]
        return self._with_structure(project, structure)

    def insert_block(
        self,
        project_id: str,
        block_type: BlockTypeEnum,
        *,
        description: str = "",
        duration: Optional[int] = None,
        position: Optional[int] = None,
    ) -> tuple[Project, SongBlock]:
        project = self.get_project(project_id)
        block = SongBlock(
            type=block_type,
            description=description,
            duration=duration or default_block_duration(block_type),
        )
        structure = list(project.structure)
        if position is None or position >= len(structure):
            structure.append(block)
        else:
            structure.insert(max(position, 0), block)
        return self._with_structure(project, structure), block

    def remove_block(self, project_id: str, block_id: str) -> Project:
        project = self.get_project(project_id)
        index = self._block_index(project, block_id)
        structure = list(project.structure)
        del structure[index]
        return self._with_structure(project, structure)

    def update_block_description(self, project_id: str, block_id: str, description: str) -> Project:
        project = self.get_project(project_id)
        index = self._block_index(project, block_id)
        structure = list(project.structure)
        structure[index] = structure[index].model_copy(update={"description": description})
        return self._with_structure(project, structure)

    def apply_structure_template(self, project_id: str, blocks: Iterable[SongBlock]) -> Project:
        project = self.get_project(project_id)
        structure = [block.model_copy(update={"id": new_id()}) for block in blocks]
        return self._with_structure(project, structure)

    def ensure_dj_intro(self, project_id: str) -> Project:
        project = self.get_project(project_id)
        structure = list(project.structure)
        if structure and structure[0].type == BlockTypeEnum.intro:
            structure[0] = structure[0].model_copy(update={"description": DJ_INTRO_DESCRIPTION})
        else:
            structure.insert(0, SongBlock(type=BlockTypeEnum.intro, description=DJ_INTRO_DESCRIPTION, duration=4))
        return self._with_structure(project, structure)

    def ensure_dj_outro(self, project_id: str) -> Project:
        project = self.get_project(project_id)
        structure = list(project.structure)
        if structure and structure[-1].type == BlockTypeEnum.outro:
            structure[-1] = structure[-1].model_copy(update={"description": DJ_OUTRO_DESCRIPTION})
        else:
            structure.append(SongBlock(type=BlockTypeEnum.outro, description=DJ_OUTRO_DESCRIPTION, duration=4))
        return self._with_structure(project, structure)

    # Concept helpers

    def toggle_instrument(self, project_id: str, instrument: str) -> Project:
        project = self.get_project(project_id)
        if instrument in project.instruments:
            instruments = [item for item in project.instruments if item != instrument]
        else:
            instruments = [*project.instruments, instrument]
        return self._replace(project.model_copy(update={"instruments": instruments}))

    def apply_idea_pack(self, project_id: str, pack: IdeaPack) -> Project:
        return self.update_project(
            project_id,
            {"title": primary_title(pack.title), "concept": pack.topic, "style_description": pack.style},
        )

    def apply_title(self, project_id: str, full_title: str) -> Project:
        return self.update_project(project_id, {"title": primary_title(full_title)})

    def apply_reference(self, project_id: str, reference: ReferenceSuggestion) -> Project:
        return self.update_project(
            project_id,
            {"reference_song_title": reference.song, "reference_artist": reference.artist},
        )
