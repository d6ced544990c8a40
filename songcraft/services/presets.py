from __future__ import annotations

import logging
from typing import Optional

from songcraft.errors import PersistenceFailure, PresetNotFoundError, ProjectFieldError
from songcraft.persistence import PersistenceAdapter
from songcraft.schemas.presets import InstrumentPreset, SamplePrompt
from songcraft.schemas.project import Project
from songcraft.services.projects import ProjectService

logger = logging.getLogger(__name__)


class PresetService:
    """Sample prompts, instrument presets and the legibility toggle."""

    def __init__(self, persistence: PersistenceAdapter) -> None:
        self._persistence = persistence
        self.persistence_warning: Optional[str] = None
        self._sample_prompts = self._load(persistence.get_sample_prompts, "sample prompts")
        self._instrument_presets = self._load(persistence.get_instrument_presets, "instrument presets")
        self._legibility = bool(self._load(persistence.get_legibility, "legibility toggle", default=False))

    def _load(self, reader, label: str, default=None):
        try:
            return reader()
        except PersistenceFailure as exc:
            logger.warning("Could not load stored preference", extra={"preference": label, "error": str(exc)})
            self.persistence_warning = str(exc)
            return [] if default is None else default

    def _write(self, writer, value, label: str) -> None:
        try:
            writer(value)
        except PersistenceFailure as exc:
            logger.warning("Preference write failed; keeping in-memory value", extra={"preference": label})
            self.persistence_warning = str(exc)

    # Sample prompts

    def list_sample_prompts(self) -> list[SamplePrompt]:
        return list(self._sample_prompts)

    def add_sample_prompt(self, prompt: SamplePrompt) -> list[SamplePrompt]:
        self._sample_prompts = [*self._sample_prompts, prompt]
        self._write(self._persistence.set_sample_prompts, self._sample_prompts, "sample prompts")
        return self.list_sample_prompts()

    def delete_sample_prompt(self, index: int) -> list[SamplePrompt]:
        if not 0 <= index < len(self._sample_prompts):
            raise PresetNotFoundError(f"Sample prompt index {index} is out of range")
        self._sample_prompts = [item for i, item in enumerate(self._sample_prompts) if i != index]
        self._write(self._persistence.set_sample_prompts, self._sample_prompts, "sample prompts")
        return self.list_sample_prompts()

    # Instrument presets

    def list_instrument_presets(self) -> list[InstrumentPreset]:
        return list(self._instrument_presets)

    def save_instrument_preset(self, name: str, project: Project) -> InstrumentPreset:
        if not project.instruments:
            raise ProjectFieldError("Select at least one instrument before saving a preset")
        preset = InstrumentPreset(name=name, instruments=list(project.instruments))
        self._instrument_presets = [*self._instrument_presets, preset]
        self._write(self._persistence.set_instrument_presets, self._instrument_presets, "instrument presets")
        return preset

    def delete_instrument_preset(self, index: int) -> list[InstrumentPreset]:
        if not 0 <= index < len(self._instrument_presets):
            raise PresetNotFoundError(f"Instrument preset index {index} is out of range")
        self._instrument_presets = [item for i, item in enumerate(self._instrument_presets) if i != index]
        self._write(self._persistence.set_instrument_presets, self._instrument_presets, "instrument presets")
        return self.list_instrument_presets()

    def apply_instrument_preset(self, projects: ProjectService, project_id: str, index: int) -> Project:
        if not 0 <= index < len(self._instrument_presets):
            raise PresetNotFoundError(f"Instrument preset index {index} is out of range")
        return projects.update_project(project_id, {"instruments": list(self._instrument_presets[index].instruments)})

    # Legibility

    @property
    def legibility(self) -> bool:
        return self._legibility

    def set_legibility(self, enabled: bool) -> bool:
        self._legibility = enabled
        self._write(self._persistence.set_legibility, enabled, "legibility toggle")
        return self._legibility
