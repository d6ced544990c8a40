from __future__ import annotations

import base64
import binascii
import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from songcraft.db.base import build_session_factory, engine as default_engine, init_db, session_scope
from songcraft.db.enums import StoreKeyEnum
from songcraft.db.repositories import KeyValueRepository
from songcraft.errors import PersistenceFailure
from songcraft.schemas.presets import InstrumentPreset, SamplePrompt
from songcraft.schemas.project import Project

logger = logging.getLogger(__name__)

_PROJECTS_ADAPTER = TypeAdapter(list[Project])
_SAMPLE_PROMPTS_ADAPTER = TypeAdapter(list[SamplePrompt])
_INSTRUMENT_PRESETS_ADAPTER = TypeAdapter(list[InstrumentPreset])


def obfuscate_credential(credential: str) -> str:
    return base64.b64encode(credential.encode("utf-8")).decode("ascii")


def reveal_credential(encoded: str) -> str:
    try:
        return base64.b64decode(encoded.encode("ascii"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError) as exc:
        raise PersistenceFailure("Stored credential is not valid base64") from exc


class PersistenceAdapter(ABC):
    """
    Client-local key-value store used by the core.
    Writes are committed before returning so a following read always observes them.
    """

    @abstractmethod
    def get_value(self, key: str) -> str | None: ...

    @abstractmethod
    def set_value(self, key: str, value: str) -> None: ...

    @abstractmethod
    def delete_value(self, key: str) -> None: ...

    def _get_json(self, key: StoreKeyEnum) -> Any:
        raw = self.get_value(key.value)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise PersistenceFailure(f"Stored value for {key.value} is not valid JSON") from exc

    def _set_json(self, key: StoreKeyEnum, value: Any) -> None:
        self.set_value(key.value, json.dumps(value, ensure_ascii=False))

    def get_credential(self) -> str | None:
        encoded = self.get_value(StoreKeyEnum.credential.value)
        if not encoded:
            return None
        return reveal_credential(encoded)

    def set_credential(self, credential: str) -> None:
        self.set_value(StoreKeyEnum.credential.value, obfuscate_credential(credential))

    def clear_credential(self) -> None:
        self.delete_value(StoreKeyEnum.credential.value)

    def get_projects(self) -> list[Project]:
        data = self._get_json(StoreKeyEnum.projects)
        if data is None:
            return []
        try:
            return _PROJECTS_ADAPTER.validate_python(data)
        except ValidationError as exc:
            raise PersistenceFailure(f"Stored project collection is malformed: {exc}") from exc

    def set_projects(self, projects: list[Project]) -> None:
        self._set_json(StoreKeyEnum.projects, [project.to_store() for project in projects])

    def get_sample_prompts(self) -> list[SamplePrompt]:
        data = self._get_json(StoreKeyEnum.sample_prompts)
        if data is None:
            return []
        try:
            return _SAMPLE_PROMPTS_ADAPTER.validate_python(data)
        except ValidationError as exc:
            raise PersistenceFailure(f"Stored sample prompts are malformed: {exc}") from exc

    def set_sample_prompts(self, prompts: list[SamplePrompt]) -> None:
        self._set_json(StoreKeyEnum.sample_prompts, [prompt.model_dump() for prompt in prompts])

    def get_instrument_presets(self) -> list[InstrumentPreset]:
        data = self._get_json(StoreKeyEnum.instrument_presets)
        if data is None:
            return []
        try:
            return _INSTRUMENT_PRESETS_ADAPTER.validate_python(data)
        except ValidationError as exc:
            raise PersistenceFailure(f"Stored instrument presets are malformed: {exc}") from exc

    def set_instrument_presets(self, presets: list[InstrumentPreset]) -> None:
        self._set_json(StoreKeyEnum.instrument_presets, [preset.model_dump() for preset in presets])

    def get_legibility(self) -> bool:
        return self.get_value(StoreKeyEnum.legibility.value) == "true"

    def set_legibility(self, enabled: bool) -> None:
        self.set_value(StoreKeyEnum.legibility.value, "true" if enabled else "false")


class SqlPersistenceAdapter(PersistenceAdapter):
    def __init__(self, bind: Engine | None = None) -> None:
        self._engine = bind or default_engine
        self._session_factory = build_session_factory(self._engine)
        try:
            init_db(self._engine)
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"Failed to initialize key-value store: {exc}") from exc

    def get_value(self, key: str) -> str | None:
        try:
            with session_scope(self._session_factory) as session:
                return KeyValueRepository(session).get(key)
        except SQLAlchemyError as exc:
            logger.exception("Key-value store read failed", extra={"key": key})
            raise PersistenceFailure(f"Failed to read {key}: {exc}") from exc

    def set_value(self, key: str, value: str) -> None:
        try:
            with session_scope(self._session_factory) as session:
                KeyValueRepository(session).set(key, value)
        except SQLAlchemyError as exc:
            logger.exception("Key-value store write failed", extra={"key": key})
            raise PersistenceFailure(f"Failed to write {key}: {exc}") from exc

    def delete_value(self, key: str) -> None:
        try:
            with session_scope(self._session_factory) as session:
                KeyValueRepository(session).delete(key)
        except SQLAlchemyError as exc:
            logger.exception("Key-value store delete failed", extra={"key": key})
            raise PersistenceFailure(f"Failed to delete {key}: {exc}") from exc


class InMemoryPersistenceAdapter(PersistenceAdapter):
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.values: dict[str, str] = dict(initial or {})

    def get_value(self, key: str) -> str | None:
        return self.values.get(key)

    def set_value(self, key: str, value: str) -> None:
        self.values[key] = value

    def delete_value(self, key: str) -> None:
        self.values.pop(key, None)
