import asyncio
import io
import os
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("STORE_DB_URL", "sqlite:///./test_songcraft.db")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import pytest  # noqa: E402
from PIL import Image  # noqa: E402

from songcraft.db.enums import CapabilityClassEnum, StoreKeyEnum  # noqa: E402
from songcraft.errors import CredentialProbeFailure, PersistenceFailure  # noqa: E402
from songcraft.llm.client import GenerationBackend, ResponsePart  # noqa: E402
from songcraft.persistence import InMemoryPersistenceAdapter, obfuscate_credential  # noqa: E402
from songcraft.schemas.project import ProjectSeed  # noqa: E402
from songcraft.services.credentials import CredentialVerifier  # noqa: E402
from songcraft.services.generation import GenerationService  # noqa: E402
from songcraft.services.projects import ProjectService  # noqa: E402

STORED_CREDENTIAL = "stored-test-key"


def png_bytes(width: int = 4, height: int = 2) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 40, 90)).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeBackend(GenerationBackend):
    """Scriptable backend; an exception instance in any slot is raised instead of returned."""

    def __init__(self) -> None:
        self.probe_outcomes: dict[CapabilityClassEnum, object] = {
            capability: True for capability in CapabilityClassEnum
        }
        self.text_response: object = ""
        self.image_parts: object = []
        self.tempo_response: object = ""
        self.probe_calls: list[tuple[str, CapabilityClassEnum]] = []
        self.text_requests = []
        self.image_requests = []
        self.audio_requests = []
        self.credentials_seen: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def probe_capability(self, credential, capability):
        self.probe_calls.append((credential, capability))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0.01)
        finally:
            self.in_flight -= 1
        outcome = self.probe_outcomes[capability]
        if isinstance(outcome, BaseException):
            raise outcome
        if not outcome:
            raise CredentialProbeFailure(capability.value, "permission denied")

    async def generate_text(self, credential, request):
        self.credentials_seen.append(credential)
        self.text_requests.append(request)
        if isinstance(self.text_response, BaseException):
            raise self.text_response
        return self.text_response

    async def generate_image(self, credential, request):
        self.credentials_seen.append(credential)
        self.image_requests.append(request)
        if isinstance(self.image_parts, BaseException):
            raise self.image_parts
        return list(self.image_parts)

    async def analyze_audio_for_tempo(self, credential, request):
        self.credentials_seen.append(credential)
        self.audio_requests.append(request)
        if isinstance(self.tempo_response, BaseException):
            raise self.tempo_response
        return self.tempo_response


class RecordingPersistence(InMemoryPersistenceAdapter):
    def __init__(self, initial=None) -> None:
        super().__init__(initial)
        self.writes: list[tuple[str, str]] = []

    def set_value(self, key, value):
        self.writes.append((key, value))
        super().set_value(key, value)


class FailingPersistence(InMemoryPersistenceAdapter):
    """Reads succeed against the seeded values; every write fails."""

    def set_value(self, key, value):
        raise PersistenceFailure(f"disk full while writing {key}")

    def delete_value(self, key):
        raise PersistenceFailure(f"disk full while deleting {key}")


@pytest.fixture()
def backend():
    return FakeBackend()


@pytest.fixture()
def persistence():
    return RecordingPersistence({StoreKeyEnum.credential.value: obfuscate_credential(STORED_CREDENTIAL)})


@pytest.fixture()
def verifier(backend, persistence):
    return CredentialVerifier(backend, persistence)


@pytest.fixture()
def projects(persistence):
    return ProjectService(persistence)


@pytest.fixture()
def generation(backend, verifier, projects):
    return GenerationService(backend, verifier, projects)


@pytest.fixture()
def project(projects):
    return projects.create_project(
        ProjectSeed(title="Neon Nights", genre="K-Pop", sub_genre="Dance Pop", mood="Energetic")
    )


@pytest.fixture()
def sample_png():
    return png_bytes()


@pytest.fixture()
def image_part(sample_png):
    return ResponsePart(data=sample_png, mime_type="image/png")
