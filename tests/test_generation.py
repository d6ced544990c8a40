from __future__ import annotations

import asyncio
import json

import pytest

from songcraft.config import settings
from songcraft.db.enums import BlockTypeEnum, GenerationFacetEnum, ImageTierEnum
from songcraft.errors import (
    CredentialMissingError,
    GenerationBackendError,
    GenerationEmptyError,
    GenerationInvalidValueError,
    GenerationNoImageError,
    GenerationParseError,
    GenerationPreconditionError,
)
from songcraft.llm.client import ResponsePart
from songcraft.persistence import InMemoryPersistenceAdapter
from songcraft.schemas.generation import ArtDirection, IdeaPackOptions, LyricsOptions
from songcraft.schemas.project import LyricVariation, ProjectSeed
from songcraft.services.credentials import CredentialVerifier
from songcraft.services.generation import GenerationService
from songcraft.services.projects import ProjectService
from tests.conftest import STORED_CREDENTIAL, FakeBackend


def _variation_payload(count: int) -> list[dict]:
    return [{"title": f"Take {i}", "rationale": "버전 설명", "lyrics": f"[Verse]\nline {i}"} for i in range(count)]


def test_variations_replace_list_and_reset_selection(generation, projects, project, backend):
    projects.replace_variations(
        project.id, [LyricVariation(title="old", rationale="r", lyrics="old lyrics")] * 5
    )
    projects.apply_variation(project.id, 3)
    backend.text_response = json.dumps(_variation_payload(5), ensure_ascii=False)

    outcome = asyncio.run(generation.generate_variations(project.id))

    assert outcome.applied
    assert outcome.facet == GenerationFacetEnum.variations
    assert [v.title for v in outcome.project.lyric_variations] == [f"Take {i}" for i in range(5)]
    assert outcome.project.selected_lyric_variation_index is None
    assert backend.credentials_seen == [STORED_CREDENTIAL]
    assert backend.text_requests[0].is_structured


def test_malformed_variation_entry_leaves_project_unchanged(generation, projects, project, backend):
    projects.replace_variations(project.id, [LyricVariation(title="keep", rationale="r", lyrics="keep me")])
    before = projects.get_project(project.id)
    payload = _variation_payload(4) + [{"title": "Broken", "rationale": "no lyrics"}]
    backend.text_response = json.dumps(payload)

    with pytest.raises(GenerationParseError):
        asyncio.run(generation.generate_variations(project.id))

    assert projects.get_project(project.id) == before


def test_cover_art_text_only_response_keeps_artwork(generation, projects, project, backend):
    projects.update_project(project.id, {"coverImage": "data:image/png;base64,OLD"})
    backend.image_parts = [ResponsePart(text="Sorry, no image this time")]

    with pytest.raises(GenerationNoImageError):
        asyncio.run(generation.generate_cover_art(project.id, ArtDirection()))

    assert projects.get_project(project.id).cover_image == "data:image/png;base64,OLD"


def test_cover_art_stores_data_url(generation, project, backend, image_part):
    backend.image_parts = [ResponsePart(text="caption"), image_part]

    outcome = asyncio.run(
        generation.generate_cover_art(project.id, ArtDirection(tier=ImageTierEnum.pro, image_size="4K"))
    )

    assert outcome.applied
    assert outcome.project.cover_image == outcome.value.data_url
    assert outcome.project.cover_image.startswith("data:image/png;base64,")
    assert backend.image_requests[0].model == settings.PRO_IMAGE_MODEL
    assert backend.image_requests[0].image_size == "4K"


def test_cover_art_prompt_only_mode_skips_backend(generation, project, backend):
    prompt = generation.cover_art_prompt(project.id, ArtDirection(visual_style="Watercolor"))

    assert "Style: Watercolor" in prompt
    assert backend.image_requests == []


def test_tempo_detection_applies_bpm(generation, project, backend):
    backend.tempo_response = "the tempo is 128 bpm"

    outcome = asyncio.run(generation.detect_tempo(project.id, b"RIFF....", "audio/wav"))

    assert outcome.value == 128
    assert outcome.project.bpm == 128


def test_tempo_detection_invalid_value_keeps_bpm(generation, projects, project, backend):
    projects.update_project(project.id, {"bpm": 100})
    backend.tempo_response = "unable to determine"

    with pytest.raises(GenerationInvalidValueError):
        asyncio.run(generation.detect_tempo(project.id, b"RIFF....", "audio/wav"))

    assert projects.get_project(project.id).bpm == 100


def test_oversized_audio_never_reaches_backend(generation, project, backend):
    with pytest.raises(GenerationPreconditionError):
        asyncio.run(generation.detect_tempo(project.id, b"x" * (settings.TEMPO_AUDIO_MAX_BYTES + 1), "audio/mpeg"))

    assert backend.audio_requests == []


def test_lyrics_apply_and_report_structure_violations(generation, projects, project, backend):
    projects.insert_block(project.id, BlockTypeEnum.verse)
    projects.insert_block(project.id, BlockTypeEnum.chorus)
    backend.text_response = "[Verse 1]\nhello\n"

    outcome = asyncio.run(generation.generate_lyrics(project.id, LyricsOptions(strict_dance=True)))

    assert outcome.project.lyrics == "[Verse 1]\nhello"
    assert [(v.block_type, v.reason) for v in outcome.violations] == [(BlockTypeEnum.chorus, "missing")]


def test_empty_free_text_response_is_rejected(generation, projects, project, backend):
    backend.text_response = "   "

    with pytest.raises(GenerationEmptyError):
        asyncio.run(generation.generate_sound_prompt(project.id))

    assert projects.get_project(project.id).sound_prompt == ""


def test_backend_failure_propagates_typed_error(generation, projects, project, backend):
    backend.text_response = GenerationBackendError("Gemini call failed (500)", status_code=500)
    before = projects.get_project(project.id)

    with pytest.raises(GenerationBackendError):
        asyncio.run(generation.generate_composition_advice(project.id))

    assert projects.get_project(project.id) == before


def test_titles_are_stored_and_ideas_are_not_applied(generation, projects, project, backend):
    projects.update_project(project.id, {"concept": "Late night drive"})
    backend.text_response = json.dumps(["Starlight (별빛)", "Neon Run (네온 런)"], ensure_ascii=False)

    titles = asyncio.run(generation.suggest_titles(project.id))
    assert titles.project.generated_titles == ["Starlight (별빛)", "Neon Run (네온 런)"]

    backend.text_response = json.dumps([{"title": "A (가)", "topic": "t", "style": "s"}], ensure_ascii=False)
    ideas = asyncio.run(generation.suggest_idea_packs(project.id, IdeaPackOptions(keywords="rain")))
    assert not ideas.applied
    assert ideas.value[0].title == "A (가)"
    assert projects.get_project(project.id).title == "Neon Nights"


def test_missing_credential_raises_before_backend_call(monkeypatch):
    monkeypatch.setattr(settings, "GEMINI_API_KEY", None)
    backend = FakeBackend()
    persistence = InMemoryPersistenceAdapter()
    projects = ProjectService(persistence)
    project = projects.create_project(ProjectSeed(title="T", genre="G", mood="M"))
    service = GenerationService(backend, CredentialVerifier(backend, persistence), projects)

    with pytest.raises(CredentialMissingError):
        asyncio.run(service.generate_composition_advice(project.id))

    assert backend.text_requests == []


class GatedBackend(FakeBackend):
    def __init__(self, responses: list[str]) -> None:
        super().__init__()
        self.responses = responses
        self.gates: list[asyncio.Event] = []

    async def generate_text(self, credential, request):
        index = len(self.text_requests)
        self.text_requests.append(request)
        gate = asyncio.Event()
        self.gates.append(gate)
        await gate.wait()
        return self.responses[index]


def test_stale_completion_is_not_applied(persistence):
    backend = GatedBackend(["first prompt", "second prompt"])
    projects = ProjectService(persistence)
    project = projects.create_project(ProjectSeed(title="T", genre="G", mood="M"))
    service = GenerationService(backend, CredentialVerifier(backend, persistence), projects)

    async def scenario():
        earlier = asyncio.create_task(service.generate_sound_prompt(project.id))
        later = asyncio.create_task(service.generate_sound_prompt(project.id))
        while len(backend.gates) < 2:
            await asyncio.sleep(0)
        backend.gates[1].set()
        later_outcome = await later
        backend.gates[0].set()
        earlier_outcome = await earlier
        return earlier_outcome, later_outcome

    earlier_outcome, later_outcome = asyncio.run(scenario())

    assert later_outcome.applied and not later_outcome.stale
    assert earlier_outcome.stale and not earlier_outcome.applied
    assert earlier_outcome.value == "first prompt"
    assert projects.get_project(project.id).sound_prompt == "second prompt"


def test_lyrics_violations_use_structure_from_request_time(persistence):
    backend = GatedBackend(["[Verse 1]\nhello"])
    projects = ProjectService(persistence)
    project = projects.create_project(ProjectSeed(title="T", genre="G", mood="M"))
    projects.insert_block(project.id, BlockTypeEnum.verse)
    _, chorus = projects.insert_block(project.id, BlockTypeEnum.chorus)
    service = GenerationService(backend, CredentialVerifier(backend, persistence), projects)

    async def scenario():
        task = asyncio.create_task(service.generate_lyrics(project.id))
        while not backend.gates:
            await asyncio.sleep(0)
        projects.remove_block(project.id, chorus.id)
        backend.gates[0].set()
        return await task

    outcome = asyncio.run(scenario())

    assert [(v.position, v.block_type, v.reason) for v in outcome.violations] == [
        (1, BlockTypeEnum.chorus, "missing")
    ]
    assert [b.type for b in outcome.project.structure] == [BlockTypeEnum.verse]


def test_deleting_project_drops_its_generation_sequence(generation, projects, project, backend):
    backend.text_response = "advice"
    asyncio.run(generation.generate_composition_advice(project.id))
    assert project.id in generation._sequence

    generation.delete_project(project.id)

    assert project.id not in generation._sequence
    assert projects.list_projects() == []
