from __future__ import annotations

import json

import pytest
from sqlalchemy import select

from songcraft.db.base import build_engine, build_session_factory, session_scope
from songcraft.db.enums import BlockTypeEnum, StoreKeyEnum
from songcraft.db.models import StoreEntry
from songcraft.errors import PersistenceFailure
from songcraft.persistence import (
    InMemoryPersistenceAdapter,
    SqlPersistenceAdapter,
    obfuscate_credential,
    reveal_credential,
)
from songcraft.schemas.presets import InstrumentPreset, SamplePrompt
from songcraft.schemas.project import LyricVariation, Project, SongBlock


@pytest.fixture()
def sql_adapter(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'store.db'}")
    return SqlPersistenceAdapter(engine)


def _rich_project() -> Project:
    return Project(
        title="Neon Nights",
        genre="K-Pop",
        sub_genre="Dance Pop",
        mood="Energetic",
        style_description="Y2K synths",
        bpm=124,
        key="F# minor",
        concept="막차를 놓친 밤",
        generated_titles=["Neon Nights (네온의 밤)"],
        structure=[
            SongBlock(type=BlockTypeEnum.intro, description="Synth swell", duration=4),
            SongBlock(type=BlockTypeEnum.chorus, description="Hook", duration=16),
        ],
        lyrics="[Chorus]\nla la",
        excluded_themes="breakups",
        sound_prompt="[K-Pop], [Synthwave]",
        cover_image="data:image/png;base64,AAAA",
        composition_advice="## 리듬 가이드",
        lyric_variations=[LyricVariation(title="A", rationale="r", lyrics="[Chorus]\nla la")],
        selected_lyric_variation_index=0,
        instruments=["Synth", "808"],
        vocal_type="Female",
        dj_name="DJ Seoul",
        intro_style="whisper",
        reference_song_title="Hype Boy",
        reference_artist="NewJeans",
    )


def test_credential_is_obfuscated_in_store():
    adapter = InMemoryPersistenceAdapter()

    adapter.set_credential("AIza-secret")

    raw = adapter.values[StoreKeyEnum.credential.value]
    assert raw != "AIza-secret"
    assert reveal_credential(raw) == "AIza-secret"
    assert adapter.get_credential() == "AIza-secret"

    adapter.clear_credential()
    assert adapter.get_credential() is None


def test_corrupt_credential_raises_persistence_failure():
    adapter = InMemoryPersistenceAdapter({StoreKeyEnum.credential.value: "***"})
    with pytest.raises(PersistenceFailure):
        adapter.get_credential()


def test_projects_round_trip_through_sql_store(sql_adapter):
    original = [_rich_project(), Project(title="Second", genre="Rock", mood="Dark")]

    sql_adapter.set_projects(original)
    loaded = sql_adapter.get_projects()

    assert loaded == original
    sql_adapter.set_projects(loaded)
    assert sql_adapter.get_projects() == original


def test_projects_are_stored_with_camel_case_keys():
    adapter = InMemoryPersistenceAdapter()
    adapter.set_projects([_rich_project()])

    stored = json.loads(adapter.values[StoreKeyEnum.projects.value])

    assert stored[0]["sunoPrompt"] == "[K-Pop], [Synthwave]"
    assert stored[0]["selectedLyricVariationIndex"] == 0
    assert stored[0]["structure"][0]["type"] == "Intro"


def test_malformed_project_collection_raises():
    adapter = InMemoryPersistenceAdapter({StoreKeyEnum.projects.value: json.dumps([{"title": "no genre"}])})
    with pytest.raises(PersistenceFailure):
        adapter.get_projects()


def test_sql_store_write_is_visible_to_next_read(sql_adapter, tmp_path):
    sql_adapter.set_credential("key-1")
    sql_adapter.set_credential("key-2")

    assert sql_adapter.get_credential() == "key-2"

    factory = build_session_factory(build_engine(f"sqlite:///{tmp_path / 'store.db'}"))
    with session_scope(factory) as session:
        rows = session.scalars(select(StoreEntry)).all()
    assert [row.key for row in rows] == [StoreKeyEnum.credential.value]
    assert rows[0].value == obfuscate_credential("key-2")

    sql_adapter.clear_credential()
    assert sql_adapter.get_credential() is None


def test_presets_and_legibility_round_trip(sql_adapter):
    prompts = [SamplePrompt(label="Retro", text="[80s synth], [gated reverb]")]
    presets = [InstrumentPreset(name="  Band  ", instruments=["Guitar", "Drums"])]

    sql_adapter.set_sample_prompts(prompts)
    sql_adapter.set_instrument_presets(presets)
    sql_adapter.set_legibility(True)

    assert sql_adapter.get_sample_prompts() == prompts
    assert sql_adapter.get_instrument_presets()[0].name == "Band"
    assert sql_adapter.get_legibility() is True

    sql_adapter.set_legibility(False)
    assert sql_adapter.get_legibility() is False


def test_missing_keys_read_as_defaults(sql_adapter):
    assert sql_adapter.get_credential() is None
    assert sql_adapter.get_projects() == []
    assert sql_adapter.get_sample_prompts() == []
    assert sql_adapter.get_instrument_presets() == []
    assert sql_adapter.get_legibility() is False
