from __future__ import annotations

import pytest

from songcraft.config import settings
from songcraft.db.enums import BlockTypeEnum, ImageTierEnum
from songcraft.errors import GenerationPreconditionError
from songcraft.schemas.generation import ArtDirection, IdeaPackOptions, IntroStyle, LyricsOptions, SoundPromptOptions
from songcraft.schemas.project import Project, SongBlock
from songcraft.services import prompt_builder as pb


def _project(**overrides) -> Project:
    data = {"title": "Neon Nights", "genre": "K-Pop", "sub_genre": "Dance Pop", "mood": "Energetic"}
    data.update(overrides)
    return Project(**data)


def _structure() -> list[SongBlock]:
    return [
        SongBlock(type=BlockTypeEnum.intro, description="Synth swell", duration=4),
        SongBlock(type=BlockTypeEnum.chorus, description="Hook first"),
        SongBlock(type=BlockTypeEnum.verse, description="Storytelling"),
        SongBlock(type=BlockTypeEnum.outro, description="Fade", duration=4),
    ]


def _intro_style() -> IntroStyle:
    return IntroStyle(id="whisper", label="Whisper Narration", description="Soft spoken opening", tags="whisper, spoken word")


def test_builder_joins_fragments_in_insertion_order_and_skips_empty():
    builder = pb.PromptBuilder()
    builder.add(pb.BASE, "first").add(pb.REFERENCE, None).add(pb.INSTRUCTIONS, "  second  ")

    assert builder.has(pb.BASE)
    assert not builder.has(pb.REFERENCE)
    assert builder.build() == "first\n\nsecond"


def test_builder_rejects_duplicate_fragment():
    builder = pb.PromptBuilder().add(pb.BASE, "one")
    with pytest.raises(ValueError):
        builder.add(pb.BASE, "two")


def test_structure_is_serialized_in_exact_order():
    request = pb.build_lyrics_request(_project(structure=_structure()))

    fragment = request.fragments[pb.STRUCTURE]
    lines = [line for line in fragment.splitlines() if line.startswith("[")]
    assert lines == [
        "[Intro]: Synth swell",
        "[Chorus]: Hook first",
        "[Verse]: Storytelling",
        "[Outro]: Fade",
    ]
    assert "exact order" in fragment
    assert "MUST receive content" in fragment


def test_structure_fragment_absent_without_blocks():
    request = pb.build_lyrics_request(_project())
    assert pb.STRUCTURE not in request.fragments


def test_negative_constraints_default_to_none_marker():
    request = pb.build_lyrics_request(_project())
    assert request.fragments[pb.NEGATIVE_CONSTRAINTS] == "Negative Constraints (DO NOT INCLUDE): None."

    request = pb.build_lyrics_request(_project(excluded_themes="breakups"))
    assert "breakups" in request.fragments[pb.NEGATIVE_CONSTRAINTS]


@pytest.mark.parametrize(
    "build",
    [
        lambda p: pb.build_variations_request(p),
        lambda p: pb.build_sound_prompt_request(p),
        lambda p: pb.build_composition_advice_request(p),
    ],
)
def test_negative_constraints_always_present(build):
    request = build(_project())
    assert pb.NO_EXCLUSIONS_MARKER in request.fragments[pb.NEGATIVE_CONSTRAINTS]


def test_intro_style_is_its_own_fragment():
    request = pb.build_lyrics_request(
        _project(structure=_structure()), LyricsOptions(intro_style=_intro_style())
    )

    assert "whisper, spoken word" in request.fragments[pb.INTRO_STYLE]
    assert "whisper, spoken word" not in request.fragments[pb.STRUCTURE]

    sound = pb.build_sound_prompt_request(_project(), SoundPromptOptions(intro_style=_intro_style()))
    assert sound.fragments[pb.INTRO_STYLE] == "Intro Style: whisper, spoken word"


def test_reference_fragment_only_when_reference_set():
    assert pb.REFERENCE not in pb.build_lyrics_request(_project()).fragments

    request = pb.build_lyrics_request(_project(reference_song_title="Hype Boy", reference_artist="NewJeans"))
    assert '"Hype Boy" by NewJeans' in request.fragments[pb.REFERENCE]


def test_strict_dance_lyrics_require_syllable_counts():
    relaxed = pb.build_lyrics_request(_project())
    strict = pb.build_lyrics_request(_project(), LyricsOptions(strict_dance=True))

    assert pb.STRICT_MODE not in relaxed.fragments
    fragment = strict.fragments[pb.STRICT_MODE]
    assert "syllable count" in fragment
    assert "4-line blocks" in fragment
    assert "non-syncopated" in fragment


def test_strict_dance_sound_prompt_is_on_by_default():
    request = pb.build_sound_prompt_request(_project())
    assert "Metronomic" in request.fragments[pb.STRICT_MODE]

    relaxed = pb.build_sound_prompt_request(_project(), SoundPromptOptions(strict_dance=False))
    assert pb.STRICT_MODE not in relaxed.fragments


def test_signature_requires_exactly_one_location():
    request = pb.build_lyrics_request(_project(dj_name="DJ Seoul"))

    fragment = request.fragments[pb.SIGNATURE]
    assert '"DJ Seoul"' in fragment
    assert "EITHER the [Intro] OR the [Outro]" in fragment
    assert "ONE location only" in fragment

    assert pb.SIGNATURE not in pb.build_lyrics_request(_project(dj_name="  ")).fragments


def test_lyrics_request_defaults():
    request = pb.build_lyrics_request(_project())

    assert request.model == settings.LYRICS_MODEL
    assert request.thinking_budget == settings.LYRICS_THINKING_BUDGET
    assert request.response_schema is None
    assert "BPM: 95" in request.fragments[pb.BASE]
    assert "Standard style" in request.fragments[pb.BASE]

    tuned = pb.build_lyrics_request(_project(bpm=128), LyricsOptions(auto_adjust_length=True))
    assert "BPM: 128" in tuned.fragments[pb.BASE]
    assert "STRICTLY adjust" in tuned.fragments[pb.INSTRUCTIONS]


def test_structured_requests_require_every_field():
    variations = pb.build_variations_request(_project())
    schema = variations.response_schema
    assert variations.is_structured
    assert schema["type"] == "ARRAY"
    assert schema["items"]["required"] == ["title", "rationale", "lyrics"]

    ideas = pb.build_idea_pack_request(_project())
    assert ideas.response_schema["items"]["required"] == ["title", "topic", "style"]

    references = pb.build_reference_request(_project())
    assert references.response_schema["items"]["required"] == ["song", "artist"]


def test_idea_pack_keywords_fragment():
    plain = pb.build_idea_pack_request(_project())
    assert pb.KEYWORDS not in plain.fragments

    request = pb.build_idea_pack_request(_project(), IdeaPackOptions(keywords="rain, subway"))
    assert '"rain, subway"' in request.fragments[pb.KEYWORDS]
    assert f"Generate {settings.IDEA_PACK_COUNT}" in request.prompt


def test_title_request_requires_concept():
    with pytest.raises(GenerationPreconditionError):
        pb.build_title_request(_project(concept="   "))

    request = pb.build_title_request(_project(concept="Late night city drive"))
    assert "Late night city drive" in request.prompt
    assert request.response_schema == {"type": "ARRAY", "items": {"type": "STRING"}}


def test_sound_prompt_version_context():
    v5 = pb.build_sound_prompt_request(_project())
    legacy = pb.build_sound_prompt_request(_project(), SoundPromptOptions(suno_version="v3.5"))

    assert "Suno v5" in v5.fragments[pb.BASE]
    assert "v3.5" in legacy.fragments[pb.BASE]
    assert v5.response_schema is None


@pytest.mark.parametrize(
    "ratio,expected",
    [("1:1", "1:1"), ("16:9", "16:9"), ("4:5", "3:4"), ("1.91:1", "16:9"), ("21:9", "16:9"), ("1:2", "9:16"), ("7:3", "1:1")],
)
def test_api_aspect_ratio_mapping(ratio, expected):
    assert pb.api_aspect_ratio(ratio) == expected


def test_cover_art_request_standard_and_pro_tiers():
    project = _project()
    standard = pb.build_cover_art_request(project, ArtDirection(target_ratio="4:5"))
    assert standard.model == settings.IMAGE_MODEL
    assert standard.aspect_ratio == "3:4"
    assert standard.image_size is None
    assert "Composition framed for 4:5 aspect ratio." in standard.prompt

    pro = pb.build_cover_art_request(project, ArtDirection(tier=ImageTierEnum.pro, image_size="2K", circular=True))
    assert pro.model == settings.PRO_IMAGE_MODEL
    assert pro.image_size == "2K"
    assert "Circular vignette" in pro.prompt


def test_tempo_request_validates_audio():
    with pytest.raises(GenerationPreconditionError):
        pb.build_tempo_request(b"", "audio/mpeg")
    with pytest.raises(GenerationPreconditionError):
        pb.build_tempo_request(b"x" * (settings.TEMPO_AUDIO_MAX_BYTES + 1), "audio/mpeg")
    with pytest.raises(GenerationPreconditionError):
        pb.build_tempo_request(b"abc", "text/plain")

    request = pb.build_tempo_request(b"abc", "audio/wav")
    assert request.model == settings.AUDIO_MODEL
    assert request.audio == b"abc"
