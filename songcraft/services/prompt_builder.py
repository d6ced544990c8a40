from __future__ import annotations

import textwrap
from typing import Any, Iterable

from songcraft.config import settings
from songcraft.db.enums import ImageTierEnum
from songcraft.errors import GenerationPreconditionError
from songcraft.llm.client import AudioAnalysisRequest, ImageGenerationRequest, TextGenerationRequest
from songcraft.schemas.generation import (
    ArtDirection,
    IdeaPackOptions,
    IntroStyle,
    LyricsOptions,
    SoundPromptOptions,
)
from songcraft.schemas.project import Project, SongBlock

BASE = "base"
KEYWORDS = "keywords"
STRUCTURE = "structure"
INTRO_STYLE = "intro_style"
REFERENCE = "reference"
STRICT_MODE = "strict_mode"
NEGATIVE_CONSTRAINTS = "negative_constraints"
SIGNATURE = "signature"
INSTRUCTIONS = "instructions"
OUTPUT_FORMAT = "output_format"

NO_EXCLUSIONS_MARKER = "None"
DEFAULT_LYRICS_BPM = 95
SUPPORTED_ASPECT_RATIOS = ("1:1", "3:4", "4:3", "9:16", "16:9")

_ASPECT_RATIO_FALLBACKS = {
    "4:5": "3:4",
    "1.91:1": "16:9",
    "1.9:1": "16:9",
    "21:9": "16:9",
    "1:2": "9:16",
}
_COMPOSITION_ADDONS = {
    "4:5": "Composition framed for 4:5 aspect ratio.",
    "1.91:1": "Wide composition suitable for 1.91:1 link preview.",
    "1.9:1": "Wide composition suitable for 1.91:1 link preview.",
    "21:9": "Cinematic 21:9 aspect ratio composition.",
    "1:2": "Tall 1:2 aspect ratio vertical composition.",
}
_CIRCULAR_ADDON = "Circular vignette composition centered."


class PromptBuilder:
    """Accumulates named instruction fragments and joins them in insertion order."""

    def __init__(self) -> None:
        self._fragments: dict[str, str] = {}

    def add(self, name: str, text: str | None) -> "PromptBuilder":
        if name in self._fragments:
            raise ValueError(f"Prompt fragment already set: {name}")
        cleaned = textwrap.dedent(text or "").strip()
        if cleaned:
            self._fragments[name] = cleaned
        return self

    def has(self, name: str) -> bool:
        return name in self._fragments

    def fragment(self, name: str) -> str | None:
        return self._fragments.get(name)

    @property
    def fragments(self) -> dict[str, str]:
        return dict(self._fragments)

    def build(self) -> str:
        return "\n\n".join(self._fragments.values())


def string_schema() -> dict[str, Any]:
    return {"type": "STRING"}


def array_schema(items: dict[str, Any]) -> dict[str, Any]:
    return {"type": "ARRAY", "items": items}


def object_schema(**properties: dict[str, Any]) -> dict[str, Any]:
    # Every declared property is required so nothing can be dropped silently.
    return {"type": "OBJECT", "properties": dict(properties), "required": list(properties)}


def idea_pack_schema() -> dict[str, Any]:
    return array_schema(object_schema(title=string_schema(), topic=string_schema(), style=string_schema()))


def title_schema() -> dict[str, Any]:
    return array_schema(string_schema())


def reference_schema() -> dict[str, Any]:
    return array_schema(object_schema(song=string_schema(), artist=string_schema()))


def lyric_variation_schema() -> dict[str, Any]:
    return array_schema(object_schema(title=string_schema(), rationale=string_schema(), lyrics=string_schema()))


def serialize_structure(blocks: Iterable[SongBlock]) -> str:
    return "\n".join(f"[{block.type.value}]: {block.description}" for block in blocks)


def structure_fragment(blocks: list[SongBlock], *, scope: str = "") -> str | None:
    if not blocks:
        return None
    suffix = f" {scope}" if scope else ""
    return (
        f"CRITICAL: Follow this Structure strictly in this exact order{suffix}:\n"
        f"{serialize_structure(blocks)}\n"
        f"Every listed block ({len(blocks)} in total) MUST receive content, in exactly the order given. "
        "Do not skip, merge or reorder blocks."
    )


def lyrics_intro_style_fragment(intro_style: IntroStyle | None) -> str | None:
    if intro_style is None:
        return None
    lines = [
        "SPECIAL INTRO INSTRUCTION:",
        f'The user has selected the intro vibe: "{intro_style.label}".',
    ]
    if intro_style.description:
        lines.append(intro_style.description)
    if intro_style.tags:
        lines.append(f"Intro tags: {intro_style.tags}")
    lines.append(
        "Please indicate this vibe in the [Intro] section of the lyrics "
        "(e.g., [Intro: Whisper Narration] or [Intro: Gayageum Solo])."
    )
    return "\n".join(lines)


def sound_intro_style_fragment(intro_style: IntroStyle | None) -> str | None:
    if intro_style is None:
        return None
    return f"Intro Style: {intro_style.tags or intro_style.label}"


def reference_fragment(project: Project) -> str | None:
    if not project.reference_song_title:
        return None
    artist = project.reference_artist or "Unknown Artist"
    return (
        f'Reference Vibe/Flow: Make the result reminiscent of the song "{project.reference_song_title}" '
        f"by {artist}. Capture its emotional tone and rhythmic delivery."
    )


def negative_constraints_fragment(excluded_themes: str | None) -> str:
    excluded = (excluded_themes or "").strip() or NO_EXCLUSIONS_MARKER
    return f"Negative Constraints (DO NOT INCLUDE): {excluded}."


def signature_fragment(signature_name: str | None) -> str | None:
    name = (signature_name or "").strip()
    if not name:
        return None
    return (
        f'IMPORTANT: Include a shoutout to "{name}" in EITHER the [Intro] OR the [Outro]. '
        "Choose ONE location only. Do NOT repeat it."
    )


def strict_lyrics_fragment() -> str:
    return """
        *** STRICT DANCE LYRIC MODE ACTIVATED ***
        OBJECTIVE: Generate lyrics strictly optimized for choreography and dancers (8-count structure).

        1. SYLLABLE COUNT & DISPLAY:
           - You MUST display the syllable count at the end of EVERY line in parentheses.
             Format: "Lyric text here (count)"
           - Target consistent 8 syllables per line for choreo synchronization.
           - Maintain consistent syllable counts within each 4-line block.

        2. 8-COUNT STRUCTURE (VISUAL):
           - Group lyrics strictly into 4-line blocks (representing one 8-count phrase).
           - Add an empty line between every 4-line block.

        3. CONTENT & RHYTHM:
           - Use [Strict Rhythm] (Jeong-bak), a steady, non-syncopated beat.
           - Add [Breath] or an implied pause at the end of lines.
           - Avoid complex sentences, syncopation or rubato.
        """


def strict_sound_fragment() -> str:
    return """
        STRICT DANCE MODE:
        - The beat MUST be constant and steady (Metronomic), with no syncopation.
        - Emphasis on the "1" count.
        - Clear percussion suitable for K-Pop choreography.
        """


def _instrument_list(project: Project) -> str:
    return ", ".join(project.instruments) if project.instruments else "Any"


def build_idea_pack_request(
    project: Project, options: IdeaPackOptions | None = None, *, count: int | None = None
) -> TextGenerationRequest:
    count = count or settings.IDEA_PACK_COUNT
    keywords = (options.keywords if options else "").strip()
    builder = PromptBuilder()
    builder.add(
        BASE,
        f'Generate {count} unique and creative "Song Idea Packs" for a {project.genre} '
        f"({project.sub_genre or 'General'}) song with a {project.mood} mood.",
    )
    if keywords:
        builder.add(
            KEYWORDS,
            f'User Keywords/Themes: "{keywords}".\nPlease prioritize these keywords in the generated concepts.',
        )
    builder.add(
        INSTRUCTIONS,
        """
        Each pack must include:
        1. "title": A catchy English Title (with Korean translation in parentheses), formatted like "Title (제목)".
        2. "topic": A 1-2 sentence description in Korean of the story or scenario.
        3. "style": A 1-2 sentence description in Korean of the musical production, era, and vibe.
        """,
    )
    builder.add(OUTPUT_FORMAT, 'Return ONLY a JSON array of objects with keys "title", "topic", "style".')
    return TextGenerationRequest(
        prompt=builder.build(),
        model=settings.TEXT_MODEL,
        response_schema=idea_pack_schema(),
        fragments=builder.fragments,
    )


def build_title_request(project: Project, *, count: int | None = None) -> TextGenerationRequest:
    if not (project.concept or "").strip():
        raise GenerationPreconditionError("A concept is required before titles can be suggested")
    count = count or settings.TITLE_SUGGESTION_COUNT
    builder = PromptBuilder()
    builder.add(
        BASE,
        f"Suggest {count} catchy and creative song titles for a {project.genre} song.\n"
        f"Topic/Theme: {project.concept}\n"
        f"Mood: {project.mood}",
    )
    builder.add(
        OUTPUT_FORMAT,
        f'Return ONLY a JSON array of {count} strings, each in the format "English Title (한글 제목)".',
    )
    return TextGenerationRequest(
        prompt=builder.build(),
        model=settings.TEXT_MODEL,
        response_schema=title_schema(),
        fragments=builder.fragments,
    )


def build_reference_request(project: Project, *, count: int | None = None) -> TextGenerationRequest:
    count = count or settings.REFERENCE_SUGGESTION_COUNT
    builder = PromptBuilder()
    builder.add(
        BASE,
        f"Suggest {count} popular and characteristic songs that represent the {project.genre} "
        f"({project.sub_genre or 'General'}) genre with a {project.mood} mood.",
    )
    builder.add(OUTPUT_FORMAT, 'Return ONLY a JSON array of objects with keys "song" and "artist".')
    return TextGenerationRequest(
        prompt=builder.build(),
        model=settings.TEXT_MODEL,
        response_schema=reference_schema(),
        fragments=builder.fragments,
    )


def build_lyrics_request(project: Project, options: LyricsOptions | None = None) -> TextGenerationRequest:
    options = options or LyricsOptions()
    builder = PromptBuilder()
    builder.add(
        BASE,
        f'Write lyrics for a {project.genre} song titled "{project.title}".\n'
        f"Mood: {project.mood}.\n"
        f"Style Description: {project.style_description or 'Standard style'}.\n"
        f"BPM: {project.bpm or DEFAULT_LYRICS_BPM}\n"
        f"Language Preference: {options.language}.\n"
        f"Target Duration: {options.target_duration}.",
    )
    builder.add(STRUCTURE, structure_fragment(project.structure))
    builder.add(NEGATIVE_CONSTRAINTS, negative_constraints_fragment(project.excluded_themes))
    if options.strict_dance:
        builder.add(STRICT_MODE, strict_lyrics_fragment())
    builder.add(INTRO_STYLE, lyrics_intro_style_fragment(options.intro_style))
    builder.add(REFERENCE, reference_fragment(project))

    if options.auto_adjust_length:
        duration_line = (
            f"- Target Duration is {options.target_duration}. STRICTLY adjust the number of lines "
            "and stanza length accordingly to match the duration."
        )
    else:
        duration_line = f"- Target Duration is {options.target_duration}."
    instructions = [
        "Instructions:",
        '- Reflect the "Style Description" in the choice of words and emotional tone.',
        duration_line,
        "- Output format: Include the structure tags (e.g., [Verse 1]) before the lyrics for each block.",
    ]
    if project.structure:
        instructions.append(
            "- Output MUST strictly match the defined structure blocks. Generate lyrics for EVERY block in the list."
        )
    builder.add(INSTRUCTIONS, "\n".join(instructions))
    builder.add(SIGNATURE, signature_fragment(project.dj_name))
    return TextGenerationRequest(
        prompt=builder.build(),
        model=settings.LYRICS_MODEL,
        thinking_budget=settings.LYRICS_THINKING_BUDGET,
        fragments=builder.fragments,
    )


def build_variations_request(project: Project, *, count: int | None = None) -> TextGenerationRequest:
    count = count or settings.LYRIC_VARIATION_COUNT
    builder = PromptBuilder()
    builder.add(
        BASE,
        f"Generate {count} distinct and creative lyric concepts for a {project.genre} song.\n"
        f"Topic: {project.concept or 'Freestyle'}\n"
        f"Mood: {project.mood}\n"
        f"Style: {project.style_description or 'Standard'}",
    )
    builder.add(STRUCTURE, structure_fragment(project.structure, scope=f"for all {count} variations"))
    builder.add(NEGATIVE_CONSTRAINTS, negative_constraints_fragment(project.excluded_themes))
    builder.add(REFERENCE, reference_fragment(project))
    builder.add(
        INSTRUCTIONS,
        f"""
        Requirements:
        1. Create {count} different versions (e.g., Emotional, Rhythmic, Story-telling, Minimal, Energetic).
        2. For each version, provide:
           - "title": A catchy title.
           - "rationale": A brief description (in Korean) of the style/vibe.
           - "lyrics": The full lyrics structured with tags like [Verse], [Chorus].
        3. Ensure lyrics are suitable for Suno.ai (musical generation).
        """,
    )
    builder.add(SIGNATURE, signature_fragment(project.dj_name))
    builder.add(OUTPUT_FORMAT, f"Return ONLY a JSON array of {count} objects.")
    return TextGenerationRequest(
        prompt=builder.build(),
        model=settings.TEXT_MODEL,
        response_schema=lyric_variation_schema(),
        fragments=builder.fragments,
    )


def build_sound_prompt_request(project: Project, options: SoundPromptOptions | None = None) -> TextGenerationRequest:
    options = options or SoundPromptOptions()
    if options.suno_version == "v5":
        version_context = "Suno v5 (Latest). Focus on high-fidelity, clarity, and modern production standards."
    else:
        version_context = "Suno.ai v3.5 (Standard)."
    builder = PromptBuilder()
    builder.add(
        BASE,
        f"Construct a high-quality prompt for a music generation AI ({version_context}).\n\n"
        "Project Metadata:\n"
        f"- Genre: {project.genre} ({project.sub_genre or 'General'})\n"
        f"- Mood: {project.mood}\n"
        f"- Style: {project.style_description or 'Standard'}\n"
        f"- Instruments: {_instrument_list(project)}\n"
        f"- Vocal Type: {project.vocal_type}\n"
        f"- BPM: {project.bpm or 'Unspecified'}\n"
        f"- Key: {project.key or 'Unspecified'}",
    )
    if options.strict_dance:
        builder.add(STRICT_MODE, strict_sound_fragment())
    builder.add(INTRO_STYLE, sound_intro_style_fragment(options.intro_style))
    builder.add(REFERENCE, reference_fragment(project))
    builder.add(NEGATIVE_CONSTRAINTS, negative_constraints_fragment(project.excluded_themes))
    builder.add(
        OUTPUT_FORMAT,
        """
        Requirement:
        - Create a comma-separated list of tags and style descriptors.
        - Include genre, mood, key instruments, vocal type, and production style.
        - Format: "[Tag 1], [Tag 2], [Tag 3], ..."
        - Limit to around 200 characters max.
        - Output ONLY the prompt string.
        """,
    )
    return TextGenerationRequest(prompt=builder.build(), model=settings.TEXT_MODEL, fragments=builder.fragments)


def build_composition_advice_request(project: Project) -> TextGenerationRequest:
    builder = PromptBuilder()
    builder.add(
        BASE,
        "Provide professional AI music composition suggestions for a "
        f"{project.genre} ({project.sub_genre or 'General'}) song.\n"
        f"Mood: {project.mood}.\n"
        f"BPM: {project.bpm or 'Unspecified'}.\n"
        f"Key: {project.key or 'Unspecified'}.\n"
        f"Instruments: {_instrument_list(project)}.",
    )
    builder.add(NEGATIVE_CONSTRAINTS, negative_constraints_fragment(project.excluded_themes))
    builder.add(
        INSTRUCTIONS,
        """
        Requirements:
        - Provide structured advice in Korean.
        - Focus on 3 categories:
          1. Rhythmic Patterns (리듬 가이드)
          2. Melodic Style (멜로디 제안)
          3. Harmonic Progression (추천 코드 진행)
        - Be specific to the genre.
        - Keep it concise and actionable for someone creating music in Suno.ai.
        - Format with Markdown.
        """,
    )
    return TextGenerationRequest(prompt=builder.build(), model=settings.TEXT_MODEL, fragments=builder.fragments)


def api_aspect_ratio(ratio: str) -> str:
    cleaned = (ratio or "").strip()
    if cleaned in SUPPORTED_ASPECT_RATIOS:
        return cleaned
    return _ASPECT_RATIO_FALLBACKS.get(cleaned, "1:1")


def build_cover_art_prompt(project: Project, direction: ArtDirection) -> str:
    addon = _CIRCULAR_ADDON if direction.circular else _COMPOSITION_ADDONS.get(direction.target_ratio.strip(), "")
    ratio_label = direction.ratio_label or direction.target_ratio
    lines = [
        "Album cover art for a song.",
        "",
        "[Song Info]",
        f"Genre: {project.genre}",
        "",
        "[Visual Concept]",
        f"Mood: {direction.visual_mood or project.mood}",
        f"Style: {direction.visual_style or 'Digital Art'}",
        f"Subject/Characters: {direction.characters or 'None specified'}",
        "Detailed Description: "
        + (direction.description or "A creative and atmospheric composition representing the music."),
        "",
        "Instructions:",
        "- High quality, creative composition.",
        f"- Target Ratio: {ratio_label} ({api_aspect_ratio(direction.target_ratio)})",
    ]
    if addon:
        lines.append(f"- {addon}")
    lines.append("- Do NOT add text if possible, as it will be added as an overlay.")
    return "\n".join(lines)


def build_cover_art_request(project: Project, direction: ArtDirection) -> ImageGenerationRequest:
    is_pro = direction.tier == ImageTierEnum.pro
    return ImageGenerationRequest(
        prompt=build_cover_art_prompt(project, direction),
        model=settings.PRO_IMAGE_MODEL if is_pro else settings.IMAGE_MODEL,
        aspect_ratio=api_aspect_ratio(direction.target_ratio),
        image_size=direction.image_size if is_pro else None,
    )


TEMPO_PROMPT = (
    "Analyze the tempo of this audio clip. Estimate the BPM (Beats Per Minute). "
    "Return ONLY the integer number (e.g. 120). Do not write any other text."
)


def build_tempo_request(audio: bytes, mime_type: str) -> AudioAnalysisRequest:
    if not audio:
        raise GenerationPreconditionError("Audio clip is empty")
    if len(audio) > settings.TEMPO_AUDIO_MAX_BYTES:
        raise GenerationPreconditionError(
            f"Audio clip exceeds the {settings.TEMPO_AUDIO_MAX_BYTES} byte limit"
        )
    if not mime_type or not mime_type.startswith("audio/"):
        raise GenerationPreconditionError(f"Unsupported audio mime type: {mime_type or 'unknown'}")
    return AudioAnalysisRequest(prompt=TEMPO_PROMPT, model=settings.AUDIO_MODEL, audio=audio, mime_type=mime_type)
