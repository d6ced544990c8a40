from songcraft.schemas.credentials import CredentialStatusResponse, CredentialTrustState, CredentialVerifyRequest
from songcraft.schemas.generation import (
    ArtDirection,
    IdeaPack,
    IdeaPackOptions,
    IntroStyle,
    LyricsOptions,
    ReferenceSuggestion,
    SoundPromptOptions,
)
from songcraft.schemas.presets import InstrumentPreset, SamplePrompt
from songcraft.schemas.project import LyricVariation, Project, ProjectSeed, SongBlock

__all__ = [
    "ArtDirection",
    "CredentialStatusResponse",
    "CredentialTrustState",
    "CredentialVerifyRequest",
    "IdeaPack",
    "IdeaPackOptions",
    "InstrumentPreset",
    "IntroStyle",
    "LyricVariation",
    "LyricsOptions",
    "Project",
    "ProjectSeed",
    "ReferenceSuggestion",
    "SamplePrompt",
    "SongBlock",
    "SoundPromptOptions",
]
