from enum import Enum


class CapabilityClassEnum(str, Enum):
    text = "text"
    image = "image"
    pro_image = "pro_image"


class CapabilityStatusEnum(str, Enum):
    untested = "untested"
    probing = "probing"
    available = "available"
    unavailable = "unavailable"


class TrustStatusEnum(str, Enum):
    idle = "idle"
    testing = "testing"
    full_success = "full_success"
    partial_success = "partial_success"
    failure = "failure"


class BlockTypeEnum(str, Enum):
    intro = "Intro"
    verse = "Verse"
    chorus = "Chorus"
    bridge = "Bridge"
    drop = "Drop"
    instrumental = "Instrumental"
    outro = "Outro"


class ImageTierEnum(str, Enum):
    standard = "standard"
    pro = "pro"


class GenerationFacetEnum(str, Enum):
    ideas = "ideas"
    titles = "titles"
    references = "references"
    lyrics = "lyrics"
    variations = "variations"
    sound_prompt = "sound_prompt"
    composition_advice = "composition_advice"
    cover_art = "cover_art"
    tempo = "tempo"


class StoreKeyEnum(str, Enum):
    credential = "suno_pro_api_key"
    projects = "suno_projects"
    sample_prompts = "suno_custom_prompts"
    instrument_presets = "suno_instrument_presets"
    legibility = "suno_legibility_mode"
