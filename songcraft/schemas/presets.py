from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class SamplePrompt(BaseModel):
    label: str = Field(min_length=1)
    text: str = Field(min_length=1)


class InstrumentPreset(BaseModel):
    name: str = Field(min_length=1)
    instruments: list[str] = Field(min_length=1)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Preset name must not be blank")
        return cleaned


class InstrumentPresetCreateRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str = Field(min_length=1)
    project_id: str


class LegibilityPayload(BaseModel):
    enabled: bool
