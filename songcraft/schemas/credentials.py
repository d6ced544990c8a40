from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from songcraft.db.enums import CapabilityClassEnum, CapabilityStatusEnum, TrustStatusEnum


def _initial_capabilities() -> dict[CapabilityClassEnum, CapabilityStatusEnum]:
    return {capability: CapabilityStatusEnum.untested for capability in CapabilityClassEnum}


class CredentialTrustState(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status: TrustStatusEnum = TrustStatusEnum.idle
    capabilities: dict[CapabilityClassEnum, CapabilityStatusEnum] = Field(default_factory=_initial_capabilities)
    persisted: bool = False

    @property
    def can_proceed(self) -> bool:
        return self.status in (TrustStatusEnum.full_success, TrustStatusEnum.partial_success)

    def unavailable_capabilities(self) -> list[CapabilityClassEnum]:
        return [
            capability
            for capability, status in self.capabilities.items()
            if status == CapabilityStatusEnum.unavailable
        ]


class CredentialVerifyRequest(BaseModel):
    credential: str = Field(min_length=1)


class CredentialStatusResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    stored: bool
    state: CredentialTrustState
