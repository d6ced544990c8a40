from __future__ import annotations

import asyncio
import logging
from typing import Mapping

from songcraft.config import settings
from songcraft.db.enums import CapabilityClassEnum, CapabilityStatusEnum, TrustStatusEnum
from songcraft.errors import (
    CredentialMissingError,
    CredentialProbeFailure,
    CredentialVerificationFailure,
    GenerationError,
    PersistenceFailure,
)
from songcraft.llm.client import GenerationBackend
from songcraft.persistence import PersistenceAdapter
from songcraft.schemas.credentials import CredentialTrustState

logger = logging.getLogger(__name__)


def derive_trust_status(capabilities: Mapping[CapabilityClassEnum, CapabilityStatusEnum]) -> TrustStatusEnum:
    text = capabilities.get(CapabilityClassEnum.text)
    if text != CapabilityStatusEnum.available:
        return TrustStatusEnum.failure
    image = capabilities.get(CapabilityClassEnum.image)
    pro_image = capabilities.get(CapabilityClassEnum.pro_image)
    if image == CapabilityStatusEnum.available and pro_image == CapabilityStatusEnum.available:
        return TrustStatusEnum.full_success
    return TrustStatusEnum.partial_success


def _failed_state() -> CredentialTrustState:
    return CredentialTrustState(
        status=TrustStatusEnum.failure,
        capabilities={capability: CapabilityStatusEnum.unavailable for capability in CapabilityClassEnum},
    )


class CredentialVerifier:
    """
    Probes a candidate credential against every capability class concurrently and
    keeps the resulting trust state. The credential is only ever stored from here.
    """

    def __init__(self, backend: GenerationBackend, persistence: PersistenceAdapter) -> None:
        self._backend = backend
        self._persistence = persistence
        self._session_credential: str | None = None
        self.state = CredentialTrustState()

    async def verify(self, credential: str) -> CredentialTrustState:
        self.state = CredentialTrustState(
            status=TrustStatusEnum.testing,
            capabilities={capability: CapabilityStatusEnum.probing for capability in CapabilityClassEnum},
        )
        capability_order = list(CapabilityClassEnum)
        try:
            if not credential or not credential.strip():
                raise CredentialVerificationFailure("Credential is empty")
            results = await asyncio.gather(
                *(self._probe(credential, capability) for capability in capability_order)
            )
        except Exception:  # noqa: BLE001
            logger.exception("Credential verification run failed")
            self.state = _failed_state()
            return self.state

        capabilities = dict(zip(capability_order, results))
        status = derive_trust_status(capabilities)
        persisted = False
        if status != TrustStatusEnum.failure:
            persisted = self._store(credential)
        self.state = CredentialTrustState(status=status, capabilities=capabilities, persisted=persisted)
        logger.info(
            "Credential verification finished",
            extra={"status": status.value, "capabilities": {k.value: v.value for k, v in capabilities.items()}},
        )
        return self.state

    async def _probe(self, credential: str, capability: CapabilityClassEnum) -> CapabilityStatusEnum:
        try:
            await self._backend.probe_capability(credential, capability)
        except (CredentialProbeFailure, GenerationError) as exc:
            logger.info("Capability unavailable", extra={"capability": capability.value, "reason": str(exc)})
            return CapabilityStatusEnum.unavailable
        except Exception:  # noqa: BLE001
            logger.exception("Capability probe raised unexpectedly", extra={"capability": capability.value})
            return CapabilityStatusEnum.unavailable
        return CapabilityStatusEnum.available

    def _store(self, credential: str) -> bool:
        self._session_credential = credential
        try:
            self._persistence.set_credential(credential)
        except PersistenceFailure:
            logger.warning("Verified credential kept in memory only; store write failed")
            return False
        return True

    def has_stored_credential(self) -> bool:
        try:
            return self._persistence.get_credential() is not None
        except PersistenceFailure:
            logger.warning("Could not read stored credential")
            return self._session_credential is not None

    def delete_credential(self) -> None:
        self._session_credential = None
        try:
            self._persistence.clear_credential()
        except PersistenceFailure:
            logger.warning("Stored credential could not be removed from the store")
        self.reset()

    def reset(self) -> None:
        self.state = CredentialTrustState()

    def resolve_credential(self) -> str:
        if self._session_credential:
            return self._session_credential
        try:
            stored = self._persistence.get_credential()
        except PersistenceFailure:
            logger.warning("Could not read stored credential; falling back to configuration")
            stored = None
        if stored:
            return stored
        if settings.GEMINI_API_KEY:
            return settings.GEMINI_API_KEY
        raise CredentialMissingError("No verified credential is stored and GEMINI_API_KEY is not configured")
