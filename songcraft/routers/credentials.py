from __future__ import annotations

from fastapi import APIRouter, Depends, status

from songcraft.deps import get_verifier
from songcraft.schemas.credentials import CredentialStatusResponse, CredentialTrustState, CredentialVerifyRequest
from songcraft.services.credentials import CredentialVerifier

router = APIRouter(prefix="/credentials", tags=["credentials"])


@router.get("", response_model=CredentialStatusResponse)
def get_credential_status(verifier: CredentialVerifier = Depends(get_verifier)):
    return CredentialStatusResponse(stored=verifier.has_stored_credential(), state=verifier.state)


@router.post("/verify", response_model=CredentialTrustState)
async def verify_credential(
    payload: CredentialVerifyRequest,
    verifier: CredentialVerifier = Depends(get_verifier),
):
    return await verifier.verify(payload.credential)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def delete_credential(verifier: CredentialVerifier = Depends(get_verifier)) -> None:
    verifier.delete_credential()
