# backend/guest_invite/api/v1/session.py

from typing import Optional

from fastapi import APIRouter, Depends

from guest_invite.api.deps import get_client_principal
from guest_invite.schemas import SessionResponse

router = APIRouter(prefix="/session", tags=["session"])


@router.get("", response_model=SessionResponse)
def session(principal: Optional[dict] = Depends(get_client_principal)):
    """Is the browser signed in through App Service Authentication, and as whom."""
    if not principal:
        return SessionResponse(signed_in=False)
    return SessionResponse(
        signed_in=True,
        user=principal.get("userDetails") or principal.get("userId"),
        identity_provider=principal.get("identityProvider") or principal.get("auth_typ"),
    )
