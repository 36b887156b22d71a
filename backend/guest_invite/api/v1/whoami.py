# backend/guest_invite/api/v1/whoami.py

"""
Diagnostics: which identity is this service calling Graph as, and for which
tenant. Always on locally; in App Service only when ENABLE_WHOAMI=true.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from guest_invite.api.deps import get_graph_client, get_settings
from guest_invite.core.config import Settings
from guest_invite.core.errors import GuestInviteError, log_exception_with_context
from guest_invite.core.security import WHOAMI_CLAIMS, decode_token_claims, pick_claims
from guest_invite.schemas import WhoAmIResponse
from guest_invite.services.graph import GraphClient

logger = logging.getLogger("guest_invite.whoami")

router = APIRouter(prefix="/whoami", tags=["diagnostics"])


@router.get("", response_model=WhoAmIResponse)
def whoami(
    graph: GraphClient = Depends(get_graph_client),
    settings: Settings = Depends(get_settings),
):
    if not settings.whoami_enabled:
        raise HTTPException(status_code=404, detail="Not found")

    try:
        claims = decode_token_claims(graph.access_token())
        organization = graph.get_organization()
    except GuestInviteError as exc:
        exc.extra.setdefault("runtime", graph.runtime_mode)
        exc.extra.setdefault("azClientIdConfigured", graph.az_client_id_configured)
        log_exception_with_context("whoami failed", extra={"path": "/api/v1/whoami"})
        raise

    return WhoAmIResponse(
        runtime=graph.runtime_mode,
        az_client_id_configured=graph.az_client_id_configured,
        token_claims=pick_claims(claims, WHOAMI_CLAIMS),
        organization=organization,
    )
