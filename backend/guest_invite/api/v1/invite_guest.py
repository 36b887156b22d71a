# backend/guest_invite/api/v1/invite_guest.py

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status

from guest_invite.api.deps import get_client_principal, get_graph_client, get_settings
from guest_invite.core.config import Settings
from guest_invite.core.errors import GuestInviteError, log_exception_with_context
from guest_invite.schemas import InviteGuestRequest, InviteGuestResponse
from guest_invite.services.graph import GraphClient
from guest_invite.services.invitations import invite_guest

logger = logging.getLogger("guest_invite")

# main.py mounts this under /api/v1 => POST /api/v1/invite-guest
router = APIRouter(prefix="/invite-guest", tags=["invites"])


@router.post(
    "",
    response_model=InviteGuestResponse,
    status_code=status.HTTP_200_OK,
)
def create_invite(
    payload: InviteGuestRequest,
    principal: Optional[dict] = Depends(get_client_principal),
    graph: GraphClient = Depends(get_graph_client),
    settings: Settings = Depends(get_settings),
):
    """
    Invite one external guest and stamp the guest-source attribute.

    The caller is authorized first (Member account, allowed group); see
    services/authorization.py for the full decision procedure.
    """
    try:
        return invite_guest(payload, principal=principal, graph=graph, settings=settings)
    except GuestInviteError as exc:
        exc.extra.setdefault("runtime", graph.runtime_mode)
        exc.extra.setdefault("azClientIdConfigured", graph.az_client_id_configured)
        if exc.status_code >= 500:
            log_exception_with_context(
                "InviteGuest failed",
                extra={"path": "/api/v1/invite-guest", "method": "POST", "status": exc.status_code},
            )
        else:
            logger.info("InviteGuest rejected status=%s code=%s", exc.status_code, exc.code.value)
        raise
