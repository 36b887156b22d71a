# backend/guest_invite/services/invitations.py
"""
Server side of a single invite: authorize the caller, create the Graph
invitation, stamp the guest-source extension attribute on the new user.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from guest_invite.core.config import Settings
from guest_invite.core.errors import (
    AuthorizationDenied,
    GuestInviteError,
    InviteErrorCode,
    InviteValidationError,
)
from guest_invite.core.security import TOKEN_CONTEXT_CLAIMS, decode_token_claims, pick_claims
from guest_invite.schemas import InviteGuestRequest, InviteGuestResponse, InviterSummary
from guest_invite.services.authorization import authorize_inviter
from guest_invite.services.bulk_parser import (
    display_name_for,
    is_valid_email,
    is_valid_redirect_url,
    normalize_email,
)
from guest_invite.services.graph import GraphClient

logger = logging.getLogger("guest_invite.invitations")


def build_graph_invitation(req: InviteGuestRequest, settings: Settings) -> Dict[str, Any]:
    """
    Graph `POST /invitations` body for one request.

    Display name falls back to "first last", then to the email itself. The
    message info block is only sent when Graph is asked to send the email.
    """
    email = normalize_email(req.email)
    display_name = (
        (req.display_name or "").strip()
        or display_name_for((req.first_name or "").strip(), (req.last_name or "").strip())
        or email
    )
    send_message = req.send_email if isinstance(req.send_email, bool) else True
    message_body = (req.customized_message_body or "").strip()
    message_language = (req.message_language or "").strip() or settings.default_message_language

    body: Dict[str, Any] = {
        "invitedUserEmailAddress": email,
        "invitedUserDisplayName": display_name,
        "inviteRedirectUrl": req.resolved_redirect_url() or settings.default_redirect_url,
        "sendInvitationMessage": send_message,
    }

    if send_message:
        message_info: Dict[str, Any] = {"messageLanguage": message_language}
        if message_body:
            message_info["customizedMessageBody"] = message_body
        body["invitedUserMessageInfo"] = message_info

    if req.reset_redemption is True:
        body["resetRedemption"] = True

    return body


def validate_invite_request(req: InviteGuestRequest) -> None:
    email = normalize_email(req.email)
    if not email:
        raise InviteValidationError("email is required")
    if not is_valid_email(email):
        raise InviteValidationError("email is not a valid address")

    redirect = req.resolved_redirect_url()
    if redirect is not None and not is_valid_redirect_url(redirect):
        raise InviteValidationError(
            "inviteRedirectUrl must be an https URL (http is only allowed for localhost)"
        )


def invite_guest(
    req: InviteGuestRequest,
    *,
    principal: Optional[dict],
    graph: GraphClient,
    settings: Settings,
) -> InviteGuestResponse:
    validate_invite_request(req)

    token_context = pick_claims(decode_token_claims(graph.access_token()), TOKEN_CONTEXT_CLAIMS)

    decision = authorize_inviter(principal, graph, settings)
    if not decision.authorized:
        raise AuthorizationDenied(decision.reason or "Forbidden.", status_code=decision.status or 403)

    invitation_body = build_graph_invitation(req, settings)
    invitation = graph.create_invitation(invitation_body)

    invited_user_id = (invitation.get("invitedUser") or {}).get("id")
    if not invited_user_id:
        raise GuestInviteError(
            "Invite succeeded but invitedUser.id not returned",
            status_code=500,
            code=InviteErrorCode.INVITE_INCOMPLETE,
            extra={"invitation": invitation},
        )

    graph.update_user(
        invited_user_id,
        {settings.guest_source_extension_attribute: settings.guest_source_value},
    )

    logger.info(
        "Guest invited and stamped invited_user_id=%s mode=%s inviter=%s",
        invited_user_id,
        decision.mode,
        decision.caller.id if decision.caller else None,
    )

    caller = decision.caller
    return InviteGuestResponse(
        invited_user_id=invited_user_id,
        email=invitation_body["invitedUserEmailAddress"],
        guest_source=settings.guest_source_value,
        invite_redeem_url=invitation.get("inviteRedeemUrl"),
        inviter_authorization_mode=decision.mode or "",
        inviter=InviterSummary(
            id=caller.id if caller else None,
            user_type=caller.user_type if caller else None,
            user_principal_name=caller.user_principal_name if caller else None,
        ),
        runtime=graph.runtime_mode,
        az_client_id_configured=graph.az_client_id_configured,
        token_context=token_context,
    )
