# backend/guest_invite/services/authorization.py
"""
Who may send invites.

Evaluated once per inbound invite request; the decision is never cached.
Denials are plain values (status + reason). Graph failures while looking the
caller up are NOT denials: they propagate as GraphRequestError /
GraphTransportError and are reported as such.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from guest_invite.core.config import Settings
from guest_invite.core.security import get_caller_object_id
from guest_invite.services.graph import GraphClient

logger = logging.getLogger("guest_invite.authorization")

MODE_LOCAL_BYPASS = "local_bypass"
MODE_ENTRA_AUTHENTICATED = "entra_authenticated"

MEMBER_USER_TYPE = "Member"

REASON_NO_PRINCIPAL = (
    "Unauthorized. Enable App Service Authentication and call this API as a signed-in internal user."
)
REASON_NO_OBJECT_ID = "Unauthorized. Caller object ID claim is missing."
REASON_INACTIVE = "Forbidden. Caller account is not active."
REASON_NOT_MEMBER = "Forbidden. Only tenant Member users can send invites."
REASON_MISCONFIGURED = "Server misconfiguration. ALLOWED_INVITER_GROUP_OBJECT_IDS must be set in Azure."
REASON_NOT_IN_GROUP = "Forbidden. Caller is not in the allowed inviter group."


@dataclass(frozen=True)
class CallerIdentity:
    id: Optional[str]
    user_type: Optional[str]
    account_enabled: Optional[bool] = None
    display_name: Optional[str] = None
    user_principal_name: Optional[str] = None

    @classmethod
    def from_graph(cls, user: Dict[str, Any]) -> "CallerIdentity":
        return cls(
            id=user.get("id"),
            user_type=user.get("userType"),
            account_enabled=user.get("accountEnabled"),
            display_name=user.get("displayName"),
            user_principal_name=user.get("userPrincipalName"),
        )


LOCAL_DEV_CALLER = CallerIdentity(id="local-dev", user_type=MEMBER_USER_TYPE)


@dataclass(frozen=True)
class AuthorizationDecision:
    authorized: bool
    mode: Optional[str] = None
    status: Optional[int] = None
    reason: Optional[str] = None
    caller: Optional[CallerIdentity] = None


def _deny(status: int, reason: str) -> AuthorizationDecision:
    return AuthorizationDecision(authorized=False, status=status, reason=reason)


def authorize_inviter(
    principal: Optional[dict],
    graph: GraphClient,
    settings: Settings,
) -> AuthorizationDecision:
    in_azure = settings.is_azure_runtime

    if not in_azure and settings.allow_local_anonymous_invite:
        return AuthorizationDecision(authorized=True, mode=MODE_LOCAL_BYPASS, caller=LOCAL_DEV_CALLER)

    group_ids = settings.allowed_group_ids()
    enforce = settings.enforce_group_membership_in_azure

    # Fail closed before looking at the caller at all.
    if in_azure and enforce and not group_ids:
        logger.error("ALLOWED_INVITER_GROUP_OBJECT_IDS is empty while group enforcement is on")
        return _deny(500, REASON_MISCONFIGURED)

    if not principal:
        return _deny(401, REASON_NO_PRINCIPAL)

    caller_oid = get_caller_object_id(principal)
    if not caller_oid:
        return _deny(401, REASON_NO_OBJECT_ID)

    user = graph.get_user(caller_oid)
    if not user or not user.get("id") or user.get("accountEnabled") is False:
        logger.info("Inviter rejected: inactive or unknown caller oid=%s", caller_oid)
        return _deny(403, REASON_INACTIVE)

    caller = CallerIdentity.from_graph(user)
    if caller.user_type != MEMBER_USER_TYPE:
        logger.info("Inviter rejected: userType=%s oid=%s", caller.user_type, caller_oid)
        return _deny(403, REASON_NOT_MEMBER)

    if group_ids and (not in_azure or enforce):
        matched = graph.check_member_groups(caller_oid, group_ids)
        if not matched:
            logger.info("Inviter rejected: not in allowed groups oid=%s", caller_oid)
            return _deny(403, REASON_NOT_IN_GROUP)

    return AuthorizationDecision(authorized=True, mode=MODE_ENTRA_AUTHENTICATED, caller=caller)
