# backend/guest_invite/schemas.py
"""
Wire shapes for the HTTP API.

The invite endpoint speaks camelCase JSON (it replaced an Azure Function the
existing clients were written against), so models use a camelCase alias
generator and accept either spelling on input.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ---------- Invite ----------

class InviteGuestRequest(CamelModel):
    email: Optional[str] = None
    display_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    # Three historical spellings of the same thing; first non-empty wins.
    redirect_url: Optional[str] = None
    invite_redirect_url: Optional[str] = None
    invite_redirect_url_legacy: Optional[str] = Field(default=None, alias="inviteRedirectURL")

    send_email: Optional[bool] = None
    customized_message_body: Optional[str] = None
    message_language: Optional[str] = None
    reset_redemption: Optional[bool] = None

    def resolved_redirect_url(self) -> Optional[str]:
        for candidate in (self.redirect_url, self.invite_redirect_url, self.invite_redirect_url_legacy):
            if candidate and candidate.strip():
                return candidate.strip()
        return None


class InviterSummary(CamelModel):
    id: Optional[str] = None
    user_type: Optional[str] = None
    user_principal_name: Optional[str] = None


class InviteGuestResponse(CamelModel):
    status: Literal["invited_and_stamped"] = "invited_and_stamped"
    invited_user_id: str
    email: str
    guest_source: str
    invite_redeem_url: Optional[str] = None
    inviter_authorization_mode: str
    inviter: InviterSummary
    runtime: Optional[str] = None
    az_client_id_configured: bool = False
    token_context: Optional[Dict[str, Any]] = None


# ---------- Diagnostics ----------

class WhoAmIResponse(CamelModel):
    runtime: str
    az_client_id_configured: bool
    token_claims: Optional[Dict[str, Any]] = None
    organization: Optional[Dict[str, Any]] = None


class SessionResponse(CamelModel):
    signed_in: bool
    user: Optional[str] = None
    identity_provider: Optional[str] = None


# ---------- Bulk parse preview ----------

class PreviewEntry(CamelModel):
    email: str
    first_name: str = ""
    last_name: str = ""
    display_name: str = ""
    redirect_url: str
    send_email: Optional[bool] = None
    customized_message_body: str = ""


class ParsePreviewResponse(CamelModel):
    format: Literal["manual", "template"]
    source: str
    valid_rows: int
    invalid_rows: List[str] = Field(default_factory=list)
    over_limit: bool = False
    entries: List[PreviewEntry] = Field(default_factory=list)
