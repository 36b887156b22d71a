# backend/guest_invite/services/invite_payload.py
from typing import Any, Dict

from guest_invite.services.bulk_parser import InviteEntry


def build_invite_payload(entry: InviteEntry) -> Dict[str, Any]:
    """
    Map an entry to the JSON body the invite endpoint accepts.

    Optional keys are omitted rather than sent as null/false so the backend
    applies its own defaults. The redirect URL goes out under both spellings
    the endpoint has historically read.
    """
    body: Dict[str, Any] = {
        "email": entry.email,
        "displayName": entry.display_name or "",
    }

    if entry.first_name:
        body["firstName"] = entry.first_name
    if entry.last_name:
        body["lastName"] = entry.last_name
    if entry.redirect_url:
        body["inviteRedirectUrl"] = entry.redirect_url
        body["inviteRedirectURL"] = entry.redirect_url
    if isinstance(entry.send_email, bool):
        body["sendEmail"] = entry.send_email
    if entry.custom_message:
        body["customizedMessageBody"] = entry.custom_message
    if isinstance(entry.reset_redemption, bool):
        body["resetRedemption"] = entry.reset_redemption

    return body
