from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Optional

from fastapi import Request
from jose import JWTError, jwt

CLIENT_PRINCIPAL_HEADER = "x-ms-client-principal"

OBJECT_ID_CLAIM = "http://schemas.microsoft.com/identity/claims/objectidentifier"
OBJECT_ID_SHORT_CLAIM = "oid"

# Only these claims ever leave the process in diagnostics.
TOKEN_CONTEXT_CLAIMS = ("aud", "tid", "appid", "oid", "roles")
WHOAMI_CLAIMS = ("aud", "appid", "oid", "tid", "roles", "iss")


def decode_client_principal(raw: Optional[str]) -> Optional[dict]:
    """
    Decode the App Service Authentication principal header.

    The header is base64(JSON) and is injected by the hosting perimeter after
    it has validated the session; we never see (or check) a signature here.
    Returns None when the header is absent or malformed.
    """
    if not raw:
        return None

    try:
        decoded = base64.b64decode(raw).decode("utf-8")
        principal = json.loads(decoded)
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None

    return principal if isinstance(principal, dict) else None


def get_client_principal(request: Request) -> Optional[dict]:
    """FastAPI dependency: decoded caller principal or None."""
    return decode_client_principal(request.headers.get(CLIENT_PRINCIPAL_HEADER))


def get_claim_value(principal: Optional[dict], claim_name: str) -> Optional[str]:
    claims = (principal or {}).get("claims")
    if not isinstance(claims, list):
        return None
    for claim in claims:
        if isinstance(claim, dict) and claim.get("typ") == claim_name:
            return claim.get("val") or None
    return None


def get_caller_object_id(principal: Optional[dict]) -> Optional[str]:
    """Directory object id: full claim URI, then `oid`, then the principal's userId."""
    return (
        get_claim_value(principal, OBJECT_ID_CLAIM)
        or get_claim_value(principal, OBJECT_ID_SHORT_CLAIM)
        or (principal or {}).get("userId")
        or None
    )


def decode_token_claims(token: Optional[str]) -> Optional[dict[str, Any]]:
    """
    Read the claims of a Graph access token WITHOUT verifying it.

    Only used to report which identity/app the service is calling Graph as.
    """
    if not token or not isinstance(token, str):
        return None
    try:
        return jwt.get_unverified_claims(token)
    except JWTError:
        return None


def pick_claims(claims: Optional[dict[str, Any]], names: tuple[str, ...]) -> Optional[dict[str, Any]]:
    if not claims:
        return None
    picked: dict[str, Any] = {name: claims.get(name) for name in names}
    if "roles" in picked:
        picked["roles"] = claims.get("roles") or []
    return picked
