# backend/guest_invite/core/request_context.py
from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import Request

REQUEST_ID_HEADERS = ("x-request-id", "x-correlation-id", "x-ms-request-id")
MAX_REQUEST_ID_LENGTH = 128

request_id_var: ContextVar[Optional[str]] = ContextVar("guest_invite_request_id", default=None)


def set_request_id(rid: str | None) -> None:
    request_id_var.set(rid)


def get_request_id() -> str:
    return request_id_var.get() or "-"


def new_request_id() -> str:
    return uuid.uuid4().hex


def incoming_request_id(request: Request) -> str:
    """Reuse a correlation id from the front end / caller when one is sent."""
    for header in REQUEST_ID_HEADERS:
        value = (request.headers.get(header) or "").strip()
        if value:
            return value[:MAX_REQUEST_ID_LENGTH]
    return new_request_id()


def request_id_for(request: Request) -> str:
    """Id assigned by the middleware, else the context var, else a fresh one."""
    rid = getattr(request.state, "request_id", None)
    if isinstance(rid, str) and rid:
        return rid
    current = get_request_id()
    return current if current != "-" else new_request_id()


def client_ip(request: Request) -> str:
    forwarded = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    if forwarded:
        # App Service appends the port
        return forwarded.rsplit(":", 1)[0] if forwarded.count(":") == 1 else forwarded
    return request.client.host if request.client else "unknown"
