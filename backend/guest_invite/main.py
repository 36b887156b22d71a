# backend/guest_invite/main.py

import logging
import time
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from guest_invite.core.config import settings
from guest_invite.core.errors import GuestInviteError, InviteErrorCode, install_request_id_logging
from guest_invite.core.request_context import (
    client_ip,
    incoming_request_id,
    request_id_for,
    set_request_id,
)

LOG_FORMAT = "%(levelname)s %(name)s request_id=%(request_id)s %(message)s"


def _configure_logging() -> None:
    """
    Every record gets a request_id attribute, including records from azure /
    urllib3 loggers that never pass through RequestIdFilter.
    """
    base_factory = logging.getLogRecordFactory()

    def factory(*args, **kwargs):
        record = base_factory(*args, **kwargs)
        if not hasattr(record, "request_id"):
            record.request_id = "-"
        return record

    logging.setLogRecordFactory(factory)
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    install_request_id_logging()

    # azure-identity logs each token request at INFO
    logging.getLogger("azure").setLevel(logging.WARNING)


_configure_logging()
logger = logging.getLogger("guest_invite")

logger.info(
    "Startup: environment=%s azure_runtime=%s local_bypass=%s allowed_groups=%s enforce_groups=%s docs=%s",
    settings.environment,
    settings.is_azure_runtime,
    settings.allow_local_anonymous_invite and not settings.is_azure_runtime,
    len(settings.allowed_group_ids()),
    settings.enforce_group_membership_in_azure,
    settings.enable_docs,
)

app = FastAPI(
    title="Guest Invite API",
    openapi_url="/api/v1/openapi.json" if settings.enable_docs else None,
    docs_url="/api/v1/docs" if settings.enable_docs else None,
    redoc_url="/api/v1/redoc" if settings.enable_docs else None,
)


# --- Error contract ---
# Every error body carries code, message, error (same text as message),
# request_id and detail={code, message}; the same id goes out as X-Request-ID.

def error_body(code: str, message: str, request_id: str, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "code": code,
        "message": message,
        "error": message,
        "request_id": request_id,
        "detail": {"code": code, "message": message},
    }
    body.update(extra or {})
    return body


def _respond(status_code: int, body: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=body, headers=headers)
    resp.headers["X-Request-ID"] = body["request_id"]
    return resp


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    rid = request_id_for(request)
    code = f"HTTP_{exc.status_code}"

    if isinstance(exc.detail, dict):
        message = exc.detail.get("message")
        if not isinstance(message, str) or not message.strip():
            message = "Request failed."
        detail = {"code": code, "message": message, **exc.detail}
        body = error_body(code, message, rid, {"detail": detail})
    else:
        message = exc.detail if isinstance(exc.detail, str) else "Request failed."
        body = error_body(code, message, rid)

    return _respond(exc.status_code, body, getattr(exc, "headers", None))


@app.exception_handler(GuestInviteError)
async def guest_invite_error_handler(request: Request, exc: GuestInviteError):
    body = error_body(exc.code.value, exc.message, request_id_for(request), exc.extra)
    return _respond(exc.status_code, body)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    body = error_body(
        InviteErrorCode.VALIDATION_ERROR.value,
        "Validation error. Check request body/query parameters.",
        request_id_for(request),
        {"errors": jsonable_encoder(exc.errors())},
    )
    return _respond(422, body)


# --- Request id, timing, access log ---

@app.middleware("http")
async def request_observability(request: Request, call_next):
    rid = incoming_request_id(request)
    request.state.request_id = rid
    set_request_id(rid)

    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers["X-Request-ID"] = rid
        return response
    except Exception:
        logger.exception("Unhandled error method=%s path=%s", request.method, request.url.path)
        return _respond(500, error_body(InviteErrorCode.INTERNAL_ERROR.value, "Internal Server Error", rid))
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        log = logger.warning if elapsed_ms >= settings.slow_http_ms else logger.info
        log(
            "req method=%s path=%s status=%s duration_ms=%.2f ip=%s ua=%s",
            request.method,
            request.url.path,
            status_code,
            elapsed_ms,
            client_ip(request),
            (request.headers.get("user-agent") or "-").replace(" ", "_")[:200],
        )
        set_request_id(None)


allowed_origins = settings.origins_list()
logger.info("CORS allow_origins=%s", allowed_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Routers ---
from guest_invite.api.v1 import bulk_preview, health, invite_guest, session, whoami  # noqa: E402
from guest_invite.schemas import InviteGuestResponse  # noqa: E402

for module in (invite_guest, bulk_preview, whoami, session, health):
    app.include_router(module.router, prefix="/api/v1")

# Existing clients still POST to the old function URL.
app.add_api_route(
    "/api/inviteguest",
    invite_guest.create_invite,
    methods=["POST"],
    response_model=InviteGuestResponse,
    include_in_schema=False,
)


@app.get("/", include_in_schema=False)
def root():
    if settings.enable_docs:
        return RedirectResponse(url="/api/v1/docs")
    return {"status": "Guest Invite API is running. See /api/v1/health."}
