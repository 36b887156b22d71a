# backend/guest_invite/core/errors.py

from __future__ import annotations

from enum import Enum
import logging
from typing import Any, Optional

from guest_invite.core.request_context import get_request_id

logger = logging.getLogger("guest_invite")


class InviteErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    SERVER_MISCONFIGURED = "SERVER_MISCONFIGURED"
    GRAPH_REQUEST_FAILED = "GRAPH_REQUEST_FAILED"
    GRAPH_UNREACHABLE = "GRAPH_UNREACHABLE"
    INVITE_INCOMPLETE = "INVITE_INCOMPLETE"
    BULK_REJECTED = "BULK_REJECTED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class GuestInviteError(Exception):
    """
    Base for every error the service turns into a JSON response.

    status_code/code/message feed the standard error contract in main.py;
    `extra` is merged into the top level of that payload.
    """

    status_code: int = 500
    code: InviteErrorCode = InviteErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        code: Optional[InviteErrorCode] = None,
        extra: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.extra: dict[str, Any] = dict(extra or {})


class InviteValidationError(GuestInviteError):
    status_code = 400
    code = InviteErrorCode.VALIDATION_ERROR


class AuthorizationDenied(GuestInviteError):
    """Terminal for the request; status is whatever the decision carried (401/403/500)."""

    code = InviteErrorCode.FORBIDDEN

    def __init__(self, message: str, *, status_code: int, extra: Optional[dict[str, Any]] = None) -> None:
        if status_code == 401:
            code = InviteErrorCode.UNAUTHORIZED
        elif status_code >= 500:
            code = InviteErrorCode.SERVER_MISCONFIGURED
        else:
            code = InviteErrorCode.FORBIDDEN
        super().__init__(message, status_code=status_code, code=code, extra=extra)


class GraphRequestError(GuestInviteError):
    """Microsoft Graph answered with a non-2xx status."""

    code = InviteErrorCode.GRAPH_REQUEST_FAILED

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        details: Any = None,
        request_id: Optional[str] = None,
        client_request_id: Optional[str] = None,
        www_authenticate: Optional[str] = None,
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.details = details
        self.request_id = request_id
        self.client_request_id = client_request_id
        self.www_authenticate = www_authenticate
        self.extra.update(
            {
                "details": details,
                "requestId": request_id,
                "clientRequestId": client_request_id,
                "wwwAuthenticate": www_authenticate,
            }
        )


class GraphTransportError(GuestInviteError):
    """Graph could not be reached (connection failure or timeout)."""

    status_code = 502
    code = InviteErrorCode.GRAPH_UNREACHABLE


class BulkSubmissionError(GuestInviteError):
    """A bulk batch was rejected as a whole before anything was sent."""

    status_code = 400
    code = InviteErrorCode.BULK_REJECTED


class RequestIdFilter(logging.Filter):
    """Stamps the current request id (or "-") onto each record it sees."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        return True


def install_request_id_logging(logger_name: str = "guest_invite", *, include_root: bool = True) -> None:
    """Attach RequestIdFilter once, after basicConfig, so formats may use %(request_id)s."""
    request_filter = RequestIdFilter()
    targets = [logging.getLogger(logger_name)]
    if include_root:
        targets.append(logging.getLogger())
    for target in targets:
        target.addFilter(request_filter)


def log_exception_with_context(message: str, *, extra: Optional[dict[str, Any]] = None) -> None:
    """
    logger.exception for the error being handled, with a `context` dict
    (request id plus whatever the caller adds) attached to the record.

    Only call from inside an `except` block:

        except GraphRequestError:
            log_exception_with_context("Invite failed", extra={"status": 403})
            raise
    """
    context: dict[str, Any] = {"request_id": get_request_id(), **(extra or {})}
    logger.exception("%s context=%s", message, context, extra={"context": context})
