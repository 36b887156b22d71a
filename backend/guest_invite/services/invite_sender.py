# backend/guest_invite/services/invite_sender.py
"""
Client side: submit invite entries to the invite endpoint.

Bulk submissions go out strictly one at a time, in input order, and a failed
row never stops the batch. The 100-row cap and the per-call timeout assume
sequential submission.

Responses are reduced to a small set of string fields before anything is
shown to the operator; everything else the backend returns is dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional

import requests
from requests import RequestException

from guest_invite.core.config import Settings
from guest_invite.core.errors import BulkSubmissionError
from guest_invite.services.bulk_parser import (
    MAX_NAME_LENGTH,
    BulkDefaults,
    BulkFormat,
    InviteEntry,
    ParseResult,
    detect_bulk_format,
    display_name_for,
    is_valid_email,
    is_valid_redirect_url,
    normalize_email,
    parse_bulk,
    sanitize_name,
)
from guest_invite.services.invite_payload import build_invite_payload

logger = logging.getLogger("guest_invite.sender")

DEFAULT_TIMEOUT_SECONDS = 12.0
MAX_BULK_INVITES = 100
MAX_BACKEND_TEXT = 280
SAFE_FIELDS = ("message", "status", "code", "error", "detail")

TIMEOUT_MESSAGE = "Request timed out. Try again."
NETWORK_MESSAGE = "Network request failed. Check connection and API URL."


def safe_response(payload: Any) -> Optional[Dict[str, str]]:
    """Keep only string-valued message/status/code/error/detail, or None."""
    if not isinstance(payload, dict):
        return None
    safe = {k: payload[k] for k in SAFE_FIELDS if isinstance(payload.get(k), str)}
    return safe or None


@dataclass
class InviteOutcome:
    email: str
    ok: bool
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def error(self) -> Optional[str]:
        if self.ok:
            return None
        return self.data.get("error") or "Invite failed"


@dataclass
class BulkResult:
    source: str
    total_rows: int
    valid_rows: int
    invalid_rows: List[str]
    invited: int
    failed: int
    failures: List[Dict[str, str]]

    @property
    def ok(self) -> bool:
        return self.failed == 0 and not self.invalid_rows

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "totalRows": self.total_rows,
            "validRows": self.valid_rows,
            "invalidRows": list(self.invalid_rows),
            "invited": self.invited,
            "failed": self.failed,
            "failures": list(self.failures),
        }


def prepare_bulk(
    text: str,
    defaults: BulkDefaults,
    bulk_format: Optional[BulkFormat] = None,
) -> ParseResult:
    """
    Parse bulk input for submission. Manual rows take their redirect URL from
    `defaults`, so it has to be valid before any row is looked at.
    """
    fmt = bulk_format or detect_bulk_format(text)
    if fmt == BulkFormat.MANUAL and not is_valid_redirect_url(defaults.redirect_url):
        raise BulkSubmissionError("Please enter a valid redirect URL for bulk invites.")
    return parse_bulk(text, defaults, fmt)


def check_bulk_size(entries: List[InviteEntry], max_rows: int = MAX_BULK_INVITES) -> None:
    if not entries:
        raise BulkSubmissionError("No valid rows found. Upload Entra CSV or add manual rows.")
    if len(entries) > max_rows:
        raise BulkSubmissionError(f"Bulk invite limit is {max_rows} rows per submission.")


class InviteSender:
    def __init__(
        self,
        api_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_bulk_invites: int = MAX_BULK_INVITES,
        max_name_length: int = MAX_NAME_LENGTH,
        headers: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not is_valid_redirect_url(api_url):
            raise ValueError(f"Invite API URL is not a valid https URL: {api_url!r}")
        self.api_url = api_url
        self.timeout = timeout
        self.max_bulk_invites = max_bulk_invites
        self.max_name_length = max_name_length
        self.headers = dict(headers or {})
        self.session = session or requests.Session()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        api_url: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None,
    ) -> "InviteSender":
        url = api_url or settings.invite_api_url
        if not url:
            raise ValueError("INVITE_API_URL is not configured")
        return cls(
            url,
            timeout=settings.invite_timeout_seconds,
            max_bulk_invites=settings.max_bulk_invites,
            max_name_length=settings.max_name_length,
            headers=headers,
            session=session,
        )

    def send_invite(self, entry: InviteEntry) -> InviteOutcome:
        try:
            resp = self.session.post(
                self.api_url,
                json=build_invite_payload(entry),
                headers={"Content-Type": "application/json", **self.headers},
                timeout=self.timeout,
            )
        except requests.Timeout:
            logger.warning("Invite timed out email=%s timeout=%s", entry.email, self.timeout)
            return InviteOutcome(entry.email, False, {"error": TIMEOUT_MESSAGE})
        except RequestException as exc:
            logger.warning("Invite transport error email=%s error=%s", entry.email, exc)
            return InviteOutcome(entry.email, False, {"error": NETWORK_MESSAGE})

        text = resp.text or ""
        try:
            parsed = resp.json() if text else None
        except ValueError:
            parsed = None
        safe = safe_response(parsed)

        if not resp.ok:
            data: Dict[str, Any] = dict(safe or {})
            data["error"] = (safe or {}).get("error") or (
                f"Invite failed with HTTP {resp.status_code}. Check API permissions and payload format."
            )
            if text:
                data["backendResponse"] = text[:MAX_BACKEND_TEXT]
            logger.info("Invite rejected email=%s status=%s", entry.email, resp.status_code)
            return InviteOutcome(entry.email, False, data)

        return InviteOutcome(entry.email, True, safe or {"message": "Invite sent."})

    def send_single(
        self,
        email: str,
        *,
        redirect_url: str,
        first_name: str = "",
        last_name: str = "",
        send_email: bool = True,
        custom_message: str = "",
        reset_redemption: bool = False,
    ) -> InviteOutcome:
        """Validate one hand-entered guest and send it; invalid input never hits the network."""
        normalized_email = normalize_email(email)
        first = sanitize_name(first_name, self.max_name_length)
        last = sanitize_name(last_name, self.max_name_length)
        redirect = (redirect_url or "").strip()

        if not is_valid_email(normalized_email):
            return InviteOutcome(normalized_email, False, {"error": "Please enter a valid guest email."})
        if not is_valid_redirect_url(redirect):
            return InviteOutcome(normalized_email, False, {"error": "Please enter a valid redirect URL."})

        return self.send_invite(
            InviteEntry(
                email=normalized_email,
                first_name=first,
                last_name=last,
                display_name=display_name_for(first, last),
                redirect_url=redirect,
                send_email=send_email,
                custom_message=(custom_message or "").strip(),
                reset_redemption=reset_redemption,
            )
        )

    def run_bulk(
        self,
        entries: List[InviteEntry],
        *,
        invalid_rows: Iterable[str] = (),
        source: str = "manual",
        reset_redemption: Optional[bool] = None,
    ) -> BulkResult:
        """
        Submit every entry in order and aggregate.

        The size checks raise BulkSubmissionError before the first request.
        When `reset_redemption` is given it replaces whatever the rows carry.
        """
        check_bulk_size(entries, self.max_bulk_invites)
        invalid = [str(e) for e in invalid_rows]

        if reset_redemption is not None:
            entries = [replace(e, reset_redemption=reset_redemption) for e in entries]

        failures: List[Dict[str, str]] = []
        for entry in entries:
            outcome = self.send_invite(entry)
            if not outcome.ok:
                failures.append({"email": entry.email, "error": outcome.error or "Invite failed"})

        result = BulkResult(
            source=source,
            total_rows=len(entries) + len(invalid),
            valid_rows=len(entries),
            invalid_rows=invalid,
            invited=len(entries) - len(failures),
            failed=len(failures),
            failures=failures,
        )
        logger.info(
            "Bulk invite finished source=%s valid=%s invited=%s failed=%s invalid=%s",
            source,
            result.valid_rows,
            result.invited,
            result.failed,
            len(invalid),
        )
        return result
