# backend/guest_invite/services/bulk_parser.py
"""
Bulk invite ingestion.

Two input shapes are supported and share one result type:

- manual:   free-form text, one guest per line -> "email, first, last"
- template: the Entra "Bulk invite users" CSV export
              line 1: version row (e.g. "version:v1.0")   -> ignored
              line 2: headers with bracketed names        -> [inviteeEmail], ...
              line 3+: data rows

Line numbers in errors are 1-based physical lines of the submitted text, so
they match what the user sees in their editor.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple
from urllib.parse import urlsplit

from guest_invite.services.csv_rows import parse_csv_line

EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
MAX_NAME_LENGTH = 40
LOCAL_HOSTS = {"localhost", "127.0.0.1"}

EMAIL_HEADER = "[inviteeEmail]"
REDIRECT_HEADER = "[inviteRedirectURL]"
SEND_EMAIL_HEADER = "[sendEmail]"
MESSAGE_HEADER = "[customizedMessageBody]"

EXAMPLE_PREFIX = "example:"
_LINE_SPLIT_RE = re.compile(r"\r?\n")


class BulkFormat(str, Enum):
    MANUAL = "manual"
    TEMPLATE = "template"


@dataclass
class InviteEntry:
    email: str
    redirect_url: str
    first_name: str = ""
    last_name: str = ""
    display_name: str = ""
    send_email: Optional[bool] = None
    custom_message: str = ""
    reset_redemption: Optional[bool] = None


@dataclass(frozen=True)
class RowError:
    line: Optional[int]
    reason: str

    def __str__(self) -> str:
        if self.line is None:
            return self.reason
        return f"Line {self.line}: {self.reason}"


@dataclass
class ParseResult:
    entries: List[InviteEntry] = field(default_factory=list)
    errors: List[RowError] = field(default_factory=list)
    format: BulkFormat = BulkFormat.MANUAL

    @property
    def error_messages(self) -> List[str]:
        return [str(e) for e in self.errors]


@dataclass
class BulkDefaults:
    """Values applied to rows that do not carry their own (and never to names/emails)."""

    redirect_url: str = ""
    send_email: bool = True
    custom_message: str = ""
    reset_redemption: bool = False
    max_name_length: int = MAX_NAME_LENGTH


# ---------- Field helpers ----------

def normalize_email(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def is_valid_email(value: Optional[str]) -> bool:
    return bool(value) and EMAIL_RE.fullmatch(value) is not None


def sanitize_name(value: Optional[str], max_length: int = MAX_NAME_LENGTH) -> str:
    return " ".join((value or "").split())[:max_length]


def display_name_for(first_name: str, last_name: str) -> str:
    return " ".join(part for part in (first_name, last_name) if part).strip()


def is_valid_redirect_url(value: Optional[str]) -> bool:
    """https anywhere; plain http only for localhost / 127.0.0.1."""
    if not value:
        return False

    try:
        parts = urlsplit(value.strip())
        hostname = parts.hostname
        parts.port  # raises ValueError for a non-numeric or out-of-range port
    except ValueError:
        return False

    if not hostname:
        return False
    if parts.scheme == "https":
        return True
    return parts.scheme == "http" and hostname in LOCAL_HOSTS


def parse_boolean(value, fallback: bool = True) -> bool:
    normalized = str(value if value is not None else "").strip().lower()
    if normalized == "true":
        return True
    if normalized == "false":
        return False
    return fallback


def _numbered_lines(text: str) -> List[Tuple[int, str]]:
    """(physical line number, stripped line) for every non-blank line."""
    out: List[Tuple[int, str]] = []
    for idx, raw in enumerate(_LINE_SPLIT_RE.split(text or ""), start=1):
        line = raw.strip()
        if line:
            out.append((idx, line))
    return out


def _strip_bom(text: str) -> str:
    return text[1:] if text and text[0] == "\ufeff" else text


def _header_index(headers: List[str], name: str) -> int:
    for idx, header in enumerate(headers):
        if name in header:
            return idx
    return -1


# ---------- Parsers ----------

def parse_manual_bulk(text: str, defaults: BulkDefaults) -> ParseResult:
    """
    Free-form rows: "email[, first name[, last name]]".

    A bad email records one error for that line and the rest of the input is
    still processed.
    """
    result = ParseResult(format=BulkFormat.MANUAL)

    for line_no, line in _numbered_lines(text):
        fields = parse_csv_line(line)
        email = normalize_email(fields[0])
        first_name = sanitize_name(fields[1] if len(fields) > 1 else "", defaults.max_name_length)
        last_name = sanitize_name(fields[2] if len(fields) > 2 else "", defaults.max_name_length)

        if not is_valid_email(email):
            result.errors.append(RowError(line_no, "invalid email"))
            continue

        result.entries.append(
            InviteEntry(
                email=email,
                first_name=first_name,
                last_name=last_name,
                display_name=display_name_for(first_name, last_name),
                redirect_url=defaults.redirect_url,
                send_email=defaults.send_email,
                custom_message=defaults.custom_message,
                reset_redemption=defaults.reset_redemption,
            )
        )

    return result


def parse_template_csv(text: str, defaults: Optional[BulkDefaults] = None) -> ParseResult:
    """
    Entra bulk-invite template.

    Structural problems (no header row, missing required columns) fail the
    whole file with a single error and no entries. Row problems record one
    error per row and skip it. Placeholder rows ("Example: ...") and rows
    with an empty email are template boilerplate and are skipped silently.
    """
    defaults = defaults or BulkDefaults()
    result = ParseResult(format=BulkFormat.TEMPLATE)

    lines = _numbered_lines(_strip_bom(text or ""))
    if len(lines) < 2:
        result.errors.append(RowError(None, "CSV is invalid. Expected version row and header row."))
        return result

    headers = parse_csv_line(lines[1][1])
    email_idx = _header_index(headers, EMAIL_HEADER)
    redirect_idx = _header_index(headers, REDIRECT_HEADER)
    send_email_idx = _header_index(headers, SEND_EMAIL_HEADER)
    message_idx = _header_index(headers, MESSAGE_HEADER)

    if email_idx < 0 or redirect_idx < 0:
        result.errors.append(
            RowError(None, "CSV missing required columns: [inviteeEmail] and/or [inviteRedirectURL].")
        )
        return result

    def cell(row: List[str], idx: int) -> str:
        return row[idx] if 0 <= idx < len(row) else ""

    for line_no, line in lines[2:]:
        row = parse_csv_line(line)
        raw_email = cell(row, email_idx)
        if not raw_email or raw_email.lower().startswith(EXAMPLE_PREFIX):
            continue

        email = normalize_email(raw_email)
        redirect = cell(row, redirect_idx).strip()

        if not is_valid_email(email):
            result.errors.append(RowError(line_no, "invalid inviteeEmail"))
            continue

        if not is_valid_redirect_url(redirect):
            result.errors.append(RowError(line_no, "invalid inviteRedirectURL"))
            continue

        send_email = defaults.send_email
        if send_email_idx >= 0:
            send_email = parse_boolean(cell(row, send_email_idx), defaults.send_email)

        result.entries.append(
            InviteEntry(
                email=email,
                redirect_url=redirect,
                send_email=send_email,
                custom_message=cell(row, message_idx).strip() if message_idx >= 0 else "",
                reset_redemption=defaults.reset_redemption,
            )
        )

    return result


def detect_bulk_format(text: str) -> BulkFormat:
    """
    Template files start with a "version:" row and/or carry the required
    bracketed column names on line 2. Anything else is manual input.
    """
    lines = _numbered_lines(_strip_bom(text or ""))
    if not lines:
        return BulkFormat.MANUAL

    if lines[0][1].lower().startswith("version:"):
        return BulkFormat.TEMPLATE
    if len(lines) > 1 and any(h in lines[1][1] for h in (EMAIL_HEADER, REDIRECT_HEADER)):
        return BulkFormat.TEMPLATE
    return BulkFormat.MANUAL


def parse_bulk(
    text: str,
    defaults: BulkDefaults,
    bulk_format: Optional[BulkFormat] = None,
) -> ParseResult:
    fmt = bulk_format or detect_bulk_format(text)
    if fmt == BulkFormat.TEMPLATE:
        return parse_template_csv(text, defaults)
    return parse_manual_bulk(text, defaults)
