"""
Command-line client for the guest invite API.

Usage (env vars set, or pass --api-url):

  $env:INVITE_API_URL = "https://<app>.azurewebsites.net/api/inviteguest"
  $env:INVITE_API_TOKEN = "<App Service auth token>"   # optional

  # One guest
  guest-invite single guest@external.com --first-name Guest --last-name User

  # Entra "Bulk invite users" template or a file of "email, first, last" rows
  guest-invite bulk .\\BulkInviteUsersTemplate.csv --reset-redemption

  # Parse only, nothing is sent
  guest-invite bulk .\\rows.txt --dry-run

Exit codes: 0 all invites sent, 1 input rejected, 2 some rows failed.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Dict, List, Optional

from guest_invite.core.config import Settings, get_settings
from guest_invite.core.errors import BulkSubmissionError
from guest_invite.services.bulk_parser import BulkDefaults, BulkFormat
from guest_invite.services.invite_sender import InviteSender, prepare_bulk

logger = logging.getLogger("guest_invite.cli")


def _build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="guest-invite", description="Invite external guests into the tenant.")
    parser.add_argument("--api-url", default=settings.invite_api_url, help="Invite endpoint (INVITE_API_URL)")
    parser.add_argument("--token", default=os.getenv("INVITE_API_TOKEN"), help="Bearer token (INVITE_API_TOKEN)")
    parser.add_argument("--redirect-url", default=settings.default_redirect_url)
    parser.add_argument("--no-send-email", dest="send_email", action="store_false", help="Do not email the guest")
    parser.add_argument(
        "--reset-redemption",
        action="store_true",
        help="Re-send to guests who have not redeemed a previous invite",
    )
    parser.add_argument("--message", default="", help="Custom invitation message")
    parser.add_argument("--verbose", action="store_true")

    sub = parser.add_subparsers(dest="command", required=True)

    single = sub.add_parser("single", help="Invite one guest")
    single.add_argument("email")
    single.add_argument("--first-name", default="")
    single.add_argument("--last-name", default="")

    bulk = sub.add_parser("bulk", help="Invite every row of a file")
    bulk.add_argument("path", help="Entra template CSV or text file of 'email, first, last' rows")
    bulk.add_argument(
        "--format",
        choices=[f.value for f in BulkFormat],
        default=None,
        help="Skip format detection",
    )
    bulk.add_argument("--dry-run", action="store_true", help="Parse and validate only")

    return parser


def _read_text(path: str) -> str:
    with open(path, "rb") as f:
        raw = f.read()
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def _print(data) -> None:
    print(json.dumps(data, indent=2))


def _sender(args, settings: Settings) -> InviteSender:
    headers: Dict[str, str] = {}
    if args.token:
        headers["Authorization"] = f"Bearer {args.token}"
    return InviteSender.from_settings(settings, api_url=args.api_url, headers=headers)


def _run_single(args, settings: Settings) -> int:
    outcome = _sender(args, settings).send_single(
        args.email,
        first_name=args.first_name,
        last_name=args.last_name,
        redirect_url=args.redirect_url,
        send_email=args.send_email,
        custom_message=args.message,
        reset_redemption=args.reset_redemption,
    )
    _print({"ok": outcome.ok, "data": outcome.data})
    return 0 if outcome.ok else 2


def _run_bulk(args, settings: Settings) -> int:
    defaults = BulkDefaults(
        redirect_url=(args.redirect_url or "").strip(),
        send_email=args.send_email,
        custom_message=(args.message or "").strip(),
        reset_redemption=args.reset_redemption,
        max_name_length=settings.max_name_length,
    )
    bulk_format = BulkFormat(args.format) if args.format else None

    result = prepare_bulk(_read_text(args.path), defaults, bulk_format)
    source = f"file:{os.path.basename(args.path)}" if result.format == BulkFormat.TEMPLATE else "manual"
    logger.info(
        "Parsed %s as %s valid=%s invalid=%s", args.path, result.format.value, len(result.entries), len(result.errors)
    )

    if args.dry_run:
        _print(
            {
                "ok": not result.errors,
                "data": {
                    "parsedFrom": source,
                    "format": result.format.value,
                    "validRows": len(result.entries),
                    "invalidRows": result.error_messages,
                },
            }
        )
        return 0 if not result.errors else 1

    summary = _sender(args, settings).run_bulk(
        result.entries,
        invalid_rows=result.error_messages,
        source=source,
        reset_redemption=args.reset_redemption,
    )
    _print({"ok": summary.ok, "data": summary.to_dict()})
    return 0 if summary.ok else 2


def main(argv: Optional[List[str]] = None) -> int:
    settings = get_settings()
    args = _build_parser(settings).parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        if args.command == "single":
            return _run_single(args, settings)
        return _run_bulk(args, settings)
    except BulkSubmissionError as exc:
        _print({"ok": False, "data": {"error": exc.message}})
        return 1
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except FileNotFoundError:
        print(f"File not found: {getattr(args, 'path', '')}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
