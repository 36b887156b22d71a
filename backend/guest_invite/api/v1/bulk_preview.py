# backend/guest_invite/api/v1/bulk_preview.py

from __future__ import annotations

import logging
from typing import Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    UploadFile,
    status,
)

from guest_invite.api.deps import get_settings
from guest_invite.core.config import Settings
from guest_invite.schemas import ParsePreviewResponse, PreviewEntry
from guest_invite.services.bulk_parser import BulkDefaults, BulkFormat
from guest_invite.services.invite_sender import prepare_bulk

logger = logging.getLogger("guest_invite")

# main.py mounts this under /api/v1 => POST /api/v1/invites/parse
router = APIRouter(prefix="/invites", tags=["invites"])


def _decode_upload(raw_bytes: bytes) -> str:
    try:
        return raw_bytes.decode("utf-8-sig")
    except UnicodeDecodeError:
        return raw_bytes.decode("latin-1")


@router.post(
    "/parse",
    response_model=ParsePreviewResponse,
    status_code=status.HTTP_200_OK,
)
async def parse_bulk_preview(
    file: Optional[UploadFile] = File(None),
    text: Optional[str] = Form(None),
    redirect_url: Optional[str] = Form(None),
    send_email: bool = Form(True),
    reset_redemption: bool = Form(False),
    customized_message_body: str = Form(""),
    settings: Settings = Depends(get_settings),
):
    """
    Dry run of a bulk invite: parse and validate, never send.

    An uploaded file is always read as the Entra template; pasted text is
    sniffed (template if it looks like one, manual rows otherwise).
    """
    defaults = BulkDefaults(
        redirect_url=(redirect_url or settings.default_redirect_url).strip(),
        send_email=send_email,
        custom_message=customized_message_body.strip(),
        reset_redemption=reset_redemption,
        max_name_length=settings.max_name_length,
    )

    if file is not None:
        if not (file.filename or "").lower().endswith(".csv"):
            raise HTTPException(status_code=400, detail="Only .csv files are supported")
        body = _decode_upload(await file.read())
        result = prepare_bulk(body, defaults, BulkFormat.TEMPLATE)
        source = f"file:{file.filename}"
    elif text and text.strip():
        result = prepare_bulk(text, defaults)
        source = "manual"
    else:
        raise HTTPException(status_code=400, detail="Provide a CSV file or text rows.")

    logger.info(
        "Bulk preview source=%s format=%s valid=%s invalid=%s",
        source,
        result.format.value,
        len(result.entries),
        len(result.errors),
    )

    return ParsePreviewResponse(
        format=result.format.value,
        source=source,
        valid_rows=len(result.entries),
        invalid_rows=result.error_messages,
        over_limit=len(result.entries) > settings.max_bulk_invites,
        entries=[
            PreviewEntry(
                email=e.email,
                first_name=e.first_name,
                last_name=e.last_name,
                display_name=e.display_name,
                redirect_url=e.redirect_url,
                send_email=e.send_email,
                customized_message_body=e.custom_message,
            )
            for e in result.entries
        ],
    )
