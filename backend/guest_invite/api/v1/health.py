# backend/guest_invite/api/v1/health.py

"""
Health endpoint for the guest invite backend.

- /api/v1/health -> lightweight liveness (no Graph call)
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from guest_invite.core.config import Settings, get_settings

logger = logging.getLogger("guest_invite.health")

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", summary="Liveness probe")
def health(settings: Settings = Depends(get_settings)):
    """
    Lightweight liveness check used by App Service health probes.

    - Does NOT acquire a token or call Graph.
    - Returns 200 as long as the app process is up and routing works.
    """
    return {
        "status": "ok",
        "service": "guest-invite-backend",
        "environment": settings.environment,
        "azure_runtime": settings.is_azure_runtime,
        "timestamp_utc": datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z",
    }
