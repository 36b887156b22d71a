# backend/guest_invite/api/deps.py
"""
Shared API dependencies.

Everything an endpoint needs from the outside world (settings, the caller's
principal, a Graph client) comes in through here so tests can swap it with
app.dependency_overrides.
"""

from __future__ import annotations

from fastapi import Depends

from guest_invite.core.config import Settings, get_settings
from guest_invite.core.security import get_client_principal
from guest_invite.services.graph import GraphClient

__all__ = ["get_settings", "get_client_principal", "get_graph_client"]


def get_graph_client(settings: Settings = Depends(get_settings)) -> GraphClient:
    """One client per request; the token is fetched lazily on first use."""
    return GraphClient.from_settings(settings)
