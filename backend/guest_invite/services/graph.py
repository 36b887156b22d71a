# backend/guest_invite/services/graph.py
"""
Thin Microsoft Graph client for the invite flow.

Token acquisition is delegated to azure-identity (it caches and refreshes on
its own); every call is a single synchronous request with a fixed timeout.
Nothing here retries: a non-2xx answer raises GraphRequestError carrying the
Graph correlation headers, a network failure raises GraphTransportError.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import DefaultAzureCredential, ManagedIdentityCredential
from requests import RequestException

from guest_invite.core.config import Settings
from guest_invite.core.errors import GraphRequestError, GraphTransportError, GuestInviteError

logger = logging.getLogger("guest_invite.graph")

USER_SELECT = "id,displayName,userPrincipalName,userType,accountEnabled"
ORGANIZATION_SELECT = "id,displayName,verifiedDomains"


@dataclass
class RuntimeCredential:
    credential: Any
    mode: str
    az_client_id_configured: bool


def get_runtime_credential(settings: Settings) -> RuntimeCredential:
    """
    App Service: managed identity (user-assigned when AZURE_CLIENT_ID is set).
    Anywhere else: DefaultAzureCredential (az login, env vars, VS Code, ...).
    """
    client_id = (settings.azure_client_id or "").strip()

    if settings.is_azure_runtime:
        if client_id:
            return RuntimeCredential(
                credential=ManagedIdentityCredential(client_id=client_id),
                mode="managed_identity_user_assigned",
                az_client_id_configured=True,
            )
        return RuntimeCredential(
            credential=ManagedIdentityCredential(),
            mode="managed_identity_system_assigned",
            az_client_id_configured=False,
        )

    return RuntimeCredential(
        credential=DefaultAzureCredential(),
        mode="local_default_credential",
        az_client_id_configured=bool(client_id),
    )


def _try_parse_json(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


class GraphClient:
    def __init__(
        self,
        runtime: RuntimeCredential,
        *,
        base_url: str = "https://graph.microsoft.com/v1.0",
        scope: str = "https://graph.microsoft.com/.default",
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.runtime = runtime
        self.base_url = base_url.rstrip("/")
        self.scope = scope
        self.timeout = timeout
        self.session = session or requests.Session()
        self._token: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Settings, session: Optional[requests.Session] = None) -> "GraphClient":
        return cls(
            get_runtime_credential(settings),
            base_url=settings.graph_base_url,
            scope=settings.graph_scope,
            timeout=settings.graph_timeout_seconds,
            session=session,
        )

    @property
    def runtime_mode(self) -> str:
        return self.runtime.mode

    @property
    def az_client_id_configured(self) -> bool:
        return self.runtime.az_client_id_configured

    def access_token(self) -> str:
        if self._token is None:
            try:
                self._token = self.runtime.credential.get_token(self.scope).token
            except ClientAuthenticationError as exc:
                logger.error("Graph token acquisition failed mode=%s error=%s", self.runtime.mode, exc)
                raise GuestInviteError(f"Unable to acquire a Microsoft Graph token: {exc.message}") from exc
        return self._token

    def request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        headers = {
            "Authorization": f"Bearer {self.access_token()}",
            "Content-Type": "application/json",
        }

        try:
            resp = self.session.request(
                method,
                url,
                headers=headers,
                params=params,
                data=json.dumps(body) if body is not None else None,
                timeout=self.timeout,
            )
        except RequestException as exc:
            logger.error("Graph transport error method=%s path=%s error=%s", method, path, exc)
            raise GraphTransportError(f"Graph call failed: {exc.__class__.__name__}") from exc

        payload = _try_parse_json(resp.text)

        if not resp.ok:
            logger.warning(
                "Graph call failed method=%s path=%s status=%s request_id=%s",
                method,
                path,
                resp.status_code,
                resp.headers.get("request-id"),
            )
            raise GraphRequestError(
                f"Graph call failed: {resp.status_code} {resp.reason}",
                status_code=resp.status_code,
                details=payload,
                request_id=resp.headers.get("request-id"),
                client_request_id=resp.headers.get("client-request-id"),
                www_authenticate=resp.headers.get("www-authenticate"),
            )

        return payload

    # ---------- Directory calls ----------

    def get_user(self, object_id: str) -> Optional[Dict[str, Any]]:
        """Caller profile, or None if the directory has no such user."""
        try:
            user = self.request("GET", f"/users/{quote(object_id, safe='')}", params={"$select": USER_SELECT})
        except GraphRequestError as exc:
            if exc.status_code == 404:
                return None
            raise
        return user if isinstance(user, dict) else None

    def check_member_groups(self, object_id: str, group_ids: List[str]) -> List[str]:
        result = self.request(
            "POST",
            f"/users/{quote(object_id, safe='')}/checkMemberGroups",
            {"groupIds": list(group_ids)},
        )
        matched = result.get("value") if isinstance(result, dict) else None
        return list(matched) if isinstance(matched, list) else []

    def create_invitation(self, body: Dict[str, Any]) -> Dict[str, Any]:
        result = self.request("POST", "/invitations", body)
        return result if isinstance(result, dict) else {}

    def update_user(self, object_id: str, patch: Dict[str, Any]) -> None:
        self.request("PATCH", f"/users/{quote(object_id, safe='')}", patch)

    def get_organization(self) -> Optional[Dict[str, Any]]:
        result = self.request("GET", "/organization", params={"$select": ORGANIZATION_SELECT})
        orgs = result.get("value") if isinstance(result, dict) else None
        if isinstance(orgs, list) and orgs:
            return orgs[0]
        return None
