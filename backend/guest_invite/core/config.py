from functools import lru_cache
from typing import List, Optional

from json import loads as json_loads, JSONDecodeError

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_list(raw) -> List[str]:
    """Group ids and origins may be given as `a,b,c` or as a JSON array."""
    if not raw:
        return []

    if isinstance(raw, list):
        return [str(o).strip() for o in raw if str(o).strip()]

    raw_str = str(raw).strip()

    if raw_str.startswith("[") and raw_str.endswith("]"):
        try:
            parsed = json_loads(raw_str)
            if isinstance(parsed, list):
                return [str(o).strip() for o in parsed if str(o).strip()]
        except JSONDecodeError:
            pass  # treated as comma-separated below

    return [o.strip() for o in raw_str.split(",") if o.strip()]


class Settings(BaseSettings):
    """
    Central configuration for the guest invite service.

    All values come from environment variables or backend/.env, are read once
    at startup and never mutated afterwards. This is the single source of
    truth for:
    - runtime detection (App Service vs local)
    - inviter authorization (local bypass, allowed groups, enforcement)
    - Graph credential and guest-source stamping
    - invite defaults and bulk limits
    - CORS / docs toggles
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = Field(default="dev", description="Reported by /health and the startup log.")

    # App Service sets WEBSITE_INSTANCE_ID on every worker; its presence is
    # how we know we are running in the managed hosting environment.
    website_instance_id: Optional[str] = Field(default=None)

    # Inviter authorization
    allow_local_anonymous_invite: bool = Field(
        default=True,
        description="Outside App Service, skip caller checks entirely.",
    )
    allowed_inviter_group_object_ids: str = Field(
        default="",
        description="Entra group object ids whose members may invite (comma-separated or JSON list).",
    )
    enforce_group_membership_in_azure: bool = Field(
        default=True,
        description="In App Service, require ALLOWED_INVITER_GROUP_OBJECT_IDS and check membership.",
    )
    enable_whoami: bool = Field(
        default=False,
        description="Expose /whoami diagnostics in App Service (always on locally).",
    )

    # Graph / identity
    azure_client_id: Optional[str] = Field(
        default=None,
        description="Client id of a user-assigned managed identity, if one is used.",
    )
    graph_base_url: str = Field(default="https://graph.microsoft.com/v1.0")
    graph_scope: str = Field(default="https://graph.microsoft.com/.default")
    graph_timeout_seconds: float = Field(default=30.0)
    guest_source_value: str = Field(default="GuestInvited")
    guest_source_extension_attribute: str = Field(
        default="extension_9722db236acf4a89b1c3463d9a982b12_guestSource",
        description="Directory extension attribute stamped on every invited guest.",
    )

    # Invite defaults / limits
    default_redirect_url: str = Field(default="https://myapplications.microsoft.com")
    default_message_language: str = Field(default="en-US")
    max_bulk_invites: int = Field(default=100)
    max_name_length: int = Field(default=40)

    # Client side (CLI / orchestrator)
    invite_api_url: Optional[str] = Field(
        default=None,
        description="Invite endpoint the CLI submits to, e.g. https://<app>.azurewebsites.net/api/inviteguest",
    )
    invite_timeout_seconds: float = Field(default=12.0)

    # Browser front ends
    allowed_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173",
        description=(
            "Allowed frontend origins. Either a comma-separated string or a JSON list."
        ),
    )
    enable_docs: bool = Field(
        default=False,
        description="Serve OpenAPI + Swagger UI under /api/v1/docs.",
    )

    slow_http_ms: float = Field(default=1500.0)

    def origins_list(self) -> List[str]:
        """Normalize ALLOWED_ORIGINS into a clean List[str] for CORSMiddleware."""
        return _split_list(self.allowed_origins)

    def allowed_group_ids(self) -> List[str]:
        return _split_list(self.allowed_inviter_group_object_ids)

    @property
    def is_azure_runtime(self) -> bool:
        return bool((self.website_instance_id or "").strip())

    @property
    def whoami_enabled(self) -> bool:
        return self.enable_whoami or not self.is_azure_runtime


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
