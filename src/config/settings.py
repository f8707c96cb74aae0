from __future__ import annotations

from typing import Self

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.constants import DEFAULT_CLIENT_ID, DEFAULT_SCOPES, GRAPH_RESOURCE

# Load .env once at module import; all BaseSettings subclasses will see the env vars
load_dotenv()

_PERMISSION_LEVELS = ("Guest", "Member", "Owner", "Organizer")


class TeamsSettings(BaseSettings):
    """Tenant, client and context-hint settings. Env vars prefixed with TEAMS_."""

    model_config = SettingsConfigDict(env_prefix="TEAMS_")

    tenant_id: str = "common"
    client_id: str = DEFAULT_CLIENT_ID
    redirect_uri: str = "http://localhost:3000"
    scopes: list[str] = Field(default_factory=lambda: list(DEFAULT_SCOPES))
    current_team_id: str | None = None
    current_channel_id: str | None = None
    simulation_mode: bool = False
    require_authentication: bool = True
    # Role the simulated directory reports for every team (simulation mode only).
    simulation_grant_level: str = "Member"

    @field_validator("tenant_id", "client_id")
    @classmethod
    def _validate_non_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("TEAMS_TENANT_ID and TEAMS_CLIENT_ID must not be empty")
        return v

    @field_validator("scopes")
    @classmethod
    def _validate_scopes(cls, v: list[str]) -> list[str]:
        scopes = [s.strip() for s in v if s.strip()]
        if not scopes:
            raise ValueError("TEAMS_SCOPES must list at least one scope")
        return scopes

    @field_validator("current_team_id", "current_channel_id", mode="before")
    @classmethod
    def _blank_is_none(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("simulation_grant_level")
    @classmethod
    def _validate_grant_level(cls, v: str) -> str:
        if v not in _PERMISSION_LEVELS:
            msg = f"TEAMS_SIMULATION_GRANT_LEVEL must be one of {_PERMISSION_LEVELS} (got '{v}')"
            raise ValueError(msg)
        return v


class AuthSettings(BaseSettings):
    """Credential detection and device-code settings. Env vars prefixed with AUTH_."""

    model_config = SettingsConfigDict(env_prefix="AUTH_")

    authority_host: str = "https://login.microsoftonline.com"
    graph_resource: str = GRAPH_RESOURCE
    cli_executable: str = "az"
    cli_timeout_seconds: float = Field(15.0, gt=0, le=120)
    device_code_timeout_seconds: float = Field(900.0, gt=0, le=3600)
    http_timeout_seconds: float = Field(30.0, gt=0, le=300)

    @field_validator("authority_host")
    @classmethod
    def _validate_authority_host(cls, v: str) -> str:
        if not v.startswith(("https://", "http://")):
            raise ValueError(f"AUTH_AUTHORITY_HOST must be an http(s) URL (got '{v}')")
        return v.rstrip("/")


class GatewaySettings(BaseSettings):
    """Gateway server settings. Env vars prefixed with GATEWAY_."""

    model_config = SettingsConfigDict(env_prefix="GATEWAY_")

    host: str = "localhost"
    port: int = Field(3001, gt=0, lt=65536)
    log_level: str = "INFO"
    json_logs: bool = False
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "vscode-webview://*", "https://claude.ai"]
    )

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        v = v.strip().upper()
        if v not in allowed:
            msg = f"GATEWAY_LOG_LEVEL must be one of {allowed} (got '{v}')"
            raise ValueError(msg)
        return v


class Settings(BaseSettings):
    """Root settings composing all sub-configurations."""

    model_config = SettingsConfigDict(extra="ignore")

    teams: TeamsSettings = Field(default_factory=TeamsSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)

    @model_validator(mode="after")
    def _validate(self) -> Self:
        if self.teams.current_channel_id and not self.teams.current_team_id:
            raise ValueError(
                "TEAMS_CURRENT_CHANNEL_ID requires TEAMS_CURRENT_TEAM_ID to be set"
            )
        return self


def get_settings() -> Settings:
    """Load and validate settings. Raises ValidationError on invalid values."""
    return Settings()
