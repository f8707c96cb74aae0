"""Shared pytest fixtures for teamsgate tests.

Nothing here touches the network or the host's real credentials: settings
are built explicitly with TEAMS_/AUTH_/GATEWAY_ env vars removed, and the
auth stack uses fake probes, a fake clock and a simulated sign-in.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta

import pytest

from src.auth.detector import CredentialDetector
from src.auth.device_code import SimulatedDeviceCodeFlow
from src.auth.resolver import ContextResolver
from src.auth.session import SessionManager
from src.config.settings import Settings, TeamsSettings
from src.directory.simulated import SimulatedDirectoryClient
from src.tools.base import PermissionLevel

_ENV_PREFIXES = ("TEAMS_", "AUTH_", "GATEWAY_")


class FakeClock:
    """Injectable UTC clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sim_settings() -> Settings:
    """Simulation-mode settings with a team hint and Member grant."""
    return Settings(
        teams=TeamsSettings(
            simulation_mode=True,
            current_team_id="team-1",
            simulation_grant_level="Member",
        )
    )


@pytest.fixture
def simulated_sessions() -> SessionManager:
    """SessionManager with no probes that signs in instantly."""
    return SessionManager(
        detector=CredentialDetector([]),
        exchanges=[],
        interactive=SimulatedDeviceCodeFlow(tenant_id="tenant-1"),
        scopes=["User.Read"],
    )


@pytest.fixture
def directory() -> SimulatedDirectoryClient:
    return SimulatedDirectoryClient(PermissionLevel.member)


@pytest.fixture
def resolver(
    simulated_sessions: SessionManager, directory: SimulatedDirectoryClient
) -> ContextResolver:
    return ContextResolver(
        simulated_sessions, directory, tenant_id="tenant-1", current_team_id="team-1"
    )
