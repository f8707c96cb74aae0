"""Wires the gateway components from Settings.

Shared by the HTTP binding, the stdio binding and the CLI so every entry
point builds exactly the same object graph. The registry is frozen before
any request is served.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from src.auth.detector import CredentialDetector, default_probes
from src.auth.device_code import DeviceCodeFlow, InteractiveFlow, PromptCallback, SimulatedDeviceCodeFlow
from src.auth.exchange import AzureCliExchange, CredentialExchange
from src.auth.resolver import ContextResolver
from src.auth.session import SessionManager
from src.config.settings import Settings
from src.directory.client import DirectoryClient
from src.directory.graph import GraphDirectoryClient
from src.directory.simulated import SimulatedDirectoryClient
from src.gateway.dispatch import ProtocolGateway
from src.tools.base import PermissionLevel
from src.tools.builtins import register_builtins
from src.tools.pipeline import InvocationPipeline
from src.tools.registry import ToolRegistry

logger = structlog.get_logger()


@dataclass
class GatewayComponents:
    settings: Settings
    sessions: SessionManager
    directory: DirectoryClient
    resolver: ContextResolver
    registry: ToolRegistry
    gateway: ProtocolGateway

    async def aclose(self) -> None:
        await self.directory.aclose()


def build_detector(settings: Settings) -> CredentialDetector:
    """Simulation mode never touches the host's credentials: no probes at all."""
    if settings.teams.simulation_mode:
        return CredentialDetector([])
    return CredentialDetector(
        default_probes(
            cli_executable=settings.auth.cli_executable,
            timeout=settings.auth.cli_timeout_seconds,
        )
    )


def build_session_manager(
    settings: Settings,
    *,
    prompt: PromptCallback | None = None,
    interactive: InteractiveFlow | None = None,
) -> SessionManager:
    exchanges: list[CredentialExchange] = []
    if settings.teams.simulation_mode:
        interactive = interactive or SimulatedDeviceCodeFlow(tenant_id=settings.teams.tenant_id)
    else:
        exchanges.append(
            AzureCliExchange(
                settings.auth.cli_executable,
                resource=settings.auth.graph_resource,
                timeout=settings.auth.cli_timeout_seconds,
            )
        )
        interactive = interactive or DeviceCodeFlow(
            authority_host=settings.auth.authority_host,
            tenant_id=settings.teams.tenant_id,
            client_id=settings.teams.client_id,
            timeout_seconds=settings.auth.device_code_timeout_seconds,
            http_timeout=settings.auth.http_timeout_seconds,
            prompt=prompt,
        )
    return SessionManager(
        detector=build_detector(settings),
        exchanges=exchanges,
        interactive=interactive,
        scopes=settings.teams.scopes,
    )


def build_components(
    settings: Settings,
    *,
    prompt: PromptCallback | None = None,
    directory: DirectoryClient | None = None,
    interactive: InteractiveFlow | None = None,
) -> GatewayComponents:
    sessions = build_session_manager(settings, prompt=prompt, interactive=interactive)

    if directory is None:
        if settings.teams.simulation_mode:
            directory = SimulatedDirectoryClient(
                PermissionLevel(settings.teams.simulation_grant_level)
            )
        else:
            directory = GraphDirectoryClient(
                sessions.get_access_token, timeout=settings.auth.http_timeout_seconds
            )

    resolver = ContextResolver(
        sessions,
        directory,
        tenant_id=settings.teams.tenant_id,
        current_team_id=settings.teams.current_team_id,
        current_channel_id=settings.teams.current_channel_id,
    )

    registry = ToolRegistry()
    register_builtins(registry, directory, resolver)
    registry.freeze()

    pipeline = InvocationPipeline(
        resolver, require_authentication=settings.teams.require_authentication
    )
    gateway = ProtocolGateway(registry, pipeline)

    logger.info(
        "gateway_components_built",
        simulation_mode=settings.teams.simulation_mode,
        require_authentication=settings.teams.require_authentication,
        tool_count=len(registry),
    )
    return GatewayComponents(
        settings=settings,
        sessions=sessions,
        directory=directory,
        resolver=resolver,
        registry=registry,
        gateway=gateway,
    )
