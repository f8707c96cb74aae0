from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.config.settings import Settings, get_settings
from src.constants import PROTOCOL_VERSION, SERVER_VERSION
from src.gateway.bootstrap import GatewayComponents, build_components
from src.gateway.dispatch import server_info
from src.infra.logging import setup_logging

logger = structlog.get_logger()


def create_app(settings: Settings | None = None) -> FastAPI:
    """HTTP binding: POST /mcp carries one JSON-RPC envelope per request."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan: build the component graph on startup."""
        setup_logging(
            json_output=settings.gateway.json_logs, log_level=settings.gateway.log_level
        )
        components = build_components(settings)
        app.state.components = components
        logger.info(
            "gateway_started",
            transport="http",
            host=settings.gateway.host,
            port=settings.gateway.port,
            simulation_mode=settings.teams.simulation_mode,
        )

        yield

        await components.aclose()
        logger.info("gateway_stopped", transport="http")

    app = FastAPI(title="teamsgate", version=SERVER_VERSION, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.gateway.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.post("/mcp")
    async def mcp(request: Request) -> JSONResponse:
        components: GatewayComponents = request.app.state.components
        body = await request.body()
        # Protocol errors travel inside the envelope; HTTP status stays 200.
        return JSONResponse(await components.gateway.handle(body))

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        components: GatewayComponents = request.app.state.components
        return {
            "status": "ok",
            "server": server_info(),
            "authenticated": components.sessions.is_authenticated(),
            "sessionState": components.sessions.state.value,
            "simulationMode": settings.teams.simulation_mode,
            "tools": len(components.registry),
        }

    @app.get("/mcp/info")
    async def info(request: Request) -> dict[str, Any]:
        components: GatewayComponents = request.app.state.components
        return {
            "serverInfo": server_info(),
            "protocolVersion": PROTOCOL_VERSION,
            "methods": list(components.gateway.methods),
            "toolsByCategory": {
                category: [d.to_wire() for d in descriptors]
                for category, descriptors in components.registry.by_category().items()
            },
        }

    return app
