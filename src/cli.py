"""teamsgate command line.

    teamsgate stdio            serve JSON-RPC over stdin/stdout
    teamsgate http [--port N]  serve JSON-RPC over HTTP (POST /mcp)
    teamsgate detect           report which existing credentials were found
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence

import structlog
import uvicorn
from pydantic import ValidationError

from src.config.settings import Settings, get_settings
from src.constants import SERVER_NAME, SERVER_VERSION
from src.gateway.app import create_app
from src.gateway.bootstrap import build_components, build_detector
from src.gateway.stdio import StdioServer
from src.infra.logging import setup_logging

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=SERVER_NAME, description="Microsoft Teams capability gateway"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {SERVER_VERSION}")
    parser.add_argument(
        "--log-level", default=None,
        help="Override GATEWAY_LOG_LEVEL (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "--simulation", action="store_true",
        help="Use the in-memory directory and a synthetic sign-in (TEAMS_SIMULATION_MODE)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("stdio", help="Serve line-delimited JSON-RPC on stdin/stdout")

    http_parser = subparsers.add_parser("http", help="Serve JSON-RPC over HTTP")
    http_parser.add_argument("--host", default=None, help="Override GATEWAY_HOST")
    http_parser.add_argument("--port", type=int, default=None, help="Override GATEWAY_PORT")

    subparsers.add_parser("detect", help="Probe for existing Microsoft credentials and exit")
    return parser


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    teams = settings.teams
    gateway = settings.gateway
    if args.simulation:
        teams = teams.model_copy(update={"simulation_mode": True})
    if args.log_level:
        gateway = gateway.model_copy(update={"log_level": args.log_level.upper()})
    if getattr(args, "host", None):
        gateway = gateway.model_copy(update={"host": args.host})
    if getattr(args, "port", None):
        gateway = gateway.model_copy(update={"port": args.port})
    return settings.model_copy(update={"teams": teams, "gateway": gateway})


async def _run_stdio(settings: Settings) -> None:
    components = build_components(settings)
    try:
        await StdioServer(components.gateway).serve()
    finally:
        await components.aclose()


async def _run_detect(settings: Settings) -> int:
    result = await build_detector(settings).detect()
    preferred = result.preferred()
    report = {
        "preferred": preferred.type.value if preferred else None,
        "sources": [s.to_dict() for s in result.sources],
    }
    print(json.dumps(report, indent=2, default=str))
    return 0 if preferred else 1


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = _apply_overrides(get_settings(), args)
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return 2

    # stdout is reserved for protocol frames and reports; logs always go to stderr.
    setup_logging(
        json_output=settings.gateway.json_logs,
        log_level=settings.gateway.log_level,
        stream=sys.stderr,
    )

    if args.command == "stdio":
        try:
            asyncio.run(_run_stdio(settings))
        except KeyboardInterrupt:
            logger.info("stdio_interrupted")
        return 0

    if args.command == "http":
        uvicorn.run(
            create_app(settings),
            host=settings.gateway.host,
            port=settings.gateway.port,
            log_level=settings.gateway.log_level.lower(),
        )
        return 0

    return asyncio.run(_run_detect(settings))


if __name__ == "__main__":
    sys.exit(main())
