"""CLI entrypoint for the HR airdrop orchestrator.

Subcommands:
- `mcp`: serve the workflow tools over MCP stdio
- `serve`: serve the same tools over the REST API
- `keypair`: print (and create on first use) the funding keypair's public key
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import uvicorn
from pydantic import ValidationError

from hr_airdrop_orchestrator import __version__
from hr_airdrop_orchestrator.orchestrator.config import AirdropSettings
from hr_airdrop_orchestrator.orchestrator.errors import AirdropError
from hr_airdrop_orchestrator.orchestrator.keystore import KeypairStore
from hr_airdrop_orchestrator.orchestrator.logging import configure_logging
from hr_airdrop_orchestrator.orchestrator.workflow.orchestrator import AirdropOrchestrator
from hr_airdrop_orchestrator.server.app import create_app
from hr_airdrop_orchestrator.server.mcp_server import serve_stdio

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hr-airdrop",
        description="HR token airdrop orchestrator (MCP and REST tool server)",
    )
    parser.add_argument(
        "--version", action="version", version=f"hr-airdrop-orchestrator {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("mcp", help="Serve the workflow tools over MCP stdio")

    serve = subparsers.add_parser("serve", help="Serve the workflow tools over the REST API")
    serve.add_argument("--host", default=None, help="Bind host (defaults to AIRDROP_HOST)")
    serve.add_argument(
        "--port", type=int, default=None, help="Bind port (defaults to AIRDROP_PORT)"
    )

    subparsers.add_parser(
        "keypair",
        help="Print the funding keypair's public key, creating the keypair file if needed",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = AirdropSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    try:
        if args.command == "mcp":
            asyncio.run(serve_stdio(AirdropOrchestrator(settings)))
            return 0

        if args.command == "serve":
            uvicorn.run(
                create_app(settings),
                host=args.host or settings.host,
                port=args.port or settings.port,
                log_config=None,
            )
            return 0

        if args.command == "keypair":
            store = KeypairStore(settings.keypair_path)
            identity = store.load_or_create()
            print(identity.public_key)
            return 0

        parser.error(f"Unknown command: {args.command}")
        return 2
    except AirdropError as e:
        logger.error("Command failed", extra={"kind": e.kind, "error": e.message})
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
