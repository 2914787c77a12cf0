#!/usr/bin/env python3
"""Simulated end-to-end airdrop (rehearsal).

This drives the orchestrator directly, the same way the MCP and REST servers do:

* connect a freshly generated funding keypair
* create a token and provision employee wallets
* allocate amounts, distribute in batches and notify employees

Everything runs against simulated collaborators; no network access is needed.
"""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Sequence
from typing import Any

import base58
from solders.keypair import Keypair

from hr_airdrop_orchestrator.orchestrator.config import AirdropSettings
from hr_airdrop_orchestrator.orchestrator.logging import configure_logging
from hr_airdrop_orchestrator.orchestrator.workflow.orchestrator import AirdropOrchestrator


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rehearse an HR token airdrop in simulation.")
    parser.add_argument(
        "--employees",
        default="Alice,alice@example.com\nBob,bob@example.com\ncarol@example.com",
        help='Employees as "name,email" lines (name optional)',
    )
    parser.add_argument("--amount", type=float, default=100, help="Tokens per employee")
    parser.add_argument("--from-email", default="hr@example.com", help="Sender address")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    # Rehearsals never touch live services, whatever .env says.
    os.environ["AIRDROP_SIMULATION_MODE"] = "true"
    settings = AirdropSettings()
    configure_logging(settings.log_level)
    orchestrator = AirdropOrchestrator(settings)

    private_key = base58.b58encode(bytes(Keypair())).decode("ascii")
    steps: list[tuple[str, dict[str, Any]]] = [
        ("connect_wallet", {"privateKey": private_key}),
        ("create_token", {"name": "Example Token", "symbol": "EXMPL", "supply": 1_000_000}),
        ("generate_wallets", {"employees": args.employees}),
        ("calculate_amounts", {"uniformAmount": args.amount}),
        ("calculate_fees", {}),
        ("start_airdrop", {}),
        ("send_emails", {"fromEmail": args.from_email}),
        ("get_state", {}),
    ]

    for name, arguments in steps:
        result = orchestrator.dispatch(name, arguments)
        print(f"== {name} ==")
        print(result.text)
        print()
        if result.is_error:
            print(f"Stopped at {name} ({result.error_kind})", file=sys.stderr)
            return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
