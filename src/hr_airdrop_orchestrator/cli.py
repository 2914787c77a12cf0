"""Console entrypoint alias.

The CLI is implemented in `hr_airdrop_orchestrator.orchestrator.main`.
"""

from __future__ import annotations

from hr_airdrop_orchestrator.orchestrator.main import main

__all__ = ["main"]


if __name__ == "__main__":
    raise SystemExit(main())
