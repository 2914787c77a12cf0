"""Transport adapters for hr-airdrop-orchestrator.

- `create_app`: REST API (FastAPI)
- `mcp_server`: MCP over stdio

Business logic stays in `hr_airdrop_orchestrator.orchestrator.*`; this package
only maps requests onto `AirdropOrchestrator.dispatch`.
"""

from __future__ import annotations

__all__ = ["create_app"]

from hr_airdrop_orchestrator.server.app import create_app
