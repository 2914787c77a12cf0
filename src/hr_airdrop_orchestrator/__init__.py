"""HR Airdrop Orchestrator.

A stateful tool server that walks an HR operator through a token airdrop:
- funding wallet and token mint
- custodial wallets per employee, roles and allocations
- batched on-chain distribution and email notification
"""

__version__ = "0.1.0"

from hr_airdrop_orchestrator.orchestrator.config import AirdropSettings

__all__ = ["__version__", "AirdropSettings"]
