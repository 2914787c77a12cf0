"""External collaborators: custody, ledger and notification providers."""

from hr_airdrop_orchestrator.providers.custody import WalletCustodyProvider
from hr_airdrop_orchestrator.providers.factory import ProviderFactory
from hr_airdrop_orchestrator.providers.ledger import LedgerClient
from hr_airdrop_orchestrator.providers.notifier import Notifier

__all__ = [
    "LedgerClient",
    "Notifier",
    "ProviderFactory",
    "WalletCustodyProvider",
]
