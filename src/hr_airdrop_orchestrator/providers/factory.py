"""Composition of live, simulated and fallback collaborators."""

from __future__ import annotations

import logging

from hr_airdrop_orchestrator.orchestrator.config import AirdropSettings
from hr_airdrop_orchestrator.providers.custody import (
    CrossmintCustodyProvider,
    FallbackCustodyProvider,
    SimulatedCustodyProvider,
    WalletCustodyProvider,
    is_crossmint_api_key,
)
from hr_airdrop_orchestrator.providers.ledger import (
    FallbackLedgerClient,
    LedgerClient,
    SimulatedLedger,
)
from hr_airdrop_orchestrator.providers.notifier import (
    FallbackNotifier,
    Notifier,
    ResendNotifier,
    SimulatedNotifier,
)
from hr_airdrop_orchestrator.providers.solana_rpc import SolanaRpcLedger

logger = logging.getLogger(__name__)


class ProviderFactory:
    """Creates collaborators from settings and per-call overrides.

    Simulated collaborators are shared for the lifetime of the factory so that a
    rehearsal keeps consistent balances and accounts across tool calls.
    """

    def __init__(self, settings: AirdropSettings) -> None:
        self.settings = settings
        self.simulated_ledger = SimulatedLedger()
        self.simulated_custody = SimulatedCustodyProvider()
        self.simulated_notifier = SimulatedNotifier()

    @property
    def simulation_mode(self) -> bool:
        return self.settings.simulation_mode

    def custody(self, api_key: str | None = None) -> WalletCustodyProvider | None:
        """Return a custody provider, or None when the caller must supply a key.

        Args:
            api_key: Per-call key; falls back to CROSSMINT_API_KEY.
        """
        key = (api_key or self.settings.crossmint_api_key).strip()
        if self.simulation_mode:
            return self.simulated_custody
        if not key:
            return None
        if not is_crossmint_api_key(key):
            logger.warning("API key is not a Crossmint key; using simulated wallets")
            return self.simulated_custody

        live = CrossmintCustodyProvider(key, timeout_seconds=self.settings.http_timeout_seconds)
        return FallbackCustodyProvider(live, self.simulated_custody)

    def ledger(self, rpc_url: str | None = None) -> LedgerClient:
        """Ledger for balances, minting and liquidity (falls back to simulation)."""

        if self.simulation_mode:
            return self.simulated_ledger
        live = SolanaRpcLedger(
            rpc_url or self.settings.solana_rpc_url,
            timeout_seconds=self.settings.http_timeout_seconds,
        )
        return FallbackLedgerClient(live, self.simulated_ledger)

    def distribution_ledger(self, *, simulated: bool) -> LedgerClient:
        """Ledger for batch submission. Never wrapped in a fallback."""

        if simulated or self.simulation_mode:
            return self.simulated_ledger
        return SolanaRpcLedger(
            self.settings.distribution_rpc_url,
            timeout_seconds=self.settings.http_timeout_seconds,
        )

    def notifier(self, api_key: str | None = None) -> Notifier | None:
        """Return a notifier, or None when the caller must supply a key."""

        key = (api_key or self.settings.resend_api_key).strip()
        if self.simulation_mode:
            return self.simulated_notifier
        if not key:
            return None
        live = ResendNotifier(key, timeout_seconds=self.settings.http_timeout_seconds)
        return FallbackNotifier(live, self.simulated_notifier)
