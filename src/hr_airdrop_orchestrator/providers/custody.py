"""Custodial wallet providers.

`WalletCustodyProvider` is the only contract the workflow needs from a custody
service: an email in, a Solana wallet address out.
"""

from __future__ import annotations

import hashlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import requests

from hr_airdrop_orchestrator.orchestrator.errors import ExecutionError

logger = logging.getLogger(__name__)

CROSSMINT_PRODUCTION_URL = "https://www.crossmint.com/api/2022-06-09/wallets"
CROSSMINT_STAGING_URL = "https://staging.crossmint.com/api/2022-06-09/wallets"
CROSSMINT_WALLET_TYPE = "solana-mpc-wallet"

_KEY_PREFIXES = ("ck_", "sk_")
_KEY_ENVIRONMENTS = ("development", "staging", "production")


@dataclass(frozen=True, slots=True)
class ProvisionedWallet:
    email: str
    address: str
    simulated: bool = False


def is_crossmint_api_key(api_key: str) -> bool:
    """Crossmint keys start with `ck_`/`sk_` and name their environment."""

    key = api_key.strip()
    return key.startswith(_KEY_PREFIXES) and any(env in key for env in _KEY_ENVIRONMENTS)


class WalletCustodyProvider(ABC):
    """Abstract base class for custodial wallet providers."""

    @abstractmethod
    def get_or_create_wallet(self, email: str) -> ProvisionedWallet:
        """Return the custodial wallet linked to `email`, creating it if needed.

        Args:
            email: Employee email the wallet is linked to.

        Returns:
            The wallet address, flagged when it was simulated.

        Raises:
            ExecutionError: If the custody service cannot be reached or refuses.
        """
        pass


class SimulatedCustodyProvider(WalletCustodyProvider):
    """Deterministic, offline wallet addresses derived from the email."""

    def get_or_create_wallet(self, email: str) -> ProvisionedWallet:
        digest = hashlib.sha256(email.strip().lower().encode("utf-8")).hexdigest()
        address = f"simwallet_{digest[:16]}"
        logger.debug("Simulated custodial wallet", extra={"email": email, "address": address})
        return ProvisionedWallet(email=email, address=address, simulated=True)


class CrossmintCustodyProvider(WalletCustodyProvider):
    """Crossmint REST API provider.

    Looks the wallet up by email first and creates an MPC wallet linked to the
    email when none exists.
    """

    def __init__(
        self,
        api_key: str,
        *,
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the Crossmint provider.

        Args:
            api_key: Crossmint server or client key.
            timeout_seconds: Timeout for each HTTP call.
            session: Optional pre-configured session (tests).

        Raises:
            ValueError: If the API key is empty.
        """
        if not api_key.strip():
            raise ValueError("Crossmint API key is required")

        self._timeout = timeout_seconds
        self._base_url = (
            CROSSMINT_STAGING_URL if "staging" in api_key else CROSSMINT_PRODUCTION_URL
        )
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "X-API-KEY": api_key.strip(),
                "Content-Type": "application/json",
                "User-Agent": "hr-airdrop-orchestrator",
            }
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def get_or_create_wallet(self, email: str) -> ProvisionedWallet:
        existing = self._find_wallet(email)
        if existing is not None:
            logger.info("Found existing custodial wallet", extra={"email": email})
            return ProvisionedWallet(email=email, address=existing)

        created = self._create_wallet(email)
        logger.info("Created custodial wallet", extra={"email": email})
        return ProvisionedWallet(email=email, address=created)

    def _find_wallet(self, email: str) -> str | None:
        try:
            resp = self._session.get(
                self._base_url, params={"email": email}, timeout=self._timeout
            )
        except requests.RequestException as e:
            raise ExecutionError(f"Crossmint lookup failed for {email}: {e}") from e

        if resp.status_code == 404:
            return None
        self._raise_for_status(resp, action="lookup")

        data: Any = _json_body(resp, action="lookup")
        wallets = data.get("wallets") if isinstance(data, dict) else data
        if not isinstance(wallets, list):
            return None
        for wallet in wallets:
            if isinstance(wallet, dict) and str(wallet.get("type", "")).startswith("solana-"):
                return _wallet_address(wallet)
        return None

    def _create_wallet(self, email: str) -> str:
        payload = {"type": CROSSMINT_WALLET_TYPE, "linkedUser": f"email:{email}"}
        try:
            resp = self._session.post(self._base_url, json=payload, timeout=self._timeout)
        except requests.RequestException as e:
            raise ExecutionError(f"Crossmint wallet creation failed for {email}: {e}") from e

        self._raise_for_status(resp, action="create")
        data: Any = _json_body(resp, action="create")
        address = _wallet_address(data) if isinstance(data, dict) else None
        if address is None:
            raise ExecutionError(
                f"Crossmint returned no wallet address for {email}", details={"response": data}
            )
        return address

    @staticmethod
    def _raise_for_status(resp: requests.Response, *, action: str) -> None:
        if resp.ok:
            return
        raise ExecutionError(
            f"Crossmint API error during {action}: HTTP {resp.status_code}",
            details={"status": resp.status_code, "body": resp.text[:500]},
        )


def _json_body(resp: requests.Response, *, action: str) -> Any:
    try:
        return resp.json()
    except ValueError as e:
        raise ExecutionError(
            f"Crossmint API returned a non-JSON response during {action}",
            details={"status": resp.status_code, "body": resp.text[:500]},
        ) from e


def _wallet_address(wallet: dict[str, Any]) -> str | None:
    addresses = wallet.get("addresses")
    if isinstance(addresses, dict) and isinstance(addresses.get("solana"), str):
        return addresses["solana"]
    for key in ("address", "publicKey", "walletId"):
        value = wallet.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


class FallbackCustodyProvider(WalletCustodyProvider):
    """Delegates to a simulated provider when the live one fails.

    The result carries `simulated=True` so callers can label it.
    """

    def __init__(self, primary: WalletCustodyProvider, fallback: WalletCustodyProvider) -> None:
        self._primary = primary
        self._fallback = fallback

    def get_or_create_wallet(self, email: str) -> ProvisionedWallet:
        try:
            return self._primary.get_or_create_wallet(email)
        except ExecutionError as e:
            logger.warning(
                "Custody provider failed, falling back to simulation",
                extra={"email": email, "error": e.message},
            )
            return self._fallback.get_or_create_wallet(email)
