"""Ledger clients: balances, minting and batched token transfers.

The workflow talks to the ledger through `LedgerClient` only. Instructions are
expressed in a small vocabulary (`CreateTokenAccount`, `TokenTransfer`) and each
client turns them into whatever its backend needs.
"""

from __future__ import annotations

import itertools
import logging
import secrets
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal

from hr_airdrop_orchestrator.orchestrator.errors import ExecutionError
from hr_airdrop_orchestrator.orchestrator.keystore import FundingIdentity

logger = logging.getLogger(__name__)

DEFAULT_SIMULATED_BALANCE = 1.0


@dataclass(frozen=True, slots=True)
class CreateTokenAccount:
    """Create the destination token account of `owner` for the batch's mint."""

    owner: str


@dataclass(frozen=True, slots=True)
class TokenTransfer:
    """Transfer `amount` base units from the payer's token account to `owner`'s."""

    owner: str
    amount: int


BatchInstruction = CreateTokenAccount | TokenTransfer


def to_base_units(amount: float, decimals: int) -> int:
    """Scale a whole-token amount to the mint's smallest unit.

    Decimal arithmetic avoids float artefacts (0.1 * 10**9); any remainder below
    one base unit is truncated.
    """
    scaled = Decimal(str(amount)) * (Decimal(10) ** decimals)
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))


@dataclass(frozen=True, slots=True)
class Balance:
    sol: float
    simulated: bool = False


@dataclass(frozen=True, slots=True)
class MintReceipt:
    mint_address: str
    transaction_id: str
    simulated: bool = False


@dataclass(frozen=True, slots=True)
class TxReceipt:
    transaction_id: str
    simulated: bool = False


class LedgerClient(ABC):
    """Abstract base class for ledger clients."""

    @abstractmethod
    def get_balance(self, address: str) -> Balance:
        """Return the native (SOL) balance of `address`."""
        pass

    @abstractmethod
    def create_mint(
        self,
        payer: FundingIdentity,
        *,
        name: str,
        symbol: str,
        supply: int,
        decimals: int,
    ) -> MintReceipt:
        """Create a mint and credit the whole supply to the payer's token account.

        Args:
            payer: Identity paying fees and holding mint authority.
            name: Token name.
            symbol: Token symbol.
            supply: Whole-token supply.
            decimals: Mint decimals in [0, 9].

        Returns:
            The new mint address and the transaction that created it.
        """
        pass

    @abstractmethod
    def add_liquidity(
        self,
        payer: FundingIdentity,
        *,
        mint_address: str,
        token_amount: float,
        sol_amount: float,
    ) -> TxReceipt:
        """Commit tokens and SOL to a liquidity position for the mint."""
        pass

    @abstractmethod
    def token_account_exists(self, owner: str, mint_address: str) -> bool:
        """Return True if `owner` already holds a token account for the mint."""
        pass

    @abstractmethod
    def submit_batch(
        self,
        payer: FundingIdentity,
        *,
        mint_address: str,
        decimals: int,
        instructions: list[BatchInstruction],
    ) -> str:
        """Submit `instructions` as one atomic transaction and wait for confirmation.

        Returns:
            The transaction identifier.

        Raises:
            ExecutionError: If the transaction is rejected or not confirmed.
        """
        pass


class SimulatedLedger(LedgerClient):
    """In-memory ledger used for rehearsals and tests.

    Batches are applied atomically: an invalid instruction rejects the whole
    batch and leaves balances unchanged.
    """

    def __init__(self, *, default_balance: float = DEFAULT_SIMULATED_BALANCE) -> None:
        self._lock = threading.Lock()
        self._default_balance = default_balance
        self._sol: dict[str, float] = {}
        self._mints: dict[str, int] = {}
        self._token_accounts: dict[tuple[str, str], int] = {}
        self._counter = itertools.count(1)
        self.submitted_batches: list[list[BatchInstruction]] = []

    def fund(self, address: str, sol: float) -> None:
        with self._lock:
            self._sol[address] = sol

    def token_balance(self, owner: str, mint_address: str) -> int:
        with self._lock:
            return self._token_accounts.get((owner, mint_address), 0)

    def get_balance(self, address: str) -> Balance:
        with self._lock:
            return Balance(sol=self._sol.get(address, self._default_balance), simulated=True)

    def create_mint(
        self,
        payer: FundingIdentity,
        *,
        name: str,
        symbol: str,
        supply: int,
        decimals: int,
    ) -> MintReceipt:
        mint_address = f"TokenMint{secrets.token_hex(8)}"
        with self._lock:
            self._mints[mint_address] = decimals
            self._token_accounts[(payer.public_key, mint_address)] = to_base_units(supply, decimals)
        logger.info(
            "Simulated mint created",
            extra={"mint": mint_address, "symbol": symbol, "supply": supply},
        )
        return MintReceipt(
            mint_address=mint_address, transaction_id=self._signature(), simulated=True
        )

    def add_liquidity(
        self,
        payer: FundingIdentity,
        *,
        mint_address: str,
        token_amount: float,
        sol_amount: float,
    ) -> TxReceipt:
        with self._lock:
            balance = self._sol.get(payer.public_key, self._default_balance)
            self._sol[payer.public_key] = max(balance - sol_amount, 0.0)
        return TxReceipt(transaction_id=self._signature(), simulated=True)

    def token_account_exists(self, owner: str, mint_address: str) -> bool:
        with self._lock:
            return (owner, mint_address) in self._token_accounts

    def submit_batch(
        self,
        payer: FundingIdentity,
        *,
        mint_address: str,
        decimals: int,
        instructions: list[BatchInstruction],
    ) -> str:
        with self._lock:
            if mint_address not in self._mints:
                raise ExecutionError(f"Unknown mint: {mint_address}")

            accounts = dict(self._token_accounts)
            source = (payer.public_key, mint_address)
            for instruction in instructions:
                if isinstance(instruction, CreateTokenAccount):
                    accounts.setdefault((instruction.owner, mint_address), 0)
                    continue
                dest = (instruction.owner, mint_address)
                if dest not in accounts:
                    raise ExecutionError(
                        f"Destination token account missing for {instruction.owner}"
                    )
                if accounts.get(source, 0) < instruction.amount:
                    raise ExecutionError("Insufficient token balance in source account")
                accounts[source] -= instruction.amount
                accounts[dest] += instruction.amount

            self._token_accounts = accounts
            self.submitted_batches.append(list(instructions))
        return self._signature()

    def _signature(self) -> str:
        return f"simtx_{next(self._counter):06d}_{secrets.token_hex(6)}"


class FallbackLedgerClient(LedgerClient):
    """Falls back to a simulated ledger when live reads or setup calls fail.

    Batch submission is never downgraded: a failed transfer must surface.
    """

    def __init__(self, primary: LedgerClient, fallback: LedgerClient) -> None:
        self._primary = primary
        self._fallback = fallback

    def get_balance(self, address: str) -> Balance:
        try:
            return self._primary.get_balance(address)
        except ExecutionError as e:
            self._warn("get_balance", e)
            return self._fallback.get_balance(address)

    def create_mint(
        self,
        payer: FundingIdentity,
        *,
        name: str,
        symbol: str,
        supply: int,
        decimals: int,
    ) -> MintReceipt:
        kwargs = {"name": name, "symbol": symbol, "supply": supply, "decimals": decimals}
        try:
            return self._primary.create_mint(payer, **kwargs)
        except ExecutionError as e:
            self._warn("create_mint", e)
            return self._fallback.create_mint(payer, **kwargs)

    def add_liquidity(
        self,
        payer: FundingIdentity,
        *,
        mint_address: str,
        token_amount: float,
        sol_amount: float,
    ) -> TxReceipt:
        kwargs = {"mint_address": mint_address, "token_amount": token_amount, "sol_amount": sol_amount}
        try:
            return self._primary.add_liquidity(payer, **kwargs)
        except ExecutionError as e:
            self._warn("add_liquidity", e)
            return self._fallback.add_liquidity(payer, **kwargs)

    def token_account_exists(self, owner: str, mint_address: str) -> bool:
        return self._primary.token_account_exists(owner, mint_address)

    def submit_batch(
        self,
        payer: FundingIdentity,
        *,
        mint_address: str,
        decimals: int,
        instructions: list[BatchInstruction],
    ) -> str:
        return self._primary.submit_batch(
            payer, mint_address=mint_address, decimals=decimals, instructions=instructions
        )

    @staticmethod
    def _warn(operation: str, error: ExecutionError) -> None:
        logger.warning(
            "Ledger call failed, falling back to simulation",
            extra={"operation": operation, "error": error.message},
        )
