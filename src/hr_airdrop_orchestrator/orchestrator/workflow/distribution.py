"""Batched token distribution.

Recipients are split into consecutive batches of at most `BATCH_SIZE`. Each
batch is one atomic ledger transaction; batches run strictly in order and the
first failing batch aborts the run.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from hr_airdrop_orchestrator.orchestrator.errors import ExecutionError, PreconditionError
from hr_airdrop_orchestrator.orchestrator.keystore import FundingIdentity
from hr_airdrop_orchestrator.providers.ledger import (
    BatchInstruction,
    CreateTokenAccount,
    LedgerClient,
    TokenTransfer,
    to_base_units,
)

logger = logging.getLogger(__name__)

# Keeps one batch under the ledger's per-transaction instruction ceiling.
BATCH_SIZE = 5

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Recipient:
    address: str
    amount: float | None = None


@dataclass(frozen=True, slots=True)
class BatchResult:
    index: int
    recipients: tuple[str, ...]
    transaction_id: str | None = None
    error: str | None = None
    created_accounts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_json(self) -> dict[str, object]:
        return {
            "index": self.index,
            "recipients": list(self.recipients),
            "transactionId": self.transaction_id,
            "error": self.error,
            "createdAccounts": self.created_accounts,
        }


@dataclass
class DistributionResult:
    batch_results: list[BatchResult] = field(default_factory=list)

    @property
    def transaction_ids(self) -> list[str]:
        return [b.transaction_id for b in self.batch_results if b.transaction_id is not None]

    @property
    def batch_sizes(self) -> list[int]:
        return [len(b.recipients) for b in self.batch_results]


class DistributionAborted(ExecutionError):
    """A batch failed; `result` holds every batch attempted so far."""

    def __init__(self, message: str, *, result: DistributionResult) -> None:
        super().__init__(
            message, details={"batches": [b.to_json() for b in result.batch_results]}
        )
        self.result = result


def partition(items: Sequence[T], size: int = BATCH_SIZE) -> list[list[T]]:
    """Split `items` into consecutive slices of at most `size`."""

    if size < 1:
        raise ValueError("Batch size must be positive")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class DistributionEngine:
    """Submits token transfers to a ledger in sequential batches."""

    def __init__(
        self,
        ledger: LedgerClient,
        sender: FundingIdentity,
        *,
        batch_size: int = BATCH_SIZE,
    ) -> None:
        self._ledger = ledger
        self._sender = sender
        self._batch_size = batch_size

    def distribute(
        self,
        mint_address: str,
        decimals: int,
        recipients: Sequence[Recipient],
        default_amount: float,
    ) -> DistributionResult:
        """Distribute tokens to `recipients`.

        Args:
            mint_address: Mint of the distributed token.
            decimals: Mint decimals used to scale amounts.
            recipients: Wallet addresses with their whole-token amounts.
            default_amount: Used for recipients without an amount.

        Returns:
            One `BatchResult` per batch, all successful.

        Raises:
            PreconditionError: If the sender holds no token account for the mint.
            DistributionAborted: On the first batch that fails to submit.
        """
        if not self._ledger.token_account_exists(self._sender.public_key, mint_address):
            raise PreconditionError(
                "Sender has no token account for this mint. Create the token first.",
                missing="sender_token_account",
            )

        result = DistributionResult()
        batches = partition(recipients, self._batch_size)
        logger.info(
            "Starting distribution",
            extra={"mint": mint_address, "recipients": len(recipients), "batches": len(batches)},
        )

        for index, batch in enumerate(batches):
            addresses = tuple(r.address for r in batch)
            try:
                instructions = self._build_instructions(mint_address, decimals, batch, default_amount)
                created = sum(isinstance(i, CreateTokenAccount) for i in instructions)
                transaction_id = self._ledger.submit_batch(
                    self._sender,
                    mint_address=mint_address,
                    decimals=decimals,
                    instructions=instructions,
                )
            except ExecutionError as e:
                result.batch_results.append(
                    BatchResult(index=index, recipients=addresses, error=e.message)
                )
                logger.error(
                    "Distribution batch failed; aborting",
                    extra={"batch": index, "error": e.message},
                )
                raise DistributionAborted(
                    f"Airdrop batch {index + 1} of {len(batches)} failed: {e.message}",
                    result=result,
                ) from e

            result.batch_results.append(
                BatchResult(
                    index=index,
                    recipients=addresses,
                    transaction_id=transaction_id,
                    created_accounts=created,
                )
            )
            logger.info(
                "Distribution batch confirmed",
                extra={"batch": index, "size": len(batch), "signature": transaction_id},
            )

        return result

    def _build_instructions(
        self,
        mint_address: str,
        decimals: int,
        batch: Sequence[Recipient],
        default_amount: float,
    ) -> list[BatchInstruction]:
        instructions: list[BatchInstruction] = []
        for recipient in batch:
            if not self._ledger.token_account_exists(recipient.address, mint_address):
                instructions.append(CreateTokenAccount(owner=recipient.address))
            amount = recipient.amount if recipient.amount is not None else default_amount
            instructions.append(
                TokenTransfer(owner=recipient.address, amount=to_base_units(amount, decimals))
            )
        return instructions
