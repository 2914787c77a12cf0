"""Network fee estimates for an airdrop (in SOL)."""

from __future__ import annotations

from dataclasses import dataclass

from hr_airdrop_orchestrator.orchestrator.errors import ValidationError

ACCOUNT_CREATION_FEE_PER_RECIPIENT = 0.00001
TRANSACTION_FEE_PER_RECIPIENT = 0.000005

TOKEN_CREATION_FEE = 0.01
LIQUIDITY_SOL = 1.0
POOL_OPENING_FEE = 0.2
AIRDROP_FEE_PER_EMPLOYEE = 0.00001

# Budget quoted by `check_balance` before anything else is known.
REQUIRED_SOL_PER_EMPLOYEE = 0.1


@dataclass(frozen=True, slots=True)
class FeeEstimate:
    account_creation_fee: float
    transaction_fee: float
    total_fee: float

    def to_json(self) -> dict[str, float]:
        return {
            "accountCreationFee": self.account_creation_fee,
            "transactionFee": self.transaction_fee,
            "totalFee": self.total_fee,
        }


@dataclass(frozen=True, slots=True)
class FundingEstimate:
    token_creation_fee: float
    liquidity_fee: float
    pool_opening_fee: float
    airdrop_fee: float
    total_fee: float


def estimate_fees(recipient_count: int) -> FeeEstimate:
    """Estimate account-creation and signature fees for `recipient_count` transfers.

    Linear in the recipient count; zero recipients cost nothing.
    """

    _require_count(recipient_count)
    account_creation_fee = ACCOUNT_CREATION_FEE_PER_RECIPIENT * recipient_count
    transaction_fee = TRANSACTION_FEE_PER_RECIPIENT * recipient_count
    return FeeEstimate(
        account_creation_fee=account_creation_fee,
        transaction_fee=transaction_fee,
        total_fee=account_creation_fee + transaction_fee,
    )


def estimate_total_sol_needed(employee_count: int) -> FundingEstimate:
    """Estimate the SOL needed for the whole workflow: mint, pool and airdrop."""

    _require_count(employee_count)
    airdrop_fee = AIRDROP_FEE_PER_EMPLOYEE * employee_count
    return FundingEstimate(
        token_creation_fee=TOKEN_CREATION_FEE,
        liquidity_fee=LIQUIDITY_SOL,
        pool_opening_fee=POOL_OPENING_FEE,
        airdrop_fee=airdrop_fee,
        total_fee=TOKEN_CREATION_FEE + LIQUIDITY_SOL + POOL_OPENING_FEE + airdrop_fee,
    )


def required_airdrop_budget(employee_count: int) -> float:
    # At least one employee is assumed so the quote is never zero.
    return REQUIRED_SOL_PER_EMPLOYEE * max(employee_count, 1)


def _require_count(count: int) -> None:
    if isinstance(count, bool) or not isinstance(count, int) or count < 0:
        raise ValidationError(
            f"Recipient count must be a non-negative integer, got {count!r}",
            details={"count": count},
        )
