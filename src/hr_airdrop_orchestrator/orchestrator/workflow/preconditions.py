"""Named workflow preconditions.

Each operation declares an ordered list of these; the orchestrator evaluates
them before the handler runs and raises on the first one that does not hold.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from hr_airdrop_orchestrator.orchestrator.errors import PreconditionError

from .state_machine import WorkflowState


@dataclass(frozen=True, slots=True)
class Precondition:
    missing: str
    message: str
    check: Callable[[WorkflowState], bool]

    def holds(self, state: WorkflowState) -> bool:
        return self.check(state)


WALLET_CONNECTED = Precondition(
    missing="connected_wallet",
    message="No wallet connected. Please connect a wallet first.",
    check=lambda s: s.connected_wallet is not None,
)

TOKEN_CREATED = Precondition(
    missing="created_token",
    message="No token created. Please create a token first.",
    check=lambda s: s.created_token is not None,
)

NO_TOKEN_YET = Precondition(
    missing="no_created_token",
    message="A token has already been created in this session.",
    check=lambda s: s.created_token is None,
)

EMPLOYEES_LOADED = Precondition(
    missing="employees",
    message="No employees added. Please generate wallets first.",
    check=lambda s: len(s.registry) > 0,
)

AMOUNTS_CALCULATED = Precondition(
    missing="token_amounts",
    message="Token amounts not calculated for all employees. Please calculate amounts first.",
    check=lambda s: all(e.token_amount is not None for e in s.employees),
)

AIRDROP_NOT_COMPLETED = Precondition(
    missing="airdrop_not_completed",
    message="The airdrop has already been completed.",
    check=lambda s: not s.airdrop_status.completed,
)

AIRDROP_COMPLETED = Precondition(
    missing="airdrop_completed",
    message="Airdrop not completed. Please start the airdrop first.",
    check=lambda s: s.airdrop_status.completed,
)


def require(state: WorkflowState, preconditions: Sequence[Precondition]) -> None:
    """Raise `PreconditionError` for the first precondition that does not hold."""

    for precondition in preconditions:
        if not precondition.holds(state):
            raise PreconditionError(precondition.message, missing=precondition.missing)
