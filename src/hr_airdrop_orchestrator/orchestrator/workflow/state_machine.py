from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .models import (
    AirdropStatus,
    ConnectedWallet,
    CreatedToken,
    EmailStatus,
    EmployeeRecord,
    LiquidityStatus,
)
from .registry import EmployeeRegistry


class WorkflowStage(str, Enum):
    NO_WALLET = "no_wallet"
    WALLET_CONNECTED = "wallet_connected"
    TOKEN_CREATED = "token_created"
    LIQUIDITY_ADDED = "liquidity_added"
    EMPLOYEES_LOADED = "employees_loaded"
    AMOUNTS_CALCULATED = "amounts_calculated"
    AIRDROP_COMPLETED = "airdrop_completed"
    EMAILS_SENT = "emails_sent"


@dataclass
class WorkflowState:
    """The single process-wide aggregate mutated by workflow operations.

    Owned by exactly one orchestrator. Handlers receive it explicitly; nothing
    else keeps a reference across calls.
    """

    connected_wallet: ConnectedWallet | None = None
    created_token: CreatedToken | None = None
    registry: EmployeeRegistry = field(default_factory=EmployeeRegistry)
    liquidity: LiquidityStatus = field(default_factory=LiquidityStatus)
    airdrop_status: AirdropStatus = field(default_factory=AirdropStatus)
    email_status: EmailStatus = field(default_factory=EmailStatus)

    @property
    def employees(self) -> list[EmployeeRecord]:
        return self.registry.records

    def to_json(self) -> dict[str, object]:
        return {
            "stage": derive_stage(self).value,
            "connectedWallet": (
                self.connected_wallet.to_json() if self.connected_wallet is not None else None
            ),
            "createdToken": (
                self.created_token.to_json() if self.created_token is not None else None
            ),
            "liquidity": self.liquidity.to_json(),
            "employees": [e.to_json() for e in self.employees],
            "airdropStatus": self.airdrop_status.to_json(),
            "emailStatus": self.email_status.to_json(),
        }


def derive_stage(state: WorkflowState) -> WorkflowStage:
    """Return the furthest stage the aggregate has reached.

    Stages are conceptual: operations gate on their own preconditions, so an
    earlier step (CSV import, allocation) may be revisited at any stage.
    """

    if state.email_status.sent:
        return WorkflowStage.EMAILS_SENT
    if state.airdrop_status.completed:
        return WorkflowStage.AIRDROP_COMPLETED
    employees = state.employees
    if employees and all(e.token_amount is not None for e in employees):
        return WorkflowStage.AMOUNTS_CALCULATED
    if employees:
        return WorkflowStage.EMPLOYEES_LOADED
    if state.created_token is not None and state.liquidity.added:
        return WorkflowStage.LIQUIDITY_ADDED
    if state.created_token is not None:
        return WorkflowStage.TOKEN_CREATED
    if state.connected_wallet is not None:
        return WorkflowStage.WALLET_CONNECTED
    return WorkflowStage.NO_WALLET
