"""Per-employee token allocation."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from hr_airdrop_orchestrator.orchestrator.errors import PreconditionError

from .models import EmployeeRecord, Role

DEFAULT_ROLE_AMOUNTS: dict[Role, float] = {
    Role.OPERATIONAL: 100,
    Role.DEVELOPER: 200,
    Role.MANAGER: 300,
    Role.VP: 400,
    Role.VIP: 500,
}
DEFAULT_AMOUNT: float = 100


@dataclass(frozen=True, slots=True)
class AllocationResult:
    employees: list[EmployeeRecord]
    total_amount: float


def allocate(
    employees: Sequence[EmployeeRecord],
    uniform_amount: float | None = None,
    role_amounts: Mapping[Role, float] | None = None,
) -> AllocationResult:
    """Assign `token_amount` to every employee.

    A uniform amount wins over roles. Otherwise the role table is used, with
    `role_amounts` overriding the defaults per role. Employees without a role get
    the default amount. Returns a new list; the input records are untouched.

    Supply is not checked here.
    """

    if not employees:
        raise PreconditionError(
            "No employees added. Please generate wallets first.", missing="employees"
        )

    table = dict(DEFAULT_ROLE_AMOUNTS)
    if role_amounts:
        table.update(role_amounts)

    allocated: list[EmployeeRecord] = []
    total = 0.0
    for employee in employees:
        if uniform_amount is not None:
            amount = uniform_amount
        elif employee.role is not None:
            amount = table.get(employee.role, DEFAULT_AMOUNT)
        else:
            amount = DEFAULT_AMOUNT
        total += amount
        allocated.append(employee.model_copy(update={"token_amount": amount}))

    return AllocationResult(employees=allocated, total_amount=total)
