"""Unit tests for token allocation."""

from __future__ import annotations

import pytest

from hr_airdrop_orchestrator.orchestrator.errors import PreconditionError
from hr_airdrop_orchestrator.orchestrator.workflow.allocation import allocate
from hr_airdrop_orchestrator.orchestrator.workflow.models import EmployeeRecord, Role


def _employees() -> list[EmployeeRecord]:
    return [
        EmployeeRecord(email="a@x.com", wallet_address="wallet-a", role=Role.DEVELOPER),
        EmployeeRecord(email="b@x.com", wallet_address="wallet-b", role=Role.MANAGER),
    ]


def test_default_role_table() -> None:
    result = allocate(_employees())

    amounts = {e.email: e.token_amount for e in result.employees}
    assert amounts == {"a@x.com": 200, "b@x.com": 300}
    assert result.total_amount == 500


def test_uniform_amount_ignores_roles() -> None:
    result = allocate(_employees(), uniform_amount=50)

    assert [e.token_amount for e in result.employees] == [50, 50]
    assert result.total_amount == 100


def test_role_amounts_override_defaults_per_role() -> None:
    result = allocate(_employees(), role_amounts={Role.DEVELOPER: 250})

    assert [e.token_amount for e in result.employees] == [250, 300]
    assert result.total_amount == 550


def test_employee_without_role_gets_default() -> None:
    employees = [EmployeeRecord(email="c@x.com", wallet_address="wallet-c")]
    result = allocate(employees)
    assert result.employees[0].token_amount == 100


def test_allocation_is_deterministic() -> None:
    employees = _employees()
    first = allocate(employees)
    second = allocate(employees)

    assert first == second
    assert sum(e.token_amount or 0 for e in first.employees) == first.total_amount


def test_input_records_are_not_mutated() -> None:
    employees = _employees()
    allocate(employees)
    assert all(e.token_amount is None for e in employees)


def test_empty_registry_is_a_precondition_failure() -> None:
    with pytest.raises(PreconditionError) as exc_info:
        allocate([])
    assert exc_info.value.missing == "employees"
