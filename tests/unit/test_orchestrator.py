"""Unit tests for the airdrop orchestrator (tool dispatch against one workflow state)."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from hr_airdrop_orchestrator.orchestrator.config import AirdropSettings
from hr_airdrop_orchestrator.orchestrator.errors import ExecutionError
from hr_airdrop_orchestrator.orchestrator.keystore import FundingIdentity
from hr_airdrop_orchestrator.orchestrator.workflow.models import (
    AirdropStatus,
    ConnectedWallet,
    EmployeeRecord,
)
from hr_airdrop_orchestrator.orchestrator.workflow.orchestrator import AirdropOrchestrator
from hr_airdrop_orchestrator.orchestrator.workflow.registry import EmployeeRegistry
from hr_airdrop_orchestrator.orchestrator.workflow.state_machine import WorkflowState
from hr_airdrop_orchestrator.providers.factory import ProviderFactory
from hr_airdrop_orchestrator.providers.ledger import BatchInstruction, SimulatedLedger

EMPLOYEES = "\n".join(f"Employee {i},employee{i}@acme.test" for i in range(7))


class FlakyLedger(SimulatedLedger):
    def __init__(self, fail_on: int) -> None:
        super().__init__()
        self.fail_on = fail_on
        self.attempts = 0

    def submit_batch(
        self,
        payer: FundingIdentity,
        *,
        mint_address: str,
        decimals: int,
        instructions: list[BatchInstruction],
    ) -> str:
        self.attempts += 1
        if self.attempts == self.fail_on:
            raise ExecutionError("transaction not confirmed")
        return super().submit_batch(
            payer, mint_address=mint_address, decimals=decimals, instructions=instructions
        )


def _ok(orchestrator: AirdropOrchestrator, name: str, arguments: dict[str, Any] | None = None):
    result = orchestrator.dispatch(name, arguments)
    assert not result.is_error, result.text
    return result


def _prepare_airdrop(orchestrator: AirdropOrchestrator, private_key: str) -> None:
    _ok(orchestrator, "connect_wallet", {"privateKey": private_key})
    _ok(orchestrator, "create_token", {"name": "Acme", "symbol": "ACME", "supply": 1_000_000})
    _ok(orchestrator, "generate_wallets", {"employees": EMPLOYEES})
    _ok(orchestrator, "calculate_amounts", {"uniformAmount": 250})


@pytest.mark.parametrize(
    ("tool", "arguments", "missing"),
    [
        ("check_balance", {}, "connected_wallet"),
        ("create_token", {"name": "A", "symbol": "A", "supply": 1}, "connected_wallet"),
        ("add_liquidity", {"tokenAmount": 1, "solAmount": 0.1}, "connected_wallet"),
        ("generate_wallets", {"employees": "a@acme.test"}, "connected_wallet"),
        ("calculate_amounts", {}, "employees"),
        ("calculate_fees", {}, "employees"),
        ("start_airdrop", {}, "employees"),
        ("send_emails", {"fromEmail": "hr@acme.test"}, "employees"),
    ],
)
def test_preconditions_on_empty_state(
    orchestrator: AirdropOrchestrator, tool: str, arguments: dict[str, Any], missing: str
) -> None:
    before = orchestrator.snapshot()

    result = orchestrator.dispatch(tool, arguments)

    assert result.is_error
    assert result.error_kind == "precondition_error"
    assert result.data["error"]["details"]["missing"] == missing
    assert orchestrator.snapshot() == before


def test_start_airdrop_checks_preconditions_in_order(
    orchestrator: AirdropOrchestrator, private_key: str
) -> None:
    _ok(orchestrator, "connect_wallet", {"privateKey": private_key})
    _ok(orchestrator, "generate_wallets", {"employees": EMPLOYEES})

    result = orchestrator.dispatch("start_airdrop")
    assert result.data["error"]["details"]["missing"] == "created_token"

    _ok(orchestrator, "create_token", {"name": "Acme", "symbol": "ACME", "supply": 10_000})
    result = orchestrator.dispatch("start_airdrop")
    assert result.data["error"]["details"]["missing"] == "token_amounts"


def test_full_simulated_workflow(
    orchestrator: AirdropOrchestrator, factory: ProviderFactory, private_key: str
) -> None:
    connected = _ok(orchestrator, "connect_wallet", {"privateKey": private_key})
    assert "SOL Balance: 1.0 SOL" in connected.text

    _ok(orchestrator, "check_balance")
    _ok(orchestrator, "create_token", {"name": "Acme", "symbol": "ACME", "supply": 1_000_000})
    _ok(orchestrator, "add_liquidity", {"tokenAmount": 1000, "solAmount": 0.5})
    _ok(orchestrator, "generate_wallets", {"employees": EMPLOYEES})
    amounts = _ok(orchestrator, "calculate_amounts", {"uniformAmount": 250})
    assert amounts.data["totalAmount"] == 1750
    assert amounts.data["warnings"] == []
    fees = _ok(orchestrator, "calculate_fees")
    assert fees.data["sufficient"] is True

    airdrop = _ok(orchestrator, "start_airdrop")
    assert airdrop.data["airdropStatus"]["completed"] is True
    assert airdrop.data["airdropStatus"]["successful"] == 7
    assert [len(b["recipients"]) for b in airdrop.data["batches"]] == [5, 2]

    emails = _ok(orchestrator, "send_emails", {"fromEmail": "hr@acme.test"})
    assert emails.data["emailStatus"] == {
        "sent": True,
        "successful": 7,
        "failed": 0,
        "simulated": 7,
    }

    state = orchestrator.snapshot()
    assert state["stage"] == "emails_sent"
    assert state["liquidity"]["solAmount"] == 0.5
    assert state["connectedWallet"]["solBalance"] == pytest.approx(0.5)

    mint = state["createdToken"]["mintAddress"]
    wallet = state["employees"][0]["walletAddress"]
    assert factory.simulated_ledger.token_balance(wallet, mint) == 250 * 10**9

    sent = factory.simulated_notifier.sent
    assert len(sent) == 7
    assert sent[0].sender == "HR Team <hr@acme.test>"
    assert "Employee 0" in sent[0].html and "ACME" in sent[0].html

    again = orchestrator.dispatch("start_airdrop")
    assert again.error_kind == "precondition_error"
    assert again.data["error"]["details"]["missing"] == "airdrop_not_completed"


def test_second_token_is_rejected(orchestrator: AirdropOrchestrator, private_key: str) -> None:
    _ok(orchestrator, "connect_wallet", {"privateKey": private_key})
    first = _ok(orchestrator, "create_token", {"name": "Acme", "symbol": "ACME", "supply": 100})

    result = orchestrator.dispatch("create_token", {"name": "B", "symbol": "B", "supply": 5})

    assert result.error_kind == "precondition_error"
    assert orchestrator.snapshot()["createdToken"] == first.data["createdToken"]


def test_add_liquidity_rejects_more_sol_than_balance(
    orchestrator: AirdropOrchestrator, private_key: str
) -> None:
    _ok(orchestrator, "connect_wallet", {"privateKey": private_key})
    _ok(orchestrator, "create_token", {"name": "Acme", "symbol": "ACME", "supply": 100})

    result = orchestrator.dispatch("add_liquidity", {"tokenAmount": 10, "solAmount": 2})

    assert result.error_kind == "precondition_error"
    assert result.data["error"]["details"]["missing"] == "sol_balance"
    assert orchestrator.snapshot()["liquidity"]["solAmount"] == 0


def test_add_liquidity_rejects_more_tokens_than_supply(
    orchestrator: AirdropOrchestrator, private_key: str
) -> None:
    _ok(orchestrator, "connect_wallet", {"privateKey": private_key})
    _ok(orchestrator, "create_token", {"name": "Acme", "symbol": "ACME", "supply": 100})
    _ok(orchestrator, "add_liquidity", {"tokenAmount": 60, "solAmount": 0.1})

    result = orchestrator.dispatch("add_liquidity", {"tokenAmount": 50, "solAmount": 0.1})

    assert result.data["error"]["details"]["missing"] == "token_supply"


def test_get_state_is_idempotent(orchestrator: AirdropOrchestrator, private_key: str) -> None:
    _ok(orchestrator, "connect_wallet", {"privateKey": private_key})

    first = _ok(orchestrator, "get_state")
    second = _ok(orchestrator, "get_state")

    assert first == second
    assert first.data["stage"] == "wallet_connected"
    assert "Connected Wallet: Yes" in first.text


def test_unknown_tool(orchestrator: AirdropOrchestrator) -> None:
    result = orchestrator.dispatch("drain_treasury")

    assert result.is_error
    assert result.error_kind == "method_not_found"
    assert result.text == "Error: Unknown tool: drain_treasury"


@pytest.mark.parametrize(
    "arguments",
    [
        {"name": "Acme", "symbol": "ACME", "supply": 0},
        {"name": "Acme", "symbol": "ACME", "supply": 10, "decimals": 10},
        {"name": "Acme", "symbol": "WAYTOOLONGSYMBOL", "supply": 10},
        {"name": "Acme", "symbol": "ACME", "supply": 10, "unexpected": True},
    ],
)
def test_invalid_token_arguments(
    orchestrator: AirdropOrchestrator, private_key: str, arguments: dict[str, Any]
) -> None:
    _ok(orchestrator, "connect_wallet", {"privateKey": private_key})

    result = orchestrator.dispatch("create_token", arguments)

    assert result.error_kind == "validation_error"
    assert result.text.startswith("Error: Invalid arguments for create_token")
    assert orchestrator.snapshot()["createdToken"] is None


def test_invalid_private_key(orchestrator: AirdropOrchestrator) -> None:
    result = orchestrator.dispatch("connect_wallet", {"privateKey": "not-a-key"})

    assert result.error_kind == "validation_error"
    assert orchestrator.snapshot()["connectedWallet"] is None


def test_upload_csv_merges_roles(
    orchestrator: AirdropOrchestrator, private_key: str, tmp_path: Path
) -> None:
    _ok(orchestrator, "connect_wallet", {"privateKey": private_key})
    _ok(orchestrator, "generate_wallets", {"employees": "a@x.com\nb@x.com"})
    csv_path = tmp_path / "roles.csv"
    csv_path.write_text("email,name,role\na@x.com,Alice,developer\nb@x.com,Bob,Manager\n")

    uploaded = _ok(orchestrator, "upload_csv", {"filePath": str(csv_path)})
    amounts = _ok(orchestrator, "calculate_amounts")

    assert uploaded.data["roleDistribution"]["developer"] == 1
    assert uploaded.data["roleDistribution"]["manager"] == 1
    assert amounts.data["totalAmount"] == 500
    assert "No token created yet" in amounts.data["warnings"][0]


def test_upload_csv_invalid_role_changes_nothing(
    orchestrator: AirdropOrchestrator, private_key: str, tmp_path: Path
) -> None:
    _ok(orchestrator, "connect_wallet", {"privateKey": private_key})
    _ok(orchestrator, "generate_wallets", {"employees": "a@x.com"})
    before = orchestrator.snapshot()
    csv_path = tmp_path / "roles.csv"
    csv_path.write_text("email,role\na@x.com,Intern\n")

    result = orchestrator.dispatch("upload_csv", {"filePath": str(csv_path)})

    assert result.error_kind == "validation_error"
    assert "operational, developer, manager, VP, VIP" in result.text
    assert orchestrator.snapshot() == before


def test_role_amount_overrides(orchestrator: AirdropOrchestrator, private_key: str, tmp_path: Path) -> None:
    _ok(orchestrator, "connect_wallet", {"privateKey": private_key})
    _ok(orchestrator, "generate_wallets", {"employees": "a@x.com\nb@x.com"})
    csv_path = tmp_path / "roles.csv"
    csv_path.write_text("email,role\na@x.com,vp\nb@x.com,operational\n")
    _ok(orchestrator, "upload_csv", {"filePath": str(csv_path)})

    result = _ok(orchestrator, "calculate_amounts", {"roleAmounts": {"VP": 1000}})

    assert result.data["totalAmount"] == 1100


def test_allocation_over_supply_warns(orchestrator: AirdropOrchestrator, private_key: str) -> None:
    _ok(orchestrator, "connect_wallet", {"privateKey": private_key})
    _ok(orchestrator, "create_token", {"name": "Acme", "symbol": "ACME", "supply": 100})
    _ok(orchestrator, "generate_wallets", {"employees": "a@x.com\nb@x.com"})

    result = _ok(orchestrator, "calculate_amounts", {"uniformAmount": 80})

    assert "exceeds token supply" in result.data["warnings"][0]


def test_failed_batch_leaves_airdrop_incomplete(
    orchestrator: AirdropOrchestrator, factory: ProviderFactory, private_key: str
) -> None:
    factory.simulated_ledger = FlakyLedger(fail_on=2)
    _prepare_airdrop(orchestrator, private_key)

    result = orchestrator.dispatch("start_airdrop")

    assert result.error_kind == "execution_error"
    assert "batch 2 of 2" in result.text
    status = orchestrator.snapshot()["airdropStatus"]
    assert status["started"] is True
    assert status["completed"] is False
    assert len(status["transactionIds"]) == 1
    assert orchestrator.dispatch("send_emails", {"fromEmail": "hr@acme.test"}).error_kind == (
        "precondition_error"
    )


def test_ledger_outage_before_first_batch_restores_status(
    orchestrator: AirdropOrchestrator,
    factory: ProviderFactory,
    private_key: str,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _prepare_airdrop(orchestrator, private_key)

    def rpc_down(owner: str, mint_address: str) -> bool:
        raise ExecutionError("rpc unreachable")

    monkeypatch.setattr(factory.simulated_ledger, "token_account_exists", rpc_down)

    result = orchestrator.dispatch("start_airdrop")

    assert result.error_kind == "execution_error"
    assert factory.simulated_ledger.submitted_batches == []
    status = orchestrator.snapshot()["airdropStatus"]
    assert status["started"] is False
    assert status["transactionIds"] == []


def test_custodial_connect_creates_funding_keypair(
    orchestrator: AirdropOrchestrator, keypair_path: Path
) -> None:
    result = _ok(orchestrator, "connect_custodial_wallet", {"email": "cfo@acme.test"})

    assert keypair_path.exists()
    wallet = result.data["connectedWallet"]
    assert wallet["source"] == "custodial"
    assert wallet["simulated"] is True
    assert wallet["publicKey"].startswith("simwallet_")

    again = _ok(orchestrator, "connect_custodial_wallet", {"email": "cfo@acme.test"})
    assert again.data["fundingPublicKey"] == result.data["fundingPublicKey"]

    _ok(orchestrator, "create_token", {"name": "Acme", "symbol": "ACME", "supply": 100})


def _live_orchestrator(settings: AirdropSettings, state: WorkflowState) -> AirdropOrchestrator:
    return AirdropOrchestrator(settings, state=state)


def test_missing_crossmint_key_prompts(live_settings: AirdropSettings) -> None:
    state = WorkflowState(connected_wallet=ConnectedWallet(public_key="pk", sol_balance=2.0))
    orchestrator = _live_orchestrator(live_settings, state)

    custodial = orchestrator.dispatch("connect_custodial_wallet", {"email": "cfo@acme.test"})
    generated = orchestrator.dispatch("generate_wallets", {"employees": "a@acme.test"})

    for result in (custodial, generated):
        assert not result.is_error
        assert result.data == {"needsApiKey": "crossmint"}
        assert "Crossmint API key" in result.text
    assert len(state.registry) == 0


def test_missing_resend_key_prompts(live_settings: AirdropSettings) -> None:
    registry = EmployeeRegistry([EmployeeRecord(email="a@acme.test", wallet_address="w")])
    state = WorkflowState(registry=registry, airdrop_status=AirdropStatus(started=True, completed=True))
    orchestrator = _live_orchestrator(live_settings, state)

    result = orchestrator.dispatch("send_emails", {"fromEmail": "hr@acme.test"})

    assert not result.is_error
    assert result.data == {"needsApiKey": "resend"}
    assert state.email_status.sent is False


def test_bare_sender_without_domain_is_rejected(
    orchestrator: AirdropOrchestrator, private_key: str
) -> None:
    _prepare_airdrop(orchestrator, private_key)
    _ok(orchestrator, "start_airdrop")

    result = orchestrator.dispatch("send_emails", {"fromEmail": "hr"})

    assert result.error_kind == "validation_error"
    assert orchestrator.snapshot()["emailStatus"]["sent"] is False
