"""The airdrop orchestrator: one workflow state, one lock, one operation table.

`AirdropOrchestrator.dispatch` is the single entrypoint used by every transport.
It never raises: every failure becomes an error `ToolResult`.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import replace
from pathlib import Path
from typing import Any

import pydantic

from hr_airdrop_orchestrator.orchestrator.config import AirdropSettings
from hr_airdrop_orchestrator.orchestrator.errors import (
    AirdropError,
    ExecutionError,
    PreconditionError,
    UnknownOperationError,
    ValidationError,
)
from hr_airdrop_orchestrator.orchestrator.keystore import (
    FundingIdentity,
    KeypairStore,
    identity_from_private_key,
)
from hr_airdrop_orchestrator.orchestrator.notifications import (
    load_template,
    render_wallet_email,
    sender_address,
)
from hr_airdrop_orchestrator.providers.factory import ProviderFactory
from hr_airdrop_orchestrator.providers.ledger import LedgerClient
from hr_airdrop_orchestrator.providers.notifier import EmailMessage

from . import preconditions as pre
from .allocation import DEFAULT_AMOUNT, allocate
from .distribution import DistributionAborted, DistributionEngine, Recipient
from .fees import estimate_fees, estimate_total_sol_needed, required_airdrop_budget
from .models import (
    AirdropStatus,
    ConnectedWallet,
    CreatedToken,
    EmailStatus,
    LiquidityStatus,
    Role,
)
from .operations import (
    AddLiquidityInput,
    CalculateAmountsInput,
    ConnectCustodialWalletInput,
    ConnectWalletInput,
    CreateTokenInput,
    GenerateWalletsInput,
    NoInput,
    OperationKind,
    OperationSpec,
    SendEmailsInput,
    ToolResult,
    UploadCsvInput,
)
from .registry import parse_employee_text, read_role_csv
from .state_machine import WorkflowState

logger = logging.getLogger(__name__)

CROSSMINT_KEY_PROMPT = (
    "{action}, I need your Crossmint API key. You can get this from the Crossmint "
    "developer dashboard at https://www.crossmint.com/\n\n"
    "Please provide your Crossmint API key to continue."
)
RESEND_KEY_PROMPT = (
    "To send emails to employees, I need your Resend API key. You can get this from "
    "the Resend dashboard at https://resend.com/\n\n"
    "Please provide your Resend API key to continue."
)
SIMULATION_NOTE = "(Note: simulated result; no live service was used for this step)"


class AirdropOrchestrator:
    """Owns the workflow state and dispatches tool calls against it.

    Calls are serialized with a single lock; handlers run one at a time and are
    the only code that mutates the state.
    """

    def __init__(
        self,
        settings: AirdropSettings,
        *,
        factory: ProviderFactory | None = None,
        state: WorkflowState | None = None,
    ) -> None:
        self._settings = settings
        self._factory = factory or ProviderFactory(settings)
        self._state = state or WorkflowState()
        self._lock = threading.Lock()
        self._signer: FundingIdentity | None = None
        self._rpc_url: str | None = None
        self._operations = self._build_operations()

    @property
    def operations(self) -> list[OperationSpec]:
        return list(self._operations.values())

    def operation(self, name: str) -> OperationSpec:
        try:
            return self._operations[OperationKind(name)]
        except ValueError as e:
            raise UnknownOperationError(name) from e

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return self._state.to_json()

    def dispatch(self, name: str, arguments: Mapping[str, Any] | None = None) -> ToolResult:
        """Run one tool call and convert every outcome into a `ToolResult`."""

        try:
            spec = self.operation(name)
            with self._lock:
                params = self._parse_input(spec, arguments or {})
                pre.require(self._state, spec.preconditions)
                logger.info("Running tool", extra={"tool": spec.name})
                return spec.handler(params)
        except AirdropError as e:
            logger.warning(
                "Tool call failed",
                extra={"tool": name, "kind": e.kind, "error": e.message},
            )
            return ToolResult.from_error(e)
        except Exception as e:
            logger.exception("Unexpected error in tool call", extra={"tool": name})
            return ToolResult(
                text=f"Error: {e}",
                is_error=True,
                error_kind="internal_error",
                data={"error": {"kind": "internal_error", "message": str(e)}},
            )

    @staticmethod
    def _parse_input(spec: OperationSpec, arguments: Mapping[str, Any]) -> Any:
        try:
            return spec.input_model.model_validate(dict(arguments))
        except pydantic.ValidationError as e:
            errors = [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
            summary = "; ".join(f"{err['field']}: {err['message']}" for err in errors)
            raise ValidationError(
                f"Invalid arguments for {spec.name}: {summary}", details={"errors": errors}
            ) from e

    def _build_operations(self) -> dict[OperationKind, OperationSpec]:
        specs = [
            OperationSpec(
                OperationKind.CONNECT_WALLET,
                "Connect a Solana wallet to the airdrop server",
                ConnectWalletInput,
                (),
                self._connect_wallet,
            ),
            OperationSpec(
                OperationKind.CONNECT_CUSTODIAL_WALLET,
                "Connect a Crossmint custodial wallet to the airdrop server",
                ConnectCustodialWalletInput,
                (),
                self._connect_custodial_wallet,
            ),
            OperationSpec(
                OperationKind.CHECK_BALANCE,
                "Check the SOL balance of the connected wallet",
                NoInput,
                (pre.WALLET_CONNECTED,),
                self._check_balance,
            ),
            OperationSpec(
                OperationKind.CREATE_TOKEN,
                "Create a new Solana token",
                CreateTokenInput,
                (pre.WALLET_CONNECTED, pre.NO_TOKEN_YET),
                self._create_token,
            ),
            OperationSpec(
                OperationKind.ADD_LIQUIDITY,
                "Add liquidity to the created token",
                AddLiquidityInput,
                (pre.WALLET_CONNECTED, pre.TOKEN_CREATED),
                self._add_liquidity,
            ),
            OperationSpec(
                OperationKind.GENERATE_WALLETS,
                "Generate custodial wallets for employees using Crossmint",
                GenerateWalletsInput,
                (pre.WALLET_CONNECTED,),
                self._generate_wallets,
            ),
            OperationSpec(
                OperationKind.UPLOAD_CSV,
                "Merge employee names and roles from a CSV file",
                UploadCsvInput,
                (),
                self._upload_csv,
            ),
            OperationSpec(
                OperationKind.CALCULATE_AMOUNTS,
                "Calculate token amounts for each employee",
                CalculateAmountsInput,
                (pre.EMPLOYEES_LOADED,),
                self._calculate_amounts,
            ),
            OperationSpec(
                OperationKind.CALCULATE_FEES,
                "Calculate network fees for the airdrop",
                NoInput,
                (pre.EMPLOYEES_LOADED, pre.WALLET_CONNECTED),
                self._calculate_fees,
            ),
            OperationSpec(
                OperationKind.START_AIRDROP,
                "Distribute the allocated tokens to employee wallets",
                NoInput,
                (
                    pre.EMPLOYEES_LOADED,
                    pre.WALLET_CONNECTED,
                    pre.TOKEN_CREATED,
                    pre.AMOUNTS_CALCULATED,
                    pre.AIRDROP_NOT_COMPLETED,
                ),
                self._start_airdrop,
            ),
            OperationSpec(
                OperationKind.SEND_EMAILS,
                "Send emails to employees with wallet access instructions",
                SendEmailsInput,
                (pre.EMPLOYEES_LOADED, pre.AIRDROP_COMPLETED),
                self._send_emails,
            ),
            OperationSpec(
                OperationKind.GET_STATE,
                "Get the current state of the airdrop process",
                NoInput,
                (),
                self._get_state,
            ),
        ]
        return {spec.kind: spec for spec in specs}

    # Collaborator selection.

    def _ledger_for(self, *, simulated: bool) -> LedgerClient:
        if simulated:
            return self._factory.simulated_ledger
        return self._factory.ledger(self._rpc_url)

    def _require_signer(self) -> FundingIdentity:
        if self._signer is None:
            raise PreconditionError(
                "No funding keypair loaded. Please connect a wallet first.", missing="signer"
            )
        return self._signer

    # Handlers.

    def _connect_wallet(self, params: ConnectWalletInput) -> ToolResult:
        identity = identity_from_private_key(params.private_key)
        self._rpc_url = params.rpc_url or None
        balance = self._ledger_for(simulated=False).get_balance(identity.public_key)

        self._signer = identity
        wallet = ConnectedWallet(
            public_key=identity.public_key,
            sol_balance=balance.sol,
            source="keypair",
            simulated=balance.simulated,
        )
        self._state.connected_wallet = wallet

        lines = [
            f"Wallet connected successfully. Public Key: {wallet.public_key}",
            f"SOL Balance: {wallet.sol_balance} SOL",
        ]
        if wallet.simulated:
            lines += ["", SIMULATION_NOTE]
        return ToolResult(text="\n".join(lines), data={"connectedWallet": wallet.to_json()})

    def _connect_custodial_wallet(self, params: ConnectCustodialWalletInput) -> ToolResult:
        custody = self._factory.custody(params.api_key)
        if custody is None:
            return _key_prompt(
                CROSSMINT_KEY_PROMPT.format(action="To connect a Crossmint wallet"), "crossmint"
            )

        provisioned = custody.get_or_create_wallet(params.email)
        store = KeypairStore(self._settings.keypair_path)
        signer = store.load_or_create()
        balance = self._ledger_for(simulated=provisioned.simulated).get_balance(
            provisioned.address
        )

        self._signer = signer
        wallet = ConnectedWallet(
            public_key=provisioned.address,
            sol_balance=balance.sol,
            source="custodial",
            simulated=provisioned.simulated or balance.simulated,
        )
        self._state.connected_wallet = wallet

        lines = [
            f"Crossmint wallet connected successfully for {params.email}.",
            f"Public Key: {wallet.public_key}",
            f"SOL Balance: {wallet.sol_balance} SOL",
            f"Funding keypair: {signer.public_key} (stored at {store.path})",
        ]
        if wallet.simulated:
            lines += ["", SIMULATION_NOTE]
        return ToolResult(
            text="\n".join(lines),
            data={"connectedWallet": wallet.to_json(), "fundingPublicKey": signer.public_key},
        )

    def _check_balance(self, _params: NoInput) -> ToolResult:
        wallet = self._state.connected_wallet
        assert wallet is not None

        if wallet.source == "keypair":
            balance = self._ledger_for(simulated=wallet.simulated).get_balance(wallet.public_key)
            wallet = replace(wallet, sol_balance=balance.sol)
            self._state.connected_wallet = wallet

        employee_count = len(self._state.registry)
        required = required_airdrop_budget(employee_count)
        sufficient = wallet.sol_balance >= required
        funding = estimate_total_sol_needed(employee_count)

        lines = [
            f"Wallet Public Key: {wallet.public_key}",
            f"Current SOL Balance: {wallet.sol_balance:.5f} SOL",
            f"Required for Airdrop: ~{required:.5f} SOL (0.1 SOL per employee)",
            f"Status: {'Sufficient balance' if sufficient else 'Insufficient balance'}",
            "",
            "Estimated SOL for the full workflow:",
            f"- Token creation: {funding.token_creation_fee} SOL",
            f"- Liquidity: {funding.liquidity_fee} SOL",
            f"- Pool opening: {funding.pool_opening_fee} SOL",
            f"- Airdrop: {funding.airdrop_fee:.5f} SOL",
            f"- Total: {funding.total_fee:.5f} SOL",
        ]
        return ToolResult(
            text="\n".join(lines),
            data={
                "publicKey": wallet.public_key,
                "solBalance": wallet.sol_balance,
                "requiredSol": required,
                "sufficient": sufficient,
                "estimatedTotalSol": funding.total_fee,
            },
        )

    def _create_token(self, params: CreateTokenInput) -> ToolResult:
        wallet = self._state.connected_wallet
        assert wallet is not None
        payer = self._require_signer()

        receipt = self._ledger_for(simulated=wallet.simulated).create_mint(
            payer,
            name=params.name,
            symbol=params.symbol,
            supply=params.supply,
            decimals=params.decimals,
        )
        token = CreatedToken(
            name=params.name,
            symbol=params.symbol,
            mint_address=receipt.mint_address,
            supply=params.supply,
            decimals=params.decimals,
            simulated=receipt.simulated,
        )
        self._state.created_token = token

        lines = [
            "Token created successfully:",
            f"Name: {token.name}",
            f"Symbol: {token.symbol}",
            f"Supply: {token.supply:,}",
            f"Decimals: {token.decimals}",
            f"Mint Address: {token.mint_address}",
            f"Transaction: {receipt.transaction_id}",
        ]
        if token.simulated:
            lines.append(SIMULATION_NOTE)
        lines += ["", "Next step: Add liquidity to give the token value."]
        return ToolResult(text="\n".join(lines), data={"createdToken": token.to_json()})

    def _add_liquidity(self, params: AddLiquidityInput) -> ToolResult:
        wallet = self._state.connected_wallet
        token = self._state.created_token
        assert wallet is not None and token is not None
        liquidity = self._state.liquidity

        if wallet.sol_balance < params.sol_amount:
            raise PreconditionError(
                f"Insufficient SOL balance. You have {wallet.sol_balance} SOL, "
                f"but {params.sol_amount} SOL is required.",
                missing="sol_balance",
            )
        if liquidity.token_amount + params.token_amount > token.supply:
            raise PreconditionError(
                f"Insufficient token supply. {params.token_amount} {token.symbol} requested, "
                f"{token.supply - liquidity.token_amount} available.",
                missing="token_supply",
            )

        payer = self._require_signer()
        receipt = self._ledger_for(simulated=token.simulated).add_liquidity(
            payer,
            mint_address=token.mint_address,
            token_amount=params.token_amount,
            sol_amount=params.sol_amount,
        )

        wallet = replace(wallet, sol_balance=wallet.sol_balance - params.sol_amount)
        self._state.connected_wallet = wallet
        self._state.liquidity = LiquidityStatus(
            token_amount=liquidity.token_amount + params.token_amount,
            sol_amount=liquidity.sol_amount + params.sol_amount,
            transaction_ids=(*liquidity.transaction_ids, receipt.transaction_id),
        )

        lines = [
            "Liquidity added successfully:",
            f"Token: {token.symbol}",
            f"Token Amount: {params.token_amount:,} {token.symbol}",
            f"SOL Amount: {params.sol_amount} SOL",
            f"Remaining SOL Balance: {wallet.sol_balance} SOL",
        ]
        if receipt.simulated:
            lines.append(SIMULATION_NOTE)
        lines += ["", "Next step: Generate wallets for employees."]
        return ToolResult(
            text="\n".join(lines),
            data={
                "liquidity": self._state.liquidity.to_json(),
                "solBalance": wallet.sol_balance,
            },
        )

    def _generate_wallets(self, params: GenerateWalletsInput) -> ToolResult:
        custody = self._factory.custody(params.api_key)
        if custody is None:
            return _key_prompt(
                CROSSMINT_KEY_PROMPT.format(
                    action="To generate custodial wallets for employees"
                ),
                "crossmint",
            )

        entries = parse_employee_text(params.employees)
        records = self._state.registry.generate(
            entries, custody, max_workers=self._settings.custody_max_workers
        )

        lines = [f"Generated {len(records)} custodial wallets successfully:"]
        for index, record in enumerate(records, start=1):
            lines.append(f"{index}. Email: {record.email}\n   Wallet: {record.wallet_address}")
        simulated = sum(1 for r in records if r.simulated_wallet)
        if simulated:
            lines += ["", f"(Note: {simulated} wallet(s) are simulated)"]
        lines += [
            "",
            "Next step: Upload a CSV file with detailed employee information (optional) "
            "or calculate token amounts.",
        ]
        return ToolResult(
            text="\n".join(lines), data={"employees": [r.to_json() for r in records]}
        )

    def _upload_csv(self, params: UploadCsvInput) -> ToolResult:
        rows = read_role_csv(Path(params.file_path).expanduser())
        records = self._state.registry.import_roles(rows)

        counts = {role: sum(1 for r in records if r.role is role) for role in Role}
        no_role = sum(1 for r in records if r.role is None)
        lines = [
            f"CSV data processed successfully. Updated {len(rows)} employee records.",
            "",
            "Role distribution:",
            *(f"- {role.value}: {count}" for role, count in counts.items()),
            f"- No role: {no_role}",
            "",
            "Next step: Calculate token amounts for each employee.",
        ]
        return ToolResult(
            text="\n".join(lines),
            data={
                "updated": len(rows),
                "roleDistribution": {role.value: count for role, count in counts.items()},
                "employees": [r.to_json() for r in records],
            },
        )

    def _calculate_amounts(self, params: CalculateAmountsInput) -> ToolResult:
        result = allocate(
            self._state.employees,
            uniform_amount=params.uniform_amount,
            role_amounts=params.role_amounts.to_mapping() if params.role_amounts else None,
        )
        self._state.registry.replace(result.employees)

        token = self._state.created_token
        warnings: list[str] = []
        if token is None:
            warnings.append("No token created yet. Please create a token with sufficient supply.")
        elif result.total_amount > token.supply:
            warnings.append(
                f"Warning: total allocation {result.total_amount:g} exceeds token supply "
                f"{token.supply}."
            )

        lines = ["Token amounts calculated successfully:"]
        for record in result.employees:
            role = record.role.value if record.role is not None else "No role"
            lines.append(f"- {record.display_name}: {record.token_amount:g} tokens ({role})")
        lines += ["", f"Total tokens to be distributed: {result.total_amount:g}"]
        if token is not None:
            lines.append(f"Token supply: {token.supply}")
        lines += warnings
        lines += ["", "Next step: Calculate gas fees for the airdrop."]
        return ToolResult(
            text="\n".join(lines),
            data={
                "employees": [r.to_json() for r in result.employees],
                "totalAmount": result.total_amount,
                "warnings": warnings,
            },
        )

    def _calculate_fees(self, _params: NoInput) -> ToolResult:
        wallet = self._state.connected_wallet
        assert wallet is not None
        employee_count = len(self._state.registry)
        fees = estimate_fees(employee_count)
        sufficient = wallet.sol_balance >= fees.total_fee

        lines = [
            f"Gas fee calculation for {employee_count} employees:",
            "",
            f"Account Creation: {fees.account_creation_fee:.6f} SOL (~0.00001 SOL per account)",
            f"Transaction Fees: {fees.transaction_fee:.6f} SOL (~0.000005 SOL per signature)",
            f"Total Fees: {fees.total_fee:.6f} SOL",
            "",
            f"Your wallet balance: {wallet.sol_balance:.6f} SOL",
            f"Status: {'Sufficient funds for fees' if sufficient else 'Insufficient funds for fees'}",
            "",
            (
                "Next step: Start the airdrop process."
                if sufficient
                else "WARNING: Your wallet does not have enough SOL to cover the gas fees. "
                "Please add more SOL to your wallet before proceeding."
            ),
        ]
        return ToolResult(
            text="\n".join(lines), data={**fees.to_json(), "sufficient": sufficient}
        )

    def _start_airdrop(self, _params: NoInput) -> ToolResult:
        token = self._state.created_token
        assert token is not None
        sender = self._require_signer()
        employees = self._state.employees

        engine = DistributionEngine(
            self._factory.distribution_ledger(simulated=token.simulated), sender
        )
        recipients = [Recipient(address=e.wallet_address, amount=e.token_amount) for e in employees]

        previous = self._state.airdrop_status
        self._state.airdrop_status = AirdropStatus(started=True)
        try:
            result = engine.distribute(token.mint_address, token.decimals, recipients, DEFAULT_AMOUNT)
        except DistributionAborted as e:
            self._state.airdrop_status = AirdropStatus(
                started=True, completed=False, transaction_ids=tuple(e.result.transaction_ids)
            )
            raise
        except (PreconditionError, ExecutionError):
            # Raised before any batch was submitted.
            self._state.airdrop_status = previous
            raise

        self._state.airdrop_status = AirdropStatus(
            started=True,
            completed=True,
            successful_count=len(employees),
            failed_count=0,
            transaction_ids=tuple(result.transaction_ids),
        )

        lines = [
            "Airdrop completed successfully:",
            f"- Total employees: {len(employees)}",
            f"- Successful transfers: {len(employees)}",
            "- Failed transfers: 0",
            f"- Batches: {len(result.batch_results)}",
            "",
            "Each employee has received their allocated tokens:",
        ]
        for record in employees:
            amount = record.token_amount if record.token_amount is not None else DEFAULT_AMOUNT
            lines.append(f"- {record.display_name}: {amount:g} {token.symbol} tokens")
        if token.simulated:
            lines += ["", SIMULATION_NOTE]
        lines += ["", "Next step: Send emails to employees with wallet access instructions."]
        return ToolResult(
            text="\n".join(lines),
            data={
                "airdropStatus": self._state.airdrop_status.to_json(),
                "batches": [b.to_json() for b in result.batch_results],
            },
        )

    def _send_emails(self, params: SendEmailsInput) -> ToolResult:
        notifier = self._factory.notifier(params.api_key)
        if notifier is None:
            return _key_prompt(RESEND_KEY_PROMPT, "resend")

        sender = sender_address(params.from_email, self._settings.resend_domain)
        template = load_template(self._settings.email_template_path)
        token = self._state.created_token
        symbol = token.symbol if token is not None else None

        successful = failed = simulated = 0
        for record in self._state.employees:
            html = render_wallet_email(
                template,
                email=record.email,
                wallet_address=record.wallet_address,
                name=record.name,
                token_amount=record.token_amount,
                token_symbol=symbol,
            )
            message = EmailMessage(to=record.email, sender=sender, subject=params.subject, html=html)
            try:
                delivery = notifier.send(message)
            except AirdropError as e:
                failed += 1
                logger.warning(
                    "Failed to notify employee", extra={"to": record.email, "error": e.message}
                )
                continue
            successful += 1
            simulated += int(delivery.simulated)

        status = EmailStatus(
            sent=True,
            successful_count=successful,
            failed_count=failed,
            simulated_count=simulated,
        )
        self._state.email_status = status

        lines = [
            "Emails sent to employees:",
            f"- Total emails: {len(self._state.registry)}",
            f"- Successfully sent: {successful}",
            f"- Failed: {failed}",
        ]
        if simulated:
            lines.append(f"- Simulated: {simulated}")
        lines += [
            "",
            "The emails contain instructions for employees to access their Crossmint "
            "custodial wallets and view their tokens.",
        ]
        return ToolResult(text="\n".join(lines), data={"emailStatus": status.to_json()})

    def _get_state(self, _params: NoInput) -> ToolResult:
        state = self._state
        wallet = state.connected_wallet
        token = state.created_token
        airdrop = state.airdrop_status

        lines = [
            "Current Airdrop State:",
            f"- Connected Wallet: {'Yes' if wallet else 'No'}",
        ]
        if wallet is not None:
            lines += [f"  Public Key: {wallet.public_key}", f"  SOL Balance: {wallet.sol_balance} SOL"]
        lines.append(f"- Created Token: {'Yes' if token else 'No'}")
        if token is not None:
            lines += [
                f"  Name: {token.name}",
                f"  Symbol: {token.symbol}",
                f"  Supply: {token.supply:,}",
                f"  Mint Address: {token.mint_address}",
            ]
        if airdrop.completed:
            airdrop_text = "Completed"
        elif airdrop.started:
            airdrop_text = "In Progress"
        else:
            airdrop_text = "Not Started"
        lines += [
            f"- Employees: {len(state.registry)}",
            f"- Airdrop Status: {airdrop_text}",
            f"- Emails Status: {'Sent' if state.email_status.sent else 'Not Sent'}",
        ]
        return ToolResult(text="\n".join(lines), data=state.to_json())


def _key_prompt(text: str, service: str) -> ToolResult:
    return ToolResult(text=text, data={"needsApiKey": service})
