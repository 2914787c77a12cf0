"""The tool surface: operation kinds, typed inputs and the operation table entry.

Input models expose camelCase names to clients (`privateKey`, `tokenAmount`)
and accept the snake_case field names as well.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from hr_airdrop_orchestrator.orchestrator.errors import AirdropError
from hr_airdrop_orchestrator.orchestrator.notifications import DEFAULT_SUBJECT

from .models import Role
from .preconditions import Precondition


class OperationKind(str, Enum):
    CONNECT_WALLET = "connect_wallet"
    CONNECT_CUSTODIAL_WALLET = "connect_custodial_wallet"
    CHECK_BALANCE = "check_balance"
    CREATE_TOKEN = "create_token"
    ADD_LIQUIDITY = "add_liquidity"
    GENERATE_WALLETS = "generate_wallets"
    UPLOAD_CSV = "upload_csv"
    CALCULATE_AMOUNTS = "calculate_amounts"
    CALCULATE_FEES = "calculate_fees"
    START_AIRDROP = "start_airdrop"
    SEND_EMAILS = "send_emails"
    GET_STATE = "get_state"


class ToolInput(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        str_strip_whitespace=True,
    )


class NoInput(ToolInput):
    pass


class ConnectWalletInput(ToolInput):
    private_key: str = Field(
        min_length=1, description="Secret key of the funding wallet (base58 or base64 encoded)"
    )
    rpc_url: str | None = Field(default=None, description="Solana RPC URL to use (optional)")


class ConnectCustodialWalletInput(ToolInput):
    email: str = Field(min_length=3, description="Email address linked to the custodial wallet")
    api_key: str | None = Field(default=None, description="Crossmint API key (optional)")


class CreateTokenInput(ToolInput):
    name: str = Field(min_length=1, max_length=32, description="Token name")
    symbol: str = Field(min_length=1, max_length=10, description="Token symbol")
    supply: int = Field(gt=0, description="Total token supply")
    decimals: int = Field(default=9, ge=0, le=9, description="Token decimals (default: 9)")


class AddLiquidityInput(ToolInput):
    token_amount: float = Field(gt=0, description="Amount of tokens to add to the liquidity pool")
    sol_amount: float = Field(gt=0, description="Amount of SOL to add to the liquidity pool")


class GenerateWalletsInput(ToolInput):
    employees: str = Field(
        validation_alias=AliasChoices("employees", "employeesText"),
        description='Employees in the format "name,email" (one per line, name optional)',
    )
    api_key: str | None = Field(default=None, description="Crossmint API key (optional)")


class UploadCsvInput(ToolInput):
    file_path: str = Field(
        min_length=1, description="Path to a CSV file with email, name and role columns"
    )


class RoleAmounts(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    operational: float | None = Field(default=None, gt=0)
    developer: float | None = Field(default=None, gt=0)
    manager: float | None = Field(default=None, gt=0)
    vp: float | None = Field(default=None, gt=0, alias="VP")
    vip: float | None = Field(default=None, gt=0, alias="VIP")

    def to_mapping(self) -> dict[Role, float]:
        values = {
            Role.OPERATIONAL: self.operational,
            Role.DEVELOPER: self.developer,
            Role.MANAGER: self.manager,
            Role.VP: self.vp,
            Role.VIP: self.vip,
        }
        return {role: amount for role, amount in values.items() if amount is not None}


class CalculateAmountsInput(ToolInput):
    uniform_amount: float | None = Field(
        default=None, gt=0, description="Uniform amount for every employee (ignores roles)"
    )
    role_amounts: RoleAmounts | None = Field(
        default=None, description="Token amounts by role; unset roles keep their defaults"
    )


class SendEmailsInput(ToolInput):
    from_email: str = Field(
        min_length=1, description="Sender address (e.g. hr@company.com) or bare sender name"
    )
    subject: str = Field(default=DEFAULT_SUBJECT, min_length=1, description="Email subject")
    api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("apiKey", "resendApiKey"),
        description="Resend API key (optional)",
    )


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Outcome of one tool call, independent of transport."""

    text: str
    is_error: bool = False
    error_kind: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_error(cls, error: AirdropError) -> ToolResult:
        return cls(
            text=f"Error: {error.message}",
            is_error=True,
            error_kind=error.kind,
            data={"error": error.to_json()},
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "isError": self.is_error,
            "errorKind": self.error_kind,
            "data": self.data,
        }


Handler = Callable[[Any], ToolResult]


@dataclass(frozen=True, slots=True)
class OperationSpec:
    kind: OperationKind
    description: str
    input_model: type[ToolInput]
    preconditions: tuple[Precondition, ...]
    handler: Handler

    @property
    def name(self) -> str:
        return self.kind.value

    def input_schema(self) -> dict[str, Any]:
        return self.input_model.model_json_schema(by_alias=True)
