"""Records held by the workflow aggregate."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from hr_airdrop_orchestrator.orchestrator.errors import ValidationError


class Role(str, Enum):
    OPERATIONAL = "operational"
    DEVELOPER = "developer"
    MANAGER = "manager"
    VP = "VP"
    VIP = "VIP"

    @classmethod
    def parse(cls, value: str) -> Role:
        """Case-insensitive lookup (`vp`, `Vp` and `VP` are the same role)."""

        needle = value.strip().lower()
        for role in cls:
            if role.value.lower() == needle:
                return role
        raise ValidationError(
            f'Invalid role "{value}". Valid roles are: {", ".join(valid_role_names())}.',
            details={"role": value, "valid_roles": valid_role_names()},
        )


def valid_role_names() -> list[str]:
    return [role.value for role in Role]


class EmployeeRecord(BaseModel):
    """One employee in the registry. `email` is the unique key."""

    model_config = ConfigDict(frozen=True)

    email: str
    wallet_address: str
    name: str | None = None
    role: Role | None = None
    token_amount: float | None = Field(default=None, ge=0)
    simulated_wallet: bool = False

    @property
    def display_name(self) -> str:
        return self.name or self.email

    def to_json(self) -> dict[str, object]:
        return {
            "email": self.email,
            "name": self.name,
            "role": self.role.value if self.role is not None else None,
            "walletAddress": self.wallet_address,
            "tokenAmount": self.token_amount,
            "simulatedWallet": self.simulated_wallet,
        }


@dataclass(frozen=True, slots=True)
class ConnectedWallet:
    public_key: str
    sol_balance: float
    source: str = "keypair"
    simulated: bool = False

    def to_json(self) -> dict[str, object]:
        return {
            "publicKey": self.public_key,
            "solBalance": self.sol_balance,
            "source": self.source,
            "simulated": self.simulated,
        }


@dataclass(frozen=True, slots=True)
class CreatedToken:
    name: str
    symbol: str
    mint_address: str
    supply: int
    decimals: int
    simulated: bool = False

    def to_json(self) -> dict[str, object]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "mintAddress": self.mint_address,
            "supply": self.supply,
            "decimals": self.decimals,
            "simulated": self.simulated,
        }


@dataclass(frozen=True, slots=True)
class AirdropStatus:
    started: bool = False
    completed: bool = False
    successful_count: int = 0
    failed_count: int = 0
    transaction_ids: tuple[str, ...] = ()

    def to_json(self) -> dict[str, object]:
        return {
            "started": self.started,
            "completed": self.completed,
            "successful": self.successful_count,
            "failed": self.failed_count,
            "transactionIds": list(self.transaction_ids),
        }


@dataclass(frozen=True, slots=True)
class EmailStatus:
    sent: bool = False
    successful_count: int = 0
    failed_count: int = 0
    simulated_count: int = 0

    def to_json(self) -> dict[str, object]:
        return {
            "sent": self.sent,
            "successful": self.successful_count,
            "failed": self.failed_count,
            "simulated": self.simulated_count,
        }


@dataclass(frozen=True, slots=True)
class LiquidityStatus:
    token_amount: float = 0.0
    sol_amount: float = 0.0
    transaction_ids: tuple[str, ...] = field(default_factory=tuple)

    @property
    def added(self) -> bool:
        return self.sol_amount > 0

    def to_json(self) -> dict[str, object]:
        return {
            "tokenAmount": self.token_amount,
            "solAmount": self.sol_amount,
            "transactionIds": list(self.transaction_ids),
        }
