"""Configuration for the airdrop orchestrator.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Nothing is required at startup. Missing API keys degrade gracefully: the tools
that need them ask the caller to supply one, or fall back to simulated
collaborators when `AIRDROP_SIMULATION_MODE` is enabled.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SOLANA_RPC_URL = "https://api.devnet.solana.com"
HELIUS_RPC_URL_TEMPLATE = "https://devnet.helius-rpc.com/?api-key={api_key}"


class AirdropSettings(BaseSettings):
    """Settings for the airdrop orchestrator.

    Environment variables:
    - SOLANA_RPC_URL            (optional)
    - HELIUS_API_KEY            (optional)
    - CROSSMINT_API_KEY         (optional)
    - RESEND_API_KEY            (optional)
    - RESEND_DOMAIN             (optional)
    - LOG_LEVEL                 (optional)
    - AIRDROP_KEYPAIR_PATH      (optional)
    - AIRDROP_SIMULATION_MODE   (optional)
    - AIRDROP_EMAIL_TEMPLATE_PATH   (optional)
    - AIRDROP_CUSTODY_MAX_WORKERS   (optional)
    - AIRDROP_HTTP_TIMEOUT_SECONDS  (optional)
    - AIRDROP_HOST, AIRDROP_PORT    (optional; REST server bind)
    - AIRDROP_CORS_ORIGINS          (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `AirdropSettings(_env_file=path_to_env)`.
    """

    solana_rpc_url: str = Field(
        default=DEFAULT_SOLANA_RPC_URL,
        validation_alias="SOLANA_RPC_URL",
        description="Solana JSON-RPC endpoint used for balances, minting and transfers",
    )
    helius_api_key: str = Field(
        default="",
        validation_alias="HELIUS_API_KEY",
        description="Optional Helius key; when set, distribution batches go through Helius RPC",
    )

    crossmint_api_key: str = Field(
        default="",
        validation_alias="CROSSMINT_API_KEY",
        description="Crossmint API key used for custodial wallet provisioning",
    )

    resend_api_key: str = Field(
        default="",
        validation_alias="RESEND_API_KEY",
        description="Resend API key used to notify employees",
    )
    resend_domain: str = Field(
        default="",
        validation_alias="RESEND_DOMAIN",
        description="Verified sender domain appended to bare sender names",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    keypair_path: Path = Field(
        default=Path("token-creator-wallet.json"),
        validation_alias="AIRDROP_KEYPAIR_PATH",
        description="Where the distribution-funding keypair is stored (sensitive)",
    )
    email_template_path: Path | None = Field(
        default=None,
        validation_alias="AIRDROP_EMAIL_TEMPLATE_PATH",
        description="Optional HTML template for wallet notification emails",
    )

    simulation_mode: bool = Field(
        default=False,
        validation_alias="AIRDROP_SIMULATION_MODE",
        description=(
            "If true, collaborators without credentials are replaced by simulated ones "
            "instead of prompting the caller for an API key."
        ),
    )
    custody_max_workers: int = Field(
        default=8,
        validation_alias="AIRDROP_CUSTODY_MAX_WORKERS",
        ge=1,
        le=64,
        description="Concurrent custody-provider calls during wallet generation",
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        validation_alias="AIRDROP_HTTP_TIMEOUT_SECONDS",
        gt=0,
        description="Timeout applied to every outbound HTTP call",
    )

    host: str = Field(default="127.0.0.1", validation_alias="AIRDROP_HOST")
    port: int = Field(default=8787, validation_alias="AIRDROP_PORT", ge=1, le=65535)
    cors_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173",
        validation_alias="AIRDROP_CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins.",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    def parsed_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def distribution_rpc_url(self) -> str:
        """RPC endpoint used for batch submission."""

        if self.helius_api_key.strip():
            return HELIUS_RPC_URL_TEMPLATE.format(api_key=self.helius_api_key.strip())
        return self.solana_rpc_url
