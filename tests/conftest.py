"""Test configuration and fixtures."""

from __future__ import annotations

from pathlib import Path

import base58
import pytest
from solders.keypair import Keypair

from hr_airdrop_orchestrator.orchestrator.config import AirdropSettings
from hr_airdrop_orchestrator.orchestrator.keystore import FundingIdentity
from hr_airdrop_orchestrator.orchestrator.workflow.orchestrator import AirdropOrchestrator
from hr_airdrop_orchestrator.providers.factory import ProviderFactory

SETTINGS_ENV_VARS = (
    "SOLANA_RPC_URL",
    "HELIUS_API_KEY",
    "CROSSMINT_API_KEY",
    "RESEND_API_KEY",
    "RESEND_DOMAIN",
    "LOG_LEVEL",
    "AIRDROP_KEYPAIR_PATH",
    "AIRDROP_EMAIL_TEMPLATE_PATH",
    "AIRDROP_SIMULATION_MODE",
    "AIRDROP_CUSTODY_MAX_WORKERS",
    "AIRDROP_HTTP_TIMEOUT_SECONDS",
    "AIRDROP_HOST",
    "AIRDROP_PORT",
    "AIRDROP_CORS_ORIGINS",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove settings variables inherited from the developer's shell."""
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def keypair_path(tmp_path: Path) -> Path:
    return tmp_path / "funding-keypair.json"


@pytest.fixture
def settings(
    clean_env: None, keypair_path: Path, monkeypatch: pytest.MonkeyPatch
) -> AirdropSettings:
    """Simulation-mode settings: no live service is ever contacted."""
    monkeypatch.setenv("AIRDROP_SIMULATION_MODE", "true")
    monkeypatch.setenv("AIRDROP_KEYPAIR_PATH", str(keypair_path))
    return AirdropSettings(_env_file=None)


@pytest.fixture
def live_settings(
    clean_env: None, keypair_path: Path, monkeypatch: pytest.MonkeyPatch
) -> AirdropSettings:
    """Settings without simulation mode and without any API key."""
    monkeypatch.setenv("AIRDROP_KEYPAIR_PATH", str(keypair_path))
    return AirdropSettings(_env_file=None)


@pytest.fixture
def factory(settings: AirdropSettings) -> ProviderFactory:
    return ProviderFactory(settings)


@pytest.fixture
def orchestrator(settings: AirdropSettings, factory: ProviderFactory) -> AirdropOrchestrator:
    return AirdropOrchestrator(settings, factory=factory)


@pytest.fixture
def funding_identity() -> FundingIdentity:
    return FundingIdentity.from_keypair(Keypair())


@pytest.fixture
def private_key(funding_identity: FundingIdentity) -> str:
    """The funding identity's secret key, base58 encoded."""
    return base58.b58encode(funding_identity.secret_key).decode("ascii")
