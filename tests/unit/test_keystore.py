"""Unit tests for the funding keypair store."""

from __future__ import annotations

import base64
import json
import stat
from pathlib import Path

import base58
import pytest

from hr_airdrop_orchestrator.orchestrator.errors import ExecutionError, ValidationError
from hr_airdrop_orchestrator.orchestrator.keystore import (
    FundingIdentity,
    KeypairStore,
    identity_from_private_key,
)


def test_creates_keypair_with_owner_only_permissions(keypair_path: Path) -> None:
    store = KeypairStore(keypair_path)
    assert not store.exists()

    identity = store.load_or_create()

    assert store.exists()
    assert stat.S_IMODE(keypair_path.stat().st_mode) == 0o600
    raw = json.loads(keypair_path.read_text())
    assert len(raw) == 64
    assert bytes(raw) == identity.secret_key


def test_reuses_existing_keypair(keypair_path: Path) -> None:
    first = KeypairStore(keypair_path).load_or_create()
    second = KeypairStore(keypair_path).load_or_create()

    assert first == second
    assert str(first.keypair().pubkey()) == first.public_key


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        "[1, 2, 3]",
        '{"key": 1}',
        json.dumps(["x"] * 64),
        json.dumps([None] * 64),
        json.dumps([256] * 64),
    ],
)
def test_rejects_malformed_keypair_file(keypair_path: Path, content: str) -> None:
    keypair_path.write_text(content)

    with pytest.raises(ExecutionError):
        KeypairStore(keypair_path).load_or_create()


def test_private_key_accepts_base58_and_base64(funding_identity: FundingIdentity) -> None:
    as_base58 = base58.b58encode(funding_identity.secret_key).decode("ascii")
    as_base64 = base64.b64encode(funding_identity.secret_key).decode("ascii")

    assert identity_from_private_key(as_base58) == funding_identity
    assert identity_from_private_key(f"  {as_base64}\n") == funding_identity


@pytest.mark.parametrize("value", ["", "   ", "garbage!", "3vQB7B6MrGQZaxCuFg4oh"])
def test_private_key_rejects_garbage(value: str) -> None:
    with pytest.raises(ValidationError):
        identity_from_private_key(value)


def test_secret_key_is_not_in_repr(funding_identity: FundingIdentity) -> None:
    assert "secret_key" not in repr(funding_identity)
