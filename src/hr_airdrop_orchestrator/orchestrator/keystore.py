"""Local storage for the distribution-funding keypair.

The keypair file holds the 64-byte secret key as a JSON integer array (the
format used by the Solana CLI). It is created on first use and reused after
that. Treat it as sensitive: it is written with owner-only permissions.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import base58
from solders.keypair import Keypair

from hr_airdrop_orchestrator.orchestrator.errors import ExecutionError, ValidationError

logger = logging.getLogger(__name__)

SECRET_KEY_LENGTH = 64


@dataclass(frozen=True, slots=True)
class FundingIdentity:
    """A signing identity that pays for minting and distribution."""

    public_key: str
    secret_key: bytes = field(repr=False)

    def keypair(self) -> Keypair:
        return Keypair.from_bytes(self.secret_key)

    @classmethod
    def from_keypair(cls, keypair: Keypair) -> FundingIdentity:
        return cls(public_key=str(keypair.pubkey()), secret_key=bytes(keypair))


def identity_from_private_key(private_key: str) -> FundingIdentity:
    """Parse a base64 or base58 encoded 64-byte secret key."""

    text = private_key.strip()
    if not text:
        raise ValidationError("Private key is required.")

    raw = _decode_secret(text)
    if len(raw) != SECRET_KEY_LENGTH:
        raise ValidationError(
            "Invalid private key format. Provide a base64 or base58 encoded secret key."
        )
    try:
        return FundingIdentity.from_keypair(Keypair.from_bytes(raw))
    except ValueError as e:
        raise ValidationError(f"Invalid private key: {e}") from e


def _decode_secret(text: str) -> bytes:
    try:
        raw = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        raw = b""
    if len(raw) == SECRET_KEY_LENGTH:
        return raw
    try:
        return base58.b58decode(text)
    except ValueError:
        return b""


class KeypairStore:
    """Load or create the funding keypair file."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def load_or_create(self) -> FundingIdentity:
        if self._path.exists():
            return self._load()
        return self._create()

    def _load(self) -> FundingIdentity:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ExecutionError(f"Failed to load keypair file {self._path}: {e}") from e

        if not isinstance(raw, list) or len(raw) != SECRET_KEY_LENGTH:
            raise ExecutionError(
                f"Keypair file {self._path} must contain a {SECRET_KEY_LENGTH}-byte array"
            )
        try:
            keypair = Keypair.from_bytes(bytes(raw))
        except (TypeError, ValueError) as e:
            raise ExecutionError(f"Keypair file {self._path} is not a valid keypair: {e}") from e

        identity = FundingIdentity.from_keypair(keypair)
        logger.info("Loaded funding keypair", extra={"public_key": identity.public_key})
        return identity

    def _create(self) -> FundingIdentity:
        keypair = Keypair()
        identity = FundingIdentity.from_keypair(keypair)

        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(list(identity.secret_key), f)

        logger.warning(
            "Created new funding keypair; keep the file secure",
            extra={"path": str(self._path), "public_key": identity.public_key},
        )
        return identity
