"""Solana JSON-RPC ledger client.

Transactions are assembled and signed with `solders`; everything else is plain
JSON-RPC over `requests`.
"""

from __future__ import annotations

import base64
import itertools
import logging
import struct
import time
from typing import Any

import requests
from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.system_program import CreateAccountParams, create_account
from solders.transaction import Transaction

from hr_airdrop_orchestrator.orchestrator.errors import ExecutionError
from hr_airdrop_orchestrator.orchestrator.keystore import FundingIdentity
from hr_airdrop_orchestrator.providers.ledger import (
    Balance,
    BatchInstruction,
    CreateTokenAccount,
    LedgerClient,
    MintReceipt,
    TokenTransfer,
    TxReceipt,
    to_base_units,
)

logger = logging.getLogger(__name__)

TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
ASSOCIATED_TOKEN_PROGRAM_ID = Pubkey.from_string("ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL")

LAMPORTS_PER_SOL = 1_000_000_000
MINT_ACCOUNT_SIZE = 82

# SPL token program instruction tags.
_MINT_TO = 7
_TRANSFER_CHECKED = 12
_INITIALIZE_MINT2 = 20
# Associated token account program: CreateIdempotent.
_CREATE_ATA_IDEMPOTENT = 1


def associated_token_address(owner: Pubkey, mint: Pubkey) -> Pubkey:
    address, _bump = Pubkey.find_program_address(
        [bytes(owner), bytes(TOKEN_PROGRAM_ID), bytes(mint)],
        ASSOCIATED_TOKEN_PROGRAM_ID,
    )
    return address


def create_token_account_instruction(payer: Pubkey, owner: Pubkey, mint: Pubkey) -> Instruction:
    return Instruction(
        ASSOCIATED_TOKEN_PROGRAM_ID,
        bytes([_CREATE_ATA_IDEMPOTENT]),
        [
            AccountMeta(payer, is_signer=True, is_writable=True),
            AccountMeta(associated_token_address(owner, mint), is_signer=False, is_writable=True),
            AccountMeta(owner, is_signer=False, is_writable=False),
            AccountMeta(mint, is_signer=False, is_writable=False),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
        ],
    )


def transfer_checked_instruction(
    owner: Pubkey, mint: Pubkey, destination_owner: Pubkey, amount: int, decimals: int
) -> Instruction:
    return Instruction(
        TOKEN_PROGRAM_ID,
        struct.pack("<BQB", _TRANSFER_CHECKED, amount, decimals),
        [
            AccountMeta(associated_token_address(owner, mint), is_signer=False, is_writable=True),
            AccountMeta(mint, is_signer=False, is_writable=False),
            AccountMeta(
                associated_token_address(destination_owner, mint),
                is_signer=False,
                is_writable=True,
            ),
            AccountMeta(owner, is_signer=True, is_writable=False),
        ],
    )


def initialize_mint_instruction(mint: Pubkey, decimals: int, authority: Pubkey) -> Instruction:
    # Trailing zero byte: no freeze authority.
    data = struct.pack("<BB", _INITIALIZE_MINT2, decimals) + bytes(authority) + b"\x00"
    return Instruction(
        TOKEN_PROGRAM_ID, data, [AccountMeta(mint, is_signer=False, is_writable=True)]
    )


def mint_to_instruction(mint: Pubkey, authority: Pubkey, amount: int) -> Instruction:
    return Instruction(
        TOKEN_PROGRAM_ID,
        struct.pack("<BQ", _MINT_TO, amount),
        [
            AccountMeta(mint, is_signer=False, is_writable=True),
            AccountMeta(associated_token_address(authority, mint), is_signer=False, is_writable=True),
            AccountMeta(authority, is_signer=True, is_writable=False),
        ],
    )


def _pubkey(value: str) -> Pubkey:
    try:
        return Pubkey.from_string(value)
    except ValueError as e:
        raise ExecutionError(f"Not a valid Solana address: {value}") from e


class SolanaRpcLedger(LedgerClient):
    """Live ledger client for a Solana JSON-RPC endpoint."""

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout_seconds: float = 30.0,
        confirm_timeout_seconds: float = 60.0,
        poll_interval_seconds: float = 1.0,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the RPC client.

        Args:
            rpc_url: JSON-RPC endpoint.
            timeout_seconds: Timeout for each HTTP call.
            confirm_timeout_seconds: How long to wait for a submitted transaction.
            poll_interval_seconds: Delay between signature status polls.
            session: Optional pre-configured session (tests).
        """
        if not rpc_url.strip():
            raise ValueError("Solana RPC URL is required")

        self._rpc_url = rpc_url.strip()
        self._timeout = timeout_seconds
        self._confirm_timeout = confirm_timeout_seconds
        self._poll_interval = poll_interval_seconds
        self._session = session or requests.Session()
        self._ids = itertools.count(1)

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    def get_balance(self, address: str) -> Balance:
        result = self._call("getBalance", [address, {"commitment": "confirmed"}])
        lamports = int(result["value"])
        return Balance(sol=lamports / LAMPORTS_PER_SOL)

    def create_mint(
        self,
        payer: FundingIdentity,
        *,
        name: str,
        symbol: str,
        supply: int,
        decimals: int,
    ) -> MintReceipt:
        signer = payer.keypair()
        authority = signer.pubkey()
        mint_keypair = Keypair()
        mint = mint_keypair.pubkey()

        rent = int(self._call("getMinimumBalanceForRentExemption", [MINT_ACCOUNT_SIZE]))
        instructions = [
            create_account(
                CreateAccountParams(
                    from_pubkey=authority,
                    to_pubkey=mint,
                    lamports=rent,
                    space=MINT_ACCOUNT_SIZE,
                    owner=TOKEN_PROGRAM_ID,
                )
            ),
            initialize_mint_instruction(mint, decimals, authority),
            create_token_account_instruction(authority, authority, mint),
            mint_to_instruction(mint, authority, to_base_units(supply, decimals)),
        ]
        signature = self._send(instructions, [signer, mint_keypair])
        logger.info(
            "Token mint created",
            extra={"mint": str(mint), "symbol": symbol, "token_name": name, "signature": signature},
        )
        return MintReceipt(mint_address=str(mint), transaction_id=signature)

    def add_liquidity(
        self,
        payer: FundingIdentity,
        *,
        mint_address: str,
        token_amount: float,
        sol_amount: float,
    ) -> TxReceipt:
        """Prepare the payer's position for the mint.

        Only the payer's token account is ensured here; opening a market pool is
        left to the DEX tooling of the operator's choice.
        """
        signer = payer.keypair()
        mint = _pubkey(mint_address)
        signature = self._send(
            [create_token_account_instruction(signer.pubkey(), signer.pubkey(), mint)], [signer]
        )
        logger.info(
            "Liquidity position prepared",
            extra={"mint": mint_address, "token_amount": token_amount, "sol_amount": sol_amount},
        )
        return TxReceipt(transaction_id=signature)

    def token_account_exists(self, owner: str, mint_address: str) -> bool:
        account = associated_token_address(
            _pubkey(owner), _pubkey(mint_address)
        )
        result = self._call("getAccountInfo", [str(account), {"encoding": "base64"}])
        return result.get("value") is not None

    def submit_batch(
        self,
        payer: FundingIdentity,
        *,
        mint_address: str,
        decimals: int,
        instructions: list[BatchInstruction],
    ) -> str:
        signer = payer.keypair()
        sender = signer.pubkey()
        mint = _pubkey(mint_address)

        compiled: list[Instruction] = []
        for instruction in instructions:
            owner = _pubkey(instruction.owner)
            if isinstance(instruction, CreateTokenAccount):
                compiled.append(create_token_account_instruction(sender, owner, mint))
            elif isinstance(instruction, TokenTransfer):
                compiled.append(
                    transfer_checked_instruction(sender, mint, owner, instruction.amount, decimals)
                )
        return self._send(compiled, [signer])

    def _send(self, instructions: list[Instruction], signers: list[Keypair]) -> str:
        blockhash_result = self._call("getLatestBlockhash", [{"commitment": "confirmed"}])
        blockhash = Hash.from_string(blockhash_result["value"]["blockhash"])

        message = Message.new_with_blockhash(instructions, signers[0].pubkey(), blockhash)
        transaction = Transaction(signers, message, blockhash)
        encoded = base64.b64encode(bytes(transaction)).decode("ascii")

        signature = self._call(
            "sendTransaction",
            [encoded, {"encoding": "base64", "preflightCommitment": "confirmed"}],
        )
        self._confirm(str(signature))
        return str(signature)

    def _confirm(self, signature: str) -> None:
        deadline = time.monotonic() + self._confirm_timeout
        while time.monotonic() < deadline:
            result = self._call("getSignatureStatuses", [[signature]])
            status = (result.get("value") or [None])[0]
            if status is not None:
                if status.get("err") is not None:
                    raise ExecutionError(
                        f"Transaction {signature} failed",
                        details={"signature": signature, "error": status["err"]},
                    )
                if status.get("confirmationStatus") in ("confirmed", "finalized"):
                    return
            time.sleep(self._poll_interval)
        raise ExecutionError(
            f"Transaction {signature} was not confirmed in time",
            details={"signature": signature},
        )

    def _call(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            resp = self._session.post(self._rpc_url, json=payload, timeout=self._timeout)
            resp.raise_for_status()
            body = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise ExecutionError(f"Solana RPC {method} failed: {e}") from e

        if not isinstance(body, dict):
            raise ExecutionError(f"Solana RPC {method} returned an invalid response")
        if body.get("error") is not None:
            error = body["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ExecutionError(
                f"Solana RPC {method} error: {message}", details={"error": error}
            )
        return body.get("result")
