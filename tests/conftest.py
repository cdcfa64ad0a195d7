"""Shared test fixtures.

The Solana RPC is replaced by FakeAmmRpc, an in-memory stand-in that
decodes submitted transactions and applies the AMM program's
initialize / set_fee / set_fee_to rules, including its rejections.
No validator or network access is needed.
"""
from __future__ import annotations

import asyncio
import json
import struct
from types import SimpleNamespace

import httpx
import pytest
from solana.rpc.core import RPCException
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from amm_admin.solana.client import SolanaClient
from amm_admin.solana.deserialize import (
    BASIS_POINTS,
    CONFIG_DISC,
    ConfigAccount,
    deserialize_config,
)
from amm_admin.solana.instructions import (
    INITIALIZE_DISC,
    SET_FEE_DISC,
    SET_FEE_TO_DISC,
)
from amm_admin.solana.pda import derive_config_pda
from amm_admin.workflow import AdminContext, ConfigWorkflow

PROGRAM_ID = Pubkey.from_string("4sRbFuajHVG181psKiK7G2JBSzbcvVD9RBVbo72DE9TQ")
SYSTEM_PROGRAM = "11111111111111111111111111111111"


# ---------------------------------------------------------------------------
# Fake RPC emulating the deployed AMM program
# ---------------------------------------------------------------------------

def serialize_config(account: ConfigAccount) -> bytes:
    """Account bytes as the program would store them."""
    return (
        CONFIG_DISC
        + bytes([account.bump])
        + bytes(account.owner)
        + bytes(account.fee_to)
        + struct.pack("<Q", account.fee)
    )


def _rejection(message: str, logs: list[str]) -> RPCException:
    payload = SimpleNamespace(
        message=f"Transaction simulation failed: {message}",
        data=SimpleNamespace(logs=logs),
    )
    return RPCException(payload)


def _anchor_error(program_id: Pubkey, account: str, code: str, number: int, text: str):
    return _rejection(
        f"Error processing Instruction 0: custom program error: {hex(number)}",
        [
            f"Program {program_id} invoke [1]",
            f"Program log: AnchorError caused by account: {account}. "
            f"Error Code: {code}. Error Number: {number}. Error Message: {text}.",
            f"Program {program_id} failed: custom program error: {hex(number)}",
        ],
    )


class FakeAmmRpc:
    def __init__(self, program_id: Pubkey = PROGRAM_ID) -> None:
        self.program_id = program_id
        self.config_address, self.config_bump = derive_config_pda(program_id)
        self.accounts: dict[Pubkey, bytes] = {}
        self.unfunded: set[Pubkey] = set()
        self.sent: list[Transaction] = []
        self.landed: list[Transaction] = []
        self.unreachable = False
        self.stall_confirmations = False
        self.closed = False

    # -- AsyncClient surface --

    async def get_latest_blockhash(self, commitment=None):
        self._check_reachable()
        return SimpleNamespace(value=SimpleNamespace(blockhash=Hash(bytes([7] * 32))))

    async def send_transaction(self, tx: Transaction, opts=None):
        self._check_reachable()
        self.sent.append(tx)
        self._execute(tx)
        self.landed.append(tx)
        return SimpleNamespace(value=tx.signatures[0])

    async def confirm_transaction(
        self, tx_sig, commitment=None, sleep_seconds=0.5, last_valid_block_height=None
    ):
        if self.stall_confirmations:
            await asyncio.sleep(3600)
        return SimpleNamespace(value=[SimpleNamespace(err=None)])

    async def get_account_info(self, pubkey: Pubkey, commitment=None):
        self._check_reachable()
        data = self.accounts.get(pubkey)
        if data is None:
            return SimpleNamespace(value=None)
        return SimpleNamespace(value=SimpleNamespace(data=data, owner=self.program_id))

    async def close(self) -> None:
        self.closed = True

    # -- Helpers --

    def config(self) -> ConfigAccount | None:
        data = self.accounts.get(self.config_address)
        return deserialize_config(data) if data is not None else None

    def _check_reachable(self) -> None:
        if self.unreachable:
            raise httpx.ConnectError("[Errno 111] Connection refused")

    def _execute(self, tx: Transaction) -> None:
        msg = tx.message
        keys = list(msg.account_keys)
        payer = keys[0]
        if payer in self.unfunded:
            raise _rejection(
                "Attempt to debit an account but found no record of a prior credit.",
                [],
            )
        for cix in msg.instructions:
            assert keys[cix.program_id_index] == self.program_id
            accounts = [keys[i] for i in bytes(cix.accounts)]
            data = bytes(cix.data)
            disc, args = data[:8], data[8:]
            if disc == INITIALIZE_DISC:
                self._initialize(accounts, args)
            elif disc == SET_FEE_DISC:
                self._set_fee(accounts, args)
            elif disc == SET_FEE_TO_DISC:
                self._set_fee_to(accounts, args)
            else:
                raise _anchor_error(
                    self.program_id, "-", "InstructionFallbackNotFound", 101,
                    "Fallback functions are not supported",
                )

    def _check_fee(self, fee: int) -> None:
        if fee >= BASIS_POINTS:
            raise _anchor_error(self.program_id, "-", "InvalidFee", 6000, "Invalid fee")

    def _initialize(self, accounts: list[Pubkey], args: bytes) -> None:
        owner, config = accounts[0], accounts[1]
        if config in self.accounts:
            raise _rejection(
                "Error processing Instruction 0: custom program error: 0x0",
                [
                    f"Program {self.program_id} invoke [1]",
                    "Program log: Instruction: Initialize",
                    f"Program {SYSTEM_PROGRAM} invoke [2]",
                    f"Allocate: account Address {{ address: {config}, base: None }} already in use",
                    f"Program {SYSTEM_PROGRAM} failed: custom program error: 0x0",
                ],
            )
        if config != self.config_address:
            raise _anchor_error(
                self.program_id, "config", "ConstraintSeeds", 2006,
                "A seeds constraint was violated",
            )
        fee_to = Pubkey.from_bytes(args[:32])
        (fee,) = struct.unpack_from("<Q", args, 32)
        self._check_fee(fee)
        self.accounts[config] = serialize_config(
            ConfigAccount(bump=self.config_bump, owner=owner, fee_to=fee_to, fee=fee)
        )

    def _load_owned(self, accounts: list[Pubkey]) -> ConfigAccount:
        signer, config = accounts[0], accounts[1]
        if config not in self.accounts:
            raise _anchor_error(
                self.program_id, "config", "AccountNotInitialized", 3012,
                "The program expected this account to be already initialized",
            )
        current = deserialize_config(self.accounts[config])
        if current.owner != signer:
            raise _anchor_error(
                self.program_id, "config", "ConstraintHasOne", 2001,
                "A has one constraint was violated",
            )
        return current

    def _set_fee(self, accounts: list[Pubkey], args: bytes) -> None:
        current = self._load_owned(accounts)
        (fee,) = struct.unpack_from("<Q", args, 0)
        self._check_fee(fee)
        current.fee = fee
        self.accounts[accounts[1]] = serialize_config(current)

    def _set_fee_to(self, accounts: list[Pubkey], args: bytes) -> None:
        current = self._load_owned(accounts)
        current.fee_to = Pubkey.from_bytes(args[:32])
        self.accounts[accounts[1]] = serialize_config(current)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def program_id() -> Pubkey:
    return PROGRAM_ID


@pytest.fixture
def owner() -> Keypair:
    return Keypair()


@pytest.fixture
def intruder() -> Keypair:
    return Keypair()


@pytest.fixture
def fee_recipient() -> Pubkey:
    return Pubkey.new_unique()


@pytest.fixture
def fake_rpc(program_id) -> FakeAmmRpc:
    return FakeAmmRpc(program_id)


@pytest.fixture
def solana_client(fake_rpc) -> SolanaClient:
    return SolanaClient(
        "http://fake-validator:8899",
        commitment="processed",
        confirm_timeout=0.2,
        poll_interval=0,
        rpc=fake_rpc,
    )


@pytest.fixture
def context(program_id, solana_client) -> AdminContext:
    return AdminContext.create(program_id, solana_client)


@pytest.fixture
def workflow(context) -> ConfigWorkflow:
    return ConfigWorkflow(context)


@pytest.fixture
def keypair_file(tmp_path, owner):
    """Write the owner keypair the way `solana-keygen` does."""
    path = tmp_path / "id.json"
    path.write_text(json.dumps(list(bytes(owner))))
    return path
