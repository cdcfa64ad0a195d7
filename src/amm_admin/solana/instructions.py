"""Build Solana instructions for the AMM program's admin instructions.

Each builder produces a `solders.instruction.Instruction` with:
  - Anchor discriminator: SHA256("global:<name>")[:8]
  - Serialized args (little-endian)
  - Account metas matching the Anchor #[derive(Accounts)] structs
"""
from __future__ import annotations

import hashlib
import struct

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID

from amm_admin.solana.pda import derive_config_pda

RENT_SYSVAR_ID = Pubkey.from_string("SysvarRent111111111111111111111111111111111")

U64_MAX = 2**64 - 1


def _discriminator(name: str) -> bytes:
    """Anchor instruction discriminator: SHA256("global:<name>")[:8]."""
    return hashlib.sha256(f"global:{name}".encode()).digest()[:8]


INITIALIZE_DISC = _discriminator("initialize")
SET_FEE_DISC = _discriminator("set_fee")
SET_FEE_TO_DISC = _discriminator("set_fee_to")


def _pack_u64(value: int) -> bytes:
    if not 0 <= value <= U64_MAX:
        raise ValueError(f"value out of u64 range: {value}")
    return struct.pack("<Q", value)


def _owner_accounts(
    owner: Pubkey, config: Pubkey
) -> list[AccountMeta]:
    return [
        AccountMeta(owner, is_signer=True, is_writable=True),
        AccountMeta(config, is_signer=False, is_writable=True),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]


# --- initialize ---
def build_initialize_ix(
    program_id: Pubkey,
    owner: Pubkey,
    fee_to: Pubkey,
    fee: int,
    config: Pubkey | None = None,
) -> Instruction:
    if config is None:
        config, _ = derive_config_pda(program_id)
    data = INITIALIZE_DISC + bytes(fee_to) + _pack_u64(fee)
    accounts = _owner_accounts(owner, config) + [
        AccountMeta(RENT_SYSVAR_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(program_id, data, accounts)


# --- set_fee ---
def build_set_fee_ix(
    program_id: Pubkey,
    owner: Pubkey,
    fee: int,
    config: Pubkey | None = None,
) -> Instruction:
    if config is None:
        config, _ = derive_config_pda(program_id)
    data = SET_FEE_DISC + _pack_u64(fee)
    return Instruction(program_id, data, _owner_accounts(owner, config))


# --- set_fee_to ---
def build_set_fee_to_ix(
    program_id: Pubkey,
    owner: Pubkey,
    new_fee_to: Pubkey,
    config: Pubkey | None = None,
) -> Instruction:
    if config is None:
        config, _ = derive_config_pda(program_id)
    data = SET_FEE_TO_DISC + bytes(new_fee_to)
    return Instruction(program_id, data, _owner_accounts(owner, config))
