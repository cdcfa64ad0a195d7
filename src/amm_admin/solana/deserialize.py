"""Deserialize the on-chain Config account.

Layout matches the Anchor #[account] struct in programs/amm/src/state/config.rs.
The account starts with an 8-byte Anchor discriminator (SHA256("account:Config")[:8]).
"""
from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass

from solders.pubkey import Pubkey

from amm_admin.errors import InvalidAccountData

# Fee rates are basis points; the program rejects fee >= BASIS_POINTS
BASIS_POINTS = 10_000

CONFIG_ACCOUNT_SIZE = 8 + 1 + 32 + 32 + 8


def _anchor_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"account:{name}".encode()).digest()[:8]


CONFIG_DISC = _anchor_discriminator("Config")


@dataclass
class ConfigAccount:
    bump: int  # u8
    owner: Pubkey
    fee_to: Pubkey
    fee: int  # u64 basis points

    @property
    def fee_percent(self) -> float:
        return self.fee / 100


def deserialize_config(data: bytes) -> ConfigAccount:
    """Deserialize a Config account from raw bytes.

    Layout (after 8-byte discriminator):
      1   bump (u8)
      32  owner (Pubkey)
      32  fee_to (Pubkey)
      8   fee (u64)
    """
    if data[:8] != CONFIG_DISC:
        raise InvalidAccountData("Invalid Config discriminator")
    if len(data) < CONFIG_ACCOUNT_SIZE:
        raise InvalidAccountData(
            f"Config account too short: {len(data)} bytes, need {CONFIG_ACCOUNT_SIZE}"
        )

    offset = 8
    bump = data[offset]; offset += 1
    owner = Pubkey.from_bytes(data[offset:offset + 32]); offset += 32
    fee_to = Pubkey.from_bytes(data[offset:offset + 32]); offset += 32
    (fee,) = struct.unpack_from("<Q", data, offset); offset += 8

    return ConfigAccount(bump=bump, owner=owner, fee_to=fee_to, fee=fee)
