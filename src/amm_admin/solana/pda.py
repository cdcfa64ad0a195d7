"""PDA derivation matching the Anchor program's account seeds.

Seeds from programs/amm/src/instructions/initialize.rs:
  - CONFIG_SEED = b"config"
"""
from __future__ import annotations

from typing import Sequence

from solders.pubkey import Pubkey

from amm_admin.errors import DerivationExhausted

CONFIG_SEED = b"config"

# solders raises ValueError for oversized seeds too; this message means the candidate is on the curve
_ON_CURVE_ERROR = "do not result in a valid address"


def create_program_address(seeds: Sequence[bytes], program_id: Pubkey) -> Pubkey | None:
    """Program address for seeds (bump included), None if it lands on the curve."""
    try:
        return Pubkey.create_program_address(list(seeds), program_id)
    except ValueError as e:
        if _ON_CURVE_ERROR in str(e):
            return None
        raise ValueError(f"invalid seeds for program address: {e}") from e


def find_program_address(
    seeds: Sequence[bytes], program_id: Pubkey
) -> tuple[Pubkey, int]:
    """Search bumps 255 down to 1 for the first off-curve address.

    Same result as ``Pubkey.find_program_address``, but exhaustion raises
    DerivationExhausted instead of panicking inside the extension module.
    """
    seeds = list(seeds)
    for bump in range(255, 0, -1):
        address = create_program_address([*seeds, bytes([bump])], program_id)
        if address is not None:
            return address, bump
    raise DerivationExhausted(seeds, str(program_id))


def derive_config_pda(program_id: Pubkey) -> tuple[Pubkey, int]:
    """Derive the singleton Config PDA."""
    return find_program_address([CONFIG_SEED], program_id)
