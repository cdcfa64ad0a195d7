from __future__ import annotations

import json
import logging
from pathlib import Path

from solders.keypair import Keypair

from amm_admin.errors import CredentialLoadError

logger = logging.getLogger(__name__)


def load_keypair(path: str | Path) -> Keypair:
    """Load a Solana keypair from a JSON file (array of 64 bytes)."""
    kp_path = Path(path).expanduser()
    if not kp_path.exists():
        raise CredentialLoadError(str(kp_path), "file not found")
    try:
        with open(kp_path) as f:
            key_data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise CredentialLoadError(str(kp_path), str(e)) from e

    if not isinstance(key_data, list):
        raise CredentialLoadError(str(kp_path), "expected a JSON array of bytes")
    try:
        keypair = Keypair.from_bytes(bytes(key_data))
    except (TypeError, ValueError) as e:
        raise CredentialLoadError(str(kp_path), str(e)) from e

    logger.debug("Keypair loaded", extra={"path": str(kp_path), "pubkey": str(keypair.pubkey())})
    return keypair
