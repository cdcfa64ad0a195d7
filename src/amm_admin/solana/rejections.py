"""Map RPC/simulation rejections onto the admin error taxonomy.

The RPC node returns the simulation error and program logs as text, e.g.

    Program log: AnchorError caused by account: config. Error Code:
    ConstraintHasOne. Error Number: 2001. ...
    Program 4sRb... failed: custom program error: 0x7d1

so classification is a substring match over the error and its logs.
"""
from __future__ import annotations

from amm_admin.errors import (
    AdminError,
    AlreadyInitialized,
    InsufficientFunds,
    SimulationFailed,
    Unauthorized,
)

# Anchor ConstraintHasOne (2001): signer is not config.owner
_UNAUTHORIZED_MARKERS = (
    "constrainthasone",
    "has one constraint",
    "custom program error: 0x7d1",
    "custom(2001)",
)

# System program CreateAccount on an existing address
_ALREADY_IN_USE_MARKERS = (
    "already in use",
    "accountalreadyinitialized",
)

_INSUFFICIENT_FUNDS_MARKERS = (
    "insufficient funds",
    "insufficientfundsforfee",
    "insufficientfundsforrent",
    "insufficient lamports",
    "no record of a prior credit",
    "accountnotfound",
)


def rejection_logs(exc: BaseException) -> list[str]:
    """Pull simulation logs out of an RPCException payload, if present."""
    logs: list[str] = []
    for arg in exc.args:
        data = getattr(arg, "data", None)
        found = getattr(data, "logs", None) or getattr(arg, "logs", None)
        if found:
            logs.extend(str(line) for line in found)
    return logs


def rejection_message(exc: BaseException) -> str:
    for arg in exc.args:
        message = getattr(arg, "message", None)
        if message:
            return str(message)
    return str(exc)


def classify_rejection(
    text: str,
    *,
    logs: list[str] | None = None,
    instruction: str,
    signer: str,
    config_address: str,
) -> AdminError:
    """Pick the most specific error for a rejected transaction."""
    logs = logs or []
    haystack = "\n".join([text, *logs]).lower()

    if any(m in haystack for m in _INSUFFICIENT_FUNDS_MARKERS):
        return InsufficientFunds(signer, logs)
    if instruction == "initialize" and any(m in haystack for m in _ALREADY_IN_USE_MARKERS):
        return AlreadyInitialized(config_address, logs)
    if any(m in haystack for m in _UNAUTHORIZED_MARKERS):
        return Unauthorized(signer, logs)
    return SimulationFailed(text, logs)
