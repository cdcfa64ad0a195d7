from __future__ import annotations


class AdminError(Exception):
    """Base class for every failure the admin workflow reports to the operator."""

    kind = "AdminError"


class CredentialLoadError(AdminError):
    """Raised when the operator keypair file is missing or malformed."""

    kind = "CredentialLoadError"

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Could not load keypair from {path}: {reason}")


class InvalidAddress(AdminError):
    kind = "InvalidAddress"

    def __init__(self, value: str) -> None:
        self.value = value
        super().__init__(f"'{value}' is not a valid base58 Solana address")


class InvalidAmount(AdminError):
    kind = "InvalidAmount"

    def __init__(self, value: object, reason: str) -> None:
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid fee percentage {value!r}: {reason}")


class DerivationExhausted(AdminError):
    """Raised when no bump in range yields an off-curve program address."""

    kind = "DerivationExhausted"

    def __init__(self, seeds: list[bytes], program_id: str) -> None:
        self.seeds = seeds
        self.program_id = program_id
        super().__init__(
            f"Unable to find a viable bump for seeds {seeds!r} under program {program_id}"
        )


class NetworkUnreachable(AdminError):
    kind = "NetworkUnreachable"


class ConfirmationTimeout(AdminError):
    """Raised when the requested commitment was not observed within the wait window.

    The transaction may still land; check the account before resubmitting.
    """

    kind = "Timeout"

    def __init__(self, signature: str | None, waited: float) -> None:
        self.signature = signature
        self.waited = waited
        super().__init__(
            f"Transaction {signature or '<unsent>'} not confirmed after {waited:g}s"
        )


class SimulationFailed(AdminError):
    """The program rejected the instruction. Retrying will not help."""

    kind = "SimulationFailed"

    def __init__(self, message: str, logs: list[str] | None = None) -> None:
        self.logs = logs or []
        super().__init__(message)


class AlreadyInitialized(SimulationFailed):
    def __init__(self, config_address: str, logs: list[str] | None = None) -> None:
        self.config_address = config_address
        super().__init__(
            f"Config account {config_address} is already initialized", logs
        )


class Unauthorized(SimulationFailed):
    kind = "Unauthorized"

    def __init__(self, signer: str, logs: list[str] | None = None) -> None:
        self.signer = signer
        super().__init__(f"{signer} is not the recorded owner of the config account", logs)


class InsufficientFunds(AdminError):
    kind = "InsufficientFunds"

    def __init__(self, payer: str, logs: list[str] | None = None) -> None:
        self.payer = payer
        self.logs = logs or []
        super().__init__(f"Fee payer {payer} cannot cover rent or transaction fees")


class InvalidAccountData(AdminError):
    """The account at the config address does not hold a Config layout."""

    kind = "InvalidAccountData"
