"""Initialize-or-update workflow for the AMM Config account.

The engine turns operator input into a PendingAction, builds the matching
instruction and drives it through the SolanaClient. All state it needs is
held by an explicit AdminContext; nothing is read from module globals.
"""
from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Decimal, InvalidOperation, localcontext

from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from amm_admin.config import Settings
from amm_admin.errors import AdminError, AlreadyInitialized, InvalidAddress, InvalidAmount
from amm_admin.solana.client import SolanaClient
from amm_admin.solana.deserialize import BASIS_POINTS, ConfigAccount
from amm_admin.solana.instructions import (
    U64_MAX,
    build_initialize_ix,
    build_set_fee_ix,
    build_set_fee_to_ix,
)
from amm_admin.solana.pda import derive_config_pda

logger = logging.getLogger(__name__)

# Percent -> basis points
FEE_SCALE = 100
_MAX_PERCENT_EXPONENT = 18


class WorkflowState(str, enum.Enum):
    IDLE = "idle"
    AWAITING_INTENT = "awaiting_intent"
    BUILDING_INSTRUCTION = "building_instruction"
    SUBMITTING = "submitting"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class ActionKind(str, enum.Enum):
    INITIALIZE = "initialize"
    UPDATE_FEE = "set_fee"
    SET_FEE_RECIPIENT = "set_fee_to"


@dataclass
class PendingAction:
    kind: ActionKind
    fee: int | None = None
    fee_to: Pubkey | None = None
    requested_percent: Decimal | None = None
    consumed: bool = field(default=False, compare=False)

    @property
    def effective_percent(self) -> Decimal | None:
        if self.fee is None:
            return None
        return Decimal(self.fee) / FEE_SCALE

    @property
    def truncated(self) -> bool:
        """True when the requested percentage had precision below one basis point."""
        return (
            self.requested_percent is not None
            and self.effective_percent != self.requested_percent
        )

    @property
    def exceeds_program_max(self) -> bool:
        return self.fee is not None and self.fee >= BASIS_POINTS


@dataclass(frozen=True)
class SubmissionResult:
    signature: str
    action: PendingAction


@dataclass(frozen=True)
class AdminContext:
    program_id: Pubkey
    client: SolanaClient
    config_address: Pubkey
    config_bump: int
    preflight_check: bool = False

    @classmethod
    def create(
        cls,
        program_id: Pubkey,
        client: SolanaClient,
        preflight_check: bool = False,
    ) -> AdminContext:
        config_address, bump = derive_config_pda(program_id)
        return cls(program_id, client, config_address, bump, preflight_check)

    @classmethod
    def from_settings(
        cls, settings: Settings, client: SolanaClient | None = None
    ) -> AdminContext:
        try:
            program_id = Pubkey.from_string(settings.program_id)
        except ValueError as e:
            raise InvalidAddress(settings.program_id) from e
        if client is None:
            client = SolanaClient(
                settings.rpc_url,
                commitment=settings.commitment,
                confirm_timeout=settings.confirm_timeout_seconds,
                poll_interval=settings.confirm_poll_seconds,
            )
        return cls.create(program_id, client, settings.preflight_check)


def parse_address(value: str) -> Pubkey:
    text = value.strip() if isinstance(value, str) else value
    try:
        return Pubkey.from_string(text)
    except (TypeError, ValueError) as e:
        raise InvalidAddress(str(value)) from e


def percent_to_rate(fee_percent: str | int | float | Decimal) -> tuple[int, Decimal]:
    """Convert a fee percentage to basis points, truncating sub-basis-point precision.

    Returns the integer rate and the parsed percentage.
    """
    if isinstance(fee_percent, bool):
        raise InvalidAmount(fee_percent, "not a number")
    if isinstance(fee_percent, float):
        if not math.isfinite(fee_percent):
            raise InvalidAmount(fee_percent, "must be finite")
        fee_percent = repr(fee_percent)
    try:
        percent = Decimal(fee_percent.strip() if isinstance(fee_percent, str) else fee_percent)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise InvalidAmount(fee_percent, "not a number") from e

    if not percent.is_finite():
        raise InvalidAmount(fee_percent, "must be finite")
    if percent < 0:
        raise InvalidAmount(fee_percent, "must not be negative")

    # U64_MAX basis points is below 1e18 percent; larger exponents overflow the context
    if percent.adjusted() > _MAX_PERCENT_EXPONENT:
        raise InvalidAmount(fee_percent, "does not fit in a u64 rate")
    if percent.adjusted() < -2:
        return 0, percent

    with localcontext() as ctx:
        # exact scaling, so truncation never sees a rounded-up product
        ctx.prec = max(ctx.prec, len(percent.as_tuple().digits) + 3)
        rate = int(percent.scaleb(2).to_integral_value(rounding=ROUND_DOWN))
    if rate > U64_MAX:
        raise InvalidAmount(fee_percent, "does not fit in a u64 rate")
    return rate, percent


class ConfigWorkflow:
    """State machine: IDLE -> AWAITING_INTENT -> BUILDING_INSTRUCTION -> SUBMITTING -> CONFIRMED | FAILED."""

    def __init__(self, context: AdminContext) -> None:
        self.context = context
        self.state = WorkflowState.IDLE

    def await_intent(self) -> None:
        if self.state is WorkflowState.SUBMITTING:
            raise RuntimeError("a submission is still in flight")
        self.state = WorkflowState.AWAITING_INTENT

    # --- Planning (pure) ---

    def plan_initialize(
        self, fee_recipient: str, fee_percent: str | int | float | Decimal
    ) -> PendingAction:
        fee_to = parse_address(fee_recipient)
        fee, percent = percent_to_rate(fee_percent)
        return self._planned(
            PendingAction(ActionKind.INITIALIZE, fee=fee, fee_to=fee_to, requested_percent=percent)
        )

    def plan_update_fee(self, fee_percent: str | int | float | Decimal) -> PendingAction:
        fee, percent = percent_to_rate(fee_percent)
        return self._planned(
            PendingAction(ActionKind.UPDATE_FEE, fee=fee, requested_percent=percent)
        )

    def plan_set_fee_recipient(self, fee_recipient: str) -> PendingAction:
        fee_to = parse_address(fee_recipient)
        return self._planned(PendingAction(ActionKind.SET_FEE_RECIPIENT, fee_to=fee_to))

    def _planned(self, action: PendingAction) -> PendingAction:
        self.state = WorkflowState.BUILDING_INSTRUCTION
        logger.debug(
            "Action planned",
            extra={"action": action.kind.value, "fee": action.fee, "fee_to": str(action.fee_to)},
        )
        return action

    def build_instruction(
        self, action: PendingAction, owner: Pubkey, config_address: Pubkey
    ) -> Instruction:
        program_id = self.context.program_id
        if action.kind is ActionKind.INITIALIZE:
            return build_initialize_ix(program_id, owner, action.fee_to, action.fee, config_address)
        if action.kind is ActionKind.UPDATE_FEE:
            return build_set_fee_ix(program_id, owner, action.fee, config_address)
        return build_set_fee_to_ix(program_id, owner, action.fee_to, config_address)

    # --- Submission ---

    async def submit(
        self,
        action: PendingAction,
        credential: Keypair,
        config_address: Pubkey | None = None,
    ) -> SubmissionResult:
        """Sign, send and confirm a planned action. Failures are raised, never retried."""
        if self.state is WorkflowState.SUBMITTING:
            raise RuntimeError("a submission is still in flight")
        if action.consumed:
            raise ValueError(f"{action.kind.value} action was already submitted")
        action.consumed = True

        config_address = config_address or self.context.config_address
        owner = credential.pubkey()
        self.state = WorkflowState.SUBMITTING
        try:
            if action.kind is ActionKind.INITIALIZE and self.context.preflight_check:
                existing = await self.context.client.get_account_data(config_address)
                if existing is not None:
                    raise AlreadyInitialized(str(config_address))

            ix = self.build_instruction(action, owner, config_address)
            signature = await self.context.client.build_and_send(
                ix, credential, action.kind.value, config_address
            )
        except AdminError as e:
            self.state = WorkflowState.FAILED
            logger.error(
                "Submission failed",
                extra={"action": action.kind.value, "kind": e.kind, "error": str(e)},
            )
            raise
        except BaseException:
            self.state = WorkflowState.FAILED
            raise

        self.state = WorkflowState.CONFIRMED
        return SubmissionResult(signature=str(signature), action=action)

    async def read_config(self) -> ConfigAccount | None:
        return await self.context.client.get_config_account(self.context.config_address)
