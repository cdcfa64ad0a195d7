"""amm-admin: initialize and update the AMM program's fee configuration.

Usage:
    amm-admin                      # interactive initialize, then update fee
    amm-admin show                 # print the Config account
    amm-admin set-fee-to ADDRESS   # change the fee recipient

Prerequisites:
    - Solana validator reachable at --rpc-url (default localhost:8899)
    - AMM program deployed at --program-id
    - Wallet at ~/.config/solana/id.json (becomes the config owner)
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Callable, Protocol, TypeVar

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, Prompt
from solders.keypair import Keypair

from amm_admin.config import Settings, settings
from amm_admin.errors import AdminError, InvalidAddress, InvalidAmount
from amm_admin.monitoring.logging_config import setup_logging
from amm_admin.solana.deserialize import BASIS_POINTS, ConfigAccount
from amm_admin.solana.keypair import load_keypair
from amm_admin.workflow import AdminContext, ConfigWorkflow, PendingAction, parse_address

logger = logging.getLogger(__name__)

T = TypeVar("T")

EXIT_OK = 0
EXIT_FAILURE = 1


class Prompter(Protocol):
    def confirm(self, message: str) -> bool: ...

    def ask(self, message: str) -> str: ...


class RichPrompter:
    def __init__(self, console: Console) -> None:
        self.console = console

    def confirm(self, message: str) -> bool:
        return Confirm.ask(message, console=self.console)

    def ask(self, message: str) -> str:
        return Prompt.ask(message, console=self.console)


class OperatorShell:
    """Prompts, confirmations and result rendering around a ConfigWorkflow."""

    def __init__(
        self,
        workflow: ConfigWorkflow,
        credential: Keypair,
        prompter: Prompter,
        console: Console,
    ) -> None:
        self.workflow = workflow
        self.credential = credential
        self.prompter = prompter
        self.console = console

    def _ask_until_valid(self, message: str, parse: Callable[[str], T]) -> T:
        while True:
            try:
                return parse(self.prompter.ask(message))
            except (InvalidAddress, InvalidAmount) as e:
                self.console.print(f"[red]{escape(str(e))}[/red]")

    def _describe_rate(self, action: PendingAction) -> None:
        self.console.print(
            f"Fee rate to submit: [bold]{action.fee}[/bold] basis points "
            f"({action.effective_percent}%)"
        )
        if action.truncated:
            self.console.print(
                f"[yellow]Requested {action.requested_percent}% is finer than one basis "
                f"point; the remainder is dropped.[/yellow]"
            )
        if action.exceeds_program_max:
            self.console.print(
                f"[yellow]The program only accepts rates below {BASIS_POINTS}; "
                f"expect this transaction to be rejected.[/yellow]"
            )

    def _warn_commitment(self) -> None:
        commitment = self.workflow.context.client.commitment
        if commitment == "processed":
            self.console.print(
                "[yellow]Waiting for 'processed' commitment only; this does not "
                "guarantee finality.[/yellow]"
            )

    async def _submit(self, action: PendingAction, success: str) -> None:
        self._warn_commitment()
        with self.console.status(f"Submitting {action.kind.value}..."):
            result = await self.workflow.submit(action, self.credential)
        self.console.print(f"[green]{success}[/green] signature: {result.signature}")

    def _cancelled(self) -> int:
        self.console.print("[red]Operation cancelled.[/red]")
        return EXIT_OK

    async def run(self) -> int:
        """Initialize the config, then optionally update its fee."""
        self.workflow.await_intent()
        if not self.prompter.confirm("Do you want to initialize it?"):
            return self._cancelled()

        fee_to = self._ask_until_valid("Fee_To Address?", parse_address)
        action = self._ask_until_valid(
            "Fee(%)?", lambda fee: self.workflow.plan_initialize(str(fee_to), fee)
        )
        self._describe_rate(action)
        await self._submit(action, "initialization success!")

        self.workflow.await_intent()
        if not self.prompter.confirm("Do you want to change the fee?"):
            return self._cancelled()

        action = self._ask_until_valid("Fee(%)?", self.workflow.plan_update_fee)
        self._describe_rate(action)
        await self._submit(action, "New Fee Set!")
        return EXIT_OK

    async def set_fee_recipient(self, address: str) -> int:
        self.workflow.await_intent()
        action = self.workflow.plan_set_fee_recipient(address)
        if not self.prompter.confirm(f"Set fee recipient to {action.fee_to}?"):
            return self._cancelled()
        await self._submit(action, "New Fee_To Set!")
        return EXIT_OK

    async def show(self) -> int:
        ctx = self.workflow.context
        self.console.print(f"Config PDA: {ctx.config_address} (bump: {ctx.config_bump})")
        config = await self.workflow.read_config()
        if config is None:
            self.console.print("[yellow]Config account is not initialized.[/yellow]")
            return EXIT_OK
        render_config(self.console, config)
        return EXIT_OK


def render_config(console: Console, config: ConfigAccount) -> None:
    console.print(f"  owner:  {config.owner}")
    console.print(f"  fee_to: {config.fee_to}")
    console.print(f"  fee:    {config.fee} ({config.fee_percent:g}%)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="amm-admin", description="Initialize and update the AMM fee configuration"
    )
    parser.add_argument("--rpc-url", help=f"RPC endpoint (default {settings.rpc_url})")
    parser.add_argument("--keypair", help=f"Operator keypair file (default {settings.keypair_path})")
    parser.add_argument("--program-id", help="Deployed AMM program id")
    parser.add_argument(
        "--commitment",
        choices=["processed", "confirmed", "finalized"],
        help=f"Commitment to wait for (default {settings.commitment})",
    )
    parser.add_argument(
        "--preflight",
        action="store_true",
        help="Refuse to initialize when the config account already exists",
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging to stderr")

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("run", help="Initialize the config, then update its fee (default)")
    sub.add_parser("show", help="Print the Config account")
    set_fee_to = sub.add_parser("set-fee-to", help="Change the fee recipient")
    set_fee_to.add_argument("address", help="New fee recipient address")
    return parser


def settings_from_args(args: argparse.Namespace, base: Settings) -> Settings:
    overrides = {
        "rpc_url": args.rpc_url,
        "keypair_path": args.keypair,
        "program_id": args.program_id,
        "commitment": args.commitment,
    }
    update = {k: v for k, v in overrides.items() if v is not None}
    if args.preflight:
        update["preflight_check"] = True
    if args.verbose:
        update["log_level"] = "DEBUG"
    return base.model_copy(update=update)


async def run_command(
    args: argparse.Namespace,
    cfg: Settings,
    console: Console,
    prompter: Prompter | None = None,
    context: AdminContext | None = None,
) -> int:
    context = context or AdminContext.from_settings(cfg)
    credential = load_keypair(cfg.keypair_path)
    workflow = ConfigWorkflow(context)
    shell = OperatorShell(workflow, credential, prompter or RichPrompter(console), console)

    console.print(f"[red]Using {cfg.rpc_url}[/red]")
    console.print(f"[blue]AMM program: {context.program_id}[/blue]")
    console.print(f"Operator: {credential.pubkey()}")
    logger.info(
        "Admin session started",
        extra={
            "command": args.command or "run",
            "config": str(context.config_address),
            "operator": str(credential.pubkey()),
        },
    )

    try:
        if args.command == "show":
            return await shell.show()
        if args.command == "set-fee-to":
            return await shell.set_fee_recipient(args.address)
        return await shell.run()
    finally:
        await context.client.close()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = settings_from_args(args, settings)
    setup_logging(cfg.log_level, cfg.log_format)
    console = Console()

    try:
        return asyncio.run(run_command(args, cfg, console))
    except AdminError as e:
        console.print(f"[bold red]{e.kind}[/bold red]: {escape(str(e))}")
        return EXIT_FAILURE
    except (KeyboardInterrupt, EOFError):
        console.print("[red]Operation cancelled.[/red]")
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
