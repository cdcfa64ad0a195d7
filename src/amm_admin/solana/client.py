from __future__ import annotations

import asyncio
import logging

import httpx
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.core import (
    RPCException,
    TransactionExpiredBlockheightExceededError,
    UnconfirmedTxError,
)
from solana.rpc.types import TxOpts
from solders.hash import Hash as Blockhash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from amm_admin.errors import ConfirmationTimeout, NetworkUnreachable
from amm_admin.monitoring.metrics import solana_tx_total
from amm_admin.solana.deserialize import ConfigAccount, deserialize_config
from amm_admin.solana.rejections import (
    classify_rejection,
    rejection_logs,
    rejection_message,
)

logger = logging.getLogger(__name__)

_NETWORK_ERRORS = (SolanaRpcException, httpx.HTTPError, OSError)


class SolanaClient:
    """Async Solana RPC client with transaction submission and account reading.

    Submissions are never retried: every failure is raised to the caller.
    """

    def __init__(
        self,
        rpc_url: str,
        commitment: str = "processed",
        confirm_timeout: float = 30.0,
        poll_interval: float = 0.5,
        rpc: AsyncClient | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.commitment = Commitment(commitment)
        self.confirm_timeout = confirm_timeout
        self.poll_interval = poll_interval
        self._client: AsyncClient | None = rpc

    def _rpc(self) -> AsyncClient:
        if self._client is None:
            self._client = AsyncClient(self.rpc_url, commitment=self.commitment)
            logger.info("Solana client initialized", extra={"rpc_url": self.rpc_url})
        return self._client

    async def get_latest_blockhash(self) -> Blockhash:
        try:
            resp = await self._rpc().get_latest_blockhash(commitment=self.commitment)
        except _NETWORK_ERRORS as e:
            raise NetworkUnreachable(f"{self.rpc_url}: {e}") from e
        return resp.value.blockhash

    async def send_and_confirm_tx(
        self,
        tx: Transaction,
        instruction_name: str,
        config_address: Pubkey,
    ) -> Signature:
        """Send a signed transaction and wait for the configured commitment.

        Raises NetworkUnreachable, ConfirmationTimeout, InsufficientFunds or
        SimulationFailed (and its subclasses).
        """
        client = self._rpc()
        signer = str(tx.message.account_keys[0])
        opts = TxOpts(preflight_commitment=self.commitment)

        try:
            result = await client.send_transaction(tx, opts=opts)
        except RPCException as e:
            solana_tx_total.labels(instruction=instruction_name, status="rejected").inc()
            error = classify_rejection(
                rejection_message(e),
                logs=rejection_logs(e),
                instruction=instruction_name,
                signer=signer,
                config_address=str(config_address),
            )
            logger.warning(
                "Transaction rejected",
                extra={"instruction": instruction_name, "kind": error.kind, "error": str(error)},
            )
            raise error from e
        except _NETWORK_ERRORS as e:
            solana_tx_total.labels(instruction=instruction_name, status="unreachable").inc()
            raise NetworkUnreachable(f"{self.rpc_url}: {e}") from e

        sig = result.value
        logger.info(
            "Transaction sent",
            extra={"instruction": instruction_name, "signature": str(sig)},
        )

        try:
            resp = await asyncio.wait_for(
                client.confirm_transaction(
                    sig,
                    commitment=self.commitment,
                    sleep_seconds=self.poll_interval,
                ),
                timeout=self.confirm_timeout,
            )
        except (
            asyncio.TimeoutError,
            UnconfirmedTxError,
            TransactionExpiredBlockheightExceededError,
        ) as e:
            solana_tx_total.labels(instruction=instruction_name, status="timeout").inc()
            raise ConfirmationTimeout(str(sig), self.confirm_timeout) from e
        except _NETWORK_ERRORS as e:
            solana_tx_total.labels(instruction=instruction_name, status="unreachable").inc()
            raise NetworkUnreachable(
                f"{self.rpc_url}: lost connection while confirming {sig}: {e}"
            ) from e

        status = resp.value[0] if resp.value else None
        if status is not None and status.err is not None:
            solana_tx_total.labels(instruction=instruction_name, status="rejected").inc()
            raise classify_rejection(
                str(status.err),
                instruction=instruction_name,
                signer=signer,
                config_address=str(config_address),
            )

        solana_tx_total.labels(instruction=instruction_name, status="confirmed").inc()
        logger.info(
            "Transaction confirmed",
            extra={
                "instruction": instruction_name,
                "signature": str(sig),
                "commitment": self.commitment,
            },
        )
        return sig

    async def build_and_send(
        self,
        ix: Instruction,
        signer: Keypair,
        instruction_name: str,
        config_address: Pubkey,
    ) -> Signature:
        """Get recent blockhash, build Transaction, sign with the operator, send."""
        blockhash = await self.get_latest_blockhash()
        tx = Transaction.new_signed_with_payer(
            [ix],
            signer.pubkey(),
            [signer],
            blockhash,
        )
        return await self.send_and_confirm_tx(tx, instruction_name, config_address)

    # --- Account getters ---

    async def get_account_data(self, pubkey: Pubkey) -> bytes | None:
        try:
            resp = await self._rpc().get_account_info(pubkey, commitment=self.commitment)
        except _NETWORK_ERRORS as e:
            raise NetworkUnreachable(f"{self.rpc_url}: {e}") from e
        if resp.value is None:
            return None
        return bytes(resp.value.data)

    async def get_config_account(self, config_address: Pubkey) -> ConfigAccount | None:
        """Fetch and deserialize the Config account, None if it does not exist."""
        data = await self.get_account_data(config_address)
        if data is None:
            return None
        return deserialize_config(data)

    async def close(self) -> None:
        if self._client:
            await self._client.close()
            self._client = None
