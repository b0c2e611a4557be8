from __future__ import annotations

import asyncio
import base64
import logging
from decimal import ROUND_FLOOR, Decimal

import base58
import httpx
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction

from .errors import LedgerSubmissionError, RpcError
from .project_constants import FALLBACK_FEE_LAMPORTS, LAMPORTS_PER_SOL
from .rpc import RpcClient

log = logging.getLogger(__name__)

CONFIRMED = ("confirmed", "finalized")


def is_valid_address(address: object) -> bool:
    """A ledger address is the base58 encoding of 32 bytes."""
    if not isinstance(address, str) or not address:
        return False
    try:
        raw = base58.b58decode(address)
    except ValueError:
        return False
    return len(raw) == 32


def lamports_to_sol(lamports: int) -> Decimal:
    return Decimal(lamports) / LAMPORTS_PER_SOL


def sol_to_lamports(amount_sol: Decimal) -> int:
    # floor: never send more than asked
    lamports = Decimal(amount_sol) * LAMPORTS_PER_SOL
    return int(lamports.to_integral_value(rounding=ROUND_FLOOR))


class SolanaLedger:
    """Ledger operations a reward pool needs, on top of RpcClient."""

    def __init__(
        self,
        rpc: RpcClient,
        confirm_timeout_s: float = 60.0,
        poll_interval_s: float = 1.0,
    ) -> None:
        self.rpc = rpc
        self.confirm_timeout_s = confirm_timeout_s
        self.poll_interval_s = poll_interval_s

    def validate_address(self, address: str) -> bool:
        return is_valid_address(address)

    async def get_balance(self, pubkey: str) -> Decimal:
        lamports = await self.rpc.get_balance(pubkey)
        return lamports_to_sol(lamports)

    async def submit_transfer(self, keypair: Keypair, to: str, lamports: int) -> str:
        """Sign with ``keypair`` (sole signer and fee payer), send, await confirmation."""
        payer = keypair.pubkey()
        ix = transfer(
            TransferParams(
                from_pubkey=payer,
                to_pubkey=Pubkey.from_string(to),
                lamports=lamports,
            )
        )
        try:
            blockhash = Hash.from_string(await self.rpc.get_latest_blockhash())
            tx = Transaction([keypair], Message([ix], payer), blockhash)
            signature = await self.rpc.send_transaction(
                base64.b64encode(bytes(tx)).decode("ascii")
            )
        except httpx.HTTPError as e:
            raise LedgerSubmissionError(f"Transport error while sending: {e}") from e
        except ValueError as e:
            # blockhash that does not parse
            raise LedgerSubmissionError(f"Could not build transaction: {e}") from e

        await self._await_confirmation(signature)
        return signature

    async def _await_confirmation(self, signature: str) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.confirm_timeout_s
        while True:
            try:
                status = await self.rpc.get_signature_status(signature)
            except (httpx.HTTPError, RpcError) as e:
                # node lag or a bad gateway answer; keep polling until the deadline
                log.debug("Status poll for %s failed: %s", signature, e)
                status = None

            if status is not None:
                if status.get("err") is not None:
                    raise LedgerSubmissionError(
                        f"Transaction {signature} failed: {status['err']}"
                    )
                if status.get("confirmationStatus") in CONFIRMED:
                    return

            if loop.time() >= deadline:
                raise LedgerSubmissionError(
                    f"Transaction {signature} not confirmed after "
                    f"{self.confirm_timeout_s:.0f}s"
                )
            await asyncio.sleep(self.poll_interval_s)

    async def estimate_fee(self, keypair: Keypair) -> Decimal:
        """Fee for a plain SOL transfer, estimated with a self-transfer message."""
        payer = keypair.pubkey()
        ix = transfer(
            TransferParams(from_pubkey=payer, to_pubkey=payer, lamports=LAMPORTS_PER_SOL)
        )
        try:
            blockhash = Hash.from_string(await self.rpc.get_latest_blockhash())
            msg = Message.new_with_blockhash([ix], payer, blockhash)
            fee = await self.rpc.get_fee_for_message(
                base64.b64encode(bytes(msg)).decode("ascii")
            )
        except (RpcError, httpx.HTTPError) as e:
            log.warning("Error estimating fee: %s", e)
            fee = None
        return lamports_to_sol(fee if fee is not None else FALLBACK_FEE_LAMPORTS)


class DryRunLedger(SolanaLedger):
    """Reads balances from the network but never submits a transaction."""

    def __init__(self, rpc: RpcClient) -> None:
        super().__init__(rpc)
        self.submitted = 0

    async def submit_transfer(self, keypair: Keypair, to: str, lamports: int) -> str:
        self.submitted += 1
        log.info(
            "[dry-run] would send %d lamports from %s to %s",
            lamports,
            keypair.pubkey(),
            to,
        )
        return f"dry-run-{self.submitted}"
