from __future__ import annotations

import asyncio
import json
import logging
from decimal import Decimal
from typing import Optional, Protocol

import base58
import httpx
from solders.keypair import Keypair

from .errors import (
    ConfigurationError,
    InsufficientBalanceError,
    InvalidRecipientError,
    LedgerSubmissionError,
)
from .ledger import sol_to_lamports
from .models import PayoutResult

log = logging.getLogger(__name__)


class Ledger(Protocol):
    def validate_address(self, address: str) -> bool: ...

    async def get_balance(self, pubkey: str) -> Decimal: ...

    async def submit_transfer(self, keypair: Keypair, to: str, lamports: int) -> str: ...

    async def estimate_fee(self, keypair: Keypair) -> Decimal: ...


def load_keypair(secret: str) -> Keypair:
    """Decode a secret key given as base58 or as a JSON byte array ``[1,2,...]``."""
    secret = (secret or "").strip()
    try:
        if secret.startswith("[") and secret.endswith("]"):
            raw = bytes(json.loads(secret))
        else:
            raw = base58.b58decode(secret)
        return Keypair.from_bytes(raw)
    except Exception as e:
        raise ConfigurationError(
            "Invalid private key format. Ensure it is base58 or array string."
        ) from e


class RewardPool:
    """A custodial wallet paying out one category of rewards.

    The pool keeps no balance of its own; every check reads the ledger.
    Check-and-transfer runs under a per-pool lock so that at most one
    transfer from this pool is in flight at a time.
    """

    def __init__(self, name: str, keypair: Keypair, ledger: Ledger) -> None:
        self.name = name
        self.keypair = keypair
        self.ledger = ledger
        self._lock = asyncio.Lock()

    @property
    def address(self) -> str:
        return str(self.keypair.pubkey())

    async def current_balance(self) -> Decimal:
        return await self.ledger.get_balance(self.address)

    async def estimate_transfer_fee(self) -> Decimal:
        return await self.ledger.estimate_fee(self.keypair)

    async def transfer(self, amount_sol: Decimal, recipient: str) -> Optional[str]:
        """Send ``amount_sol`` to ``recipient``.

        Returns the transaction signature, or None when no payout occurred.
        Never raises and never retries.
        """
        async with self._lock:
            return await self._checked_transfer(Decimal(amount_sol), recipient)

    async def transfer_share(self, share: Decimal, recipient: str) -> PayoutResult:
        """Pay ``share`` of the live balance to ``recipient``."""
        async with self._lock:
            if not self.ledger.validate_address(recipient):
                log.error("[%s] Invalid winner address: %s", self.name, recipient)
                return PayoutResult.failed(recipient, Decimal(0))
            try:
                balance = await self.current_balance()
            except (httpx.HTTPError, LedgerSubmissionError) as e:
                log.error("[%s] Could not read balance: %s", self.name, e)
                return PayoutResult.failed(recipient, Decimal(0))
            amount = balance * Decimal(share)
            signature = await self._checked_transfer(amount, recipient)
            return PayoutResult(signature is not None, signature, recipient, amount)

    async def _checked_transfer(self, amount: Decimal, recipient: str) -> Optional[str]:
        try:
            return await self._transfer(amount, recipient)
        except InvalidRecipientError as e:
            log.error("[%s] %s", self.name, e)
        except InsufficientBalanceError as e:
            log.error("[%s] %s", self.name, e)
        except LedgerSubmissionError as e:
            log.error("[%s] Transfer error: %s", self.name, e)
            if e.hint == "insufficient-funds-for-fee":
                log.error(
                    "Hint: %s wallet has insufficient SOL for the transfer + transaction fee.",
                    self.name,
                )
            elif e.hint == "simulation-failed":
                log.error(
                    "Hint: Transaction simulation failed, check network or recipient address."
                )
        except httpx.HTTPError as e:
            log.error("[%s] Transfer error: %s", self.name, e)
        return None

    async def _transfer(self, amount: Decimal, recipient: str) -> str:
        if not self.ledger.validate_address(recipient):
            raise InvalidRecipientError(f"Invalid winner address: {recipient}")

        balance = await self.current_balance()
        if balance < amount:
            raise InsufficientBalanceError(
                f"Insufficient balance in {self.name} wallet: {balance:.5f} SOL "
                f"(needed: {amount:.5f} SOL)"
            )

        lamports = sol_to_lamports(amount)
        if lamports <= 0:
            raise InsufficientBalanceError(
                f"Nothing to send from {self.name} wallet ({amount} SOL)"
            )

        signature = await self.ledger.submit_transfer(self.keypair, recipient, lamports)
        log.info("[%s] Transfer successful: %s", self.name, signature)
        log.info("[%s] Sent %.5f SOL to %s", self.name, amount, recipient)
        return signature
