from __future__ import annotations

import logging
import random
from typing import AbstractSet, Iterable, List, Optional, Protocol

from .models import HolderRecord
from .rpc import RpcClient
from .token_accounts import (
    TOKEN_2022_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    decode_accounts_b64,
    merge_by_owner,
)

log = logging.getLogger(__name__)


class HolderSource(Protocol):
    async def list_holders(self) -> List[HolderRecord]: ...


def eligible_holders(
    holders: Iterable[HolderRecord],
    min_raw_balance: int,
    excluded_addresses: AbstractSet[str],
) -> List[HolderRecord]:
    eligible: List[HolderRecord] = []
    for h in merge_by_owner(holders):
        if h.owner_address in excluded_addresses:
            continue
        if h.raw_token_amount < min_raw_balance:
            continue
        eligible.append(h)
    return eligible


def select_winner(
    holders: Iterable[HolderRecord],
    min_raw_balance: int,
    excluded_addresses: AbstractSet[str],
    rng: Optional[random.Random] = None,
) -> Optional[HolderRecord]:
    """Pick one eligible holder uniformly at random.

    Returns None when nobody qualifies; that is a normal outcome, not an error.
    """
    eligible = eligible_holders(holders, min_raw_balance, excluded_addresses)
    if not eligible:
        return None
    return (rng or random.SystemRandom()).choice(eligible)


def parse_raw_amount(value: object) -> Optional[int]:
    """Raw token amounts arrive as decimal strings or ints ("9e12" is tolerated)."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value))
    except ValueError:
        pass
    try:
        f = float(str(value))
    except ValueError:
        return None
    if f != f or f in (float("inf"), float("-inf")):
        return None
    return int(f)


class HeliusHolderSource:
    """Lists holders with the paginated Helius ``getTokenAccounts`` method."""

    def __init__(self, rpc: RpcClient, mint: str, page_limit: int = 1000) -> None:
        self.rpc = rpc
        self.mint = mint
        self.page_limit = page_limit

    async def list_holders(self) -> List[HolderRecord]:
        holders: List[HolderRecord] = []
        page = 1
        while True:
            accounts = await self.rpc.get_token_accounts_page(
                self.mint, page=page, limit=self.page_limit
            )
            if not accounts:
                break
            for acc in accounts:
                owner = acc.get("owner")
                amount = parse_raw_amount(acc.get("amount"))
                if not owner or amount is None:
                    continue
                holders.append(HolderRecord(owner, amount))
            page += 1
        log.debug("Fetched %d token accounts over %d pages", len(holders), page - 1)
        return holders


class ProgramAccountsHolderSource:
    """Lists holders by scanning both token programs' accounts for the mint."""

    def __init__(self, rpc: RpcClient, mint: str) -> None:
        self.rpc = rpc
        self.mint = mint

    async def list_holders(self) -> List[HolderRecord]:
        log.info("Scanning classic SPL Token program...")
        classic_b64 = await self.rpc.get_program_accounts_base64(
            program_id=TOKEN_PROGRAM_ID,
            mint=self.mint,
            classic_token_program=True,
        )
        log.info("Scanning Token-2022 program...")
        t22_b64 = await self.rpc.get_program_accounts_base64(
            program_id=TOKEN_2022_PROGRAM_ID,
            mint=self.mint,
            classic_token_program=False,
        )
        holders = merge_by_owner(decode_accounts_b64(classic_b64 + t22_b64))
        log.info("Unique owners     : %d", len(holders))
        return holders
