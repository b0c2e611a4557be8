from __future__ import annotations

import base64
import binascii
import logging
import struct
from collections import Counter
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Set

import base58

from .models import HolderRecord

log = logging.getLogger(__name__)

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"

# mint (32) | owner (32) | amount (u64 LE); Token-2022 extensions come after
ACCOUNT_HEAD = struct.Struct("<32s32sQ")


def decode_token_account(data: bytes) -> Optional[HolderRecord]:
    """Owner and raw amount of one token account, None when the data is too short."""
    if len(data) < ACCOUNT_HEAD.size:
        return None
    _mint, owner, amount = ACCOUNT_HEAD.unpack_from(data)
    return HolderRecord(base58.b58encode(owner).decode("ascii"), amount)


def decode_accounts_b64(items: Iterable[str]) -> Iterator[HolderRecord]:
    """Yields a record per non-empty account; undecodable entries are skipped."""
    for item in items:
        try:
            data = base64.b64decode(item, validate=True)
        except (binascii.Error, ValueError):
            log.debug("Skipping account data that is not base64")
            continue
        record = decode_token_account(data)
        if record is not None and record.raw_token_amount > 0:
            yield record


def merge_by_owner(records: Iterable[HolderRecord]) -> List[HolderRecord]:
    """One record per owner holding several token accounts, ordered by address."""
    totals: Counter = Counter()
    for r in records:
        totals[r.owner_address] += int(r.raw_token_amount)
    return [HolderRecord(owner, totals[owner]) for owner in sorted(totals)]


def read_address_list(path: str | None) -> Set[str]:
    """Addresses listed one per line; ``#`` starts a comment, also mid-line."""
    if not path:
        return set()
    lines = Path(path).read_text(encoding="utf-8").splitlines()
    return {entry for entry in (line.partition("#")[0].strip() for line in lines) if entry}
