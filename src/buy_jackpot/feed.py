from __future__ import annotations

import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterator, Mapping, Optional, Union

from .models import TradeEvent, TradeRejected

log = logging.getLogger(__name__)

ParsedTrade = Union[TradeEvent, TradeRejected]

# payload key -> accepted spellings, first match wins
_ALIASES: Dict[str, tuple] = {
    "trade_type": ("type", "tradeType"),
    "buyer_address": ("wallet", "buyerAddress"),
    "token_amount": ("amount", "tokenAmount"),
    "sol_volume": ("solVolume",),
    "usd_volume": ("volume", "usdVolume"),
    "price_usd": ("priceUsd",),
    "event_id": ("eventId", "tx", "signature"),
}


def _pick(payload: Mapping[str, Any], field: str) -> Any:
    for key in _ALIASES[field]:
        if key in payload and payload[key] is not None:
            return payload[key]
    return None


def to_decimal(value: Any) -> Optional[Decimal]:
    """Numeric field or None. Missing and malformed values are absent, never zero."""
    if value is None or isinstance(value, bool):
        return None
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not d.is_finite():
        return None
    return d


def parse_trade_event(payload: Any) -> ParsedTrade:
    if not isinstance(payload, Mapping):
        return TradeRejected("payload is not an object", payload)

    trade_type = _pick(payload, "trade_type")
    if not isinstance(trade_type, str) or not trade_type.strip():
        return TradeRejected("missing trade type", payload)

    buyer = _pick(payload, "buyer_address")
    if not isinstance(buyer, str) or not buyer.strip():
        return TradeRejected("missing buyer address", payload)

    event_id = _pick(payload, "event_id")
    if event_id is not None and not isinstance(event_id, str):
        event_id = str(event_id)

    return TradeEvent(
        trade_type=trade_type.strip().lower(),
        buyer_address=buyer.strip(),
        token_amount=to_decimal(_pick(payload, "token_amount")),
        sol_volume=to_decimal(_pick(payload, "sol_volume")),
        usd_volume=to_decimal(_pick(payload, "usd_volume")),
        price_usd=to_decimal(_pick(payload, "price_usd")),
        event_id=event_id or None,
    )


def iter_jsonl_payloads(path: str) -> Iterator[Any]:
    """Yield one decoded payload per non-blank line; bad JSON yields the raw line."""
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError as e:
                log.warning("%s:%d is not valid JSON: %s", path, lineno, e)
                yield line
