from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

# Why an event never reached a draw
SKIP_DUPLICATE = "duplicate"
SKIP_NOT_A_BUY = "not-a-buy"
SKIP_MISSING_USD = "missing-usd-value"
SKIP_BELOW_MINIMUM = "below-minimum"

KIND_TRADE = "trade"
KIND_HOLDER = "holder"


@dataclass(frozen=True)
class TradeEvent:
    trade_type: str
    buyer_address: str
    token_amount: Optional[Decimal] = None
    sol_volume: Optional[Decimal] = None
    usd_volume: Optional[Decimal] = None
    price_usd: Optional[Decimal] = None
    event_id: Optional[str] = None

    @property
    def is_buy(self) -> bool:
        return self.trade_type == "buy"


@dataclass(frozen=True)
class TradeRejected:
    reason: str
    payload: Any = None


@dataclass(frozen=True)
class LotteryOutcome:
    is_winner: bool
    winning_number: int
    sample_set: Tuple[int, ...]  # sorted ascending for display
    win_percent: int


@dataclass(frozen=True)
class HolderRecord:
    owner_address: str
    raw_token_amount: int


@dataclass(frozen=True)
class PayoutResult:
    succeeded: bool
    transaction_reference: Optional[str]
    recipient: str
    amount_sol: Decimal

    @staticmethod
    def failed(recipient: str, amount_sol: Decimal) -> "PayoutResult":
        return PayoutResult(False, None, recipient, amount_sol)


@dataclass(frozen=True)
class DrawReport:
    """Everything a notification sink needs to announce one draw."""

    kind: str
    event: TradeEvent
    outcome: LotteryOutcome
    payout: Optional[PayoutResult] = None
    winner: Optional[HolderRecord] = None
    no_eligible_holder: bool = False
    pool_balance_sol: Optional[Decimal] = None
    jackpot_sol: Optional[Decimal] = None
    next_jackpot_sol: Optional[Decimal] = None
    sol_price_usd: Optional[Decimal] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        def num(v: Optional[Decimal]) -> Optional[str]:
            return None if v is None else str(v)

        ev = self.event
        return {
            "kind": self.kind,
            "event": {
                "event_id": ev.event_id,
                "trade_type": ev.trade_type,
                "buyer_address": ev.buyer_address,
                "token_amount": num(ev.token_amount),
                "sol_volume": num(ev.sol_volume),
                "usd_volume": num(ev.usd_volume),
                "price_usd": num(ev.price_usd),
            },
            "outcome": {
                "is_winner": self.outcome.is_winner,
                "winning_number": self.outcome.winning_number,
                "sample_set": list(self.outcome.sample_set),
                "win_percent": self.outcome.win_percent,
            },
            "payout": None
            if self.payout is None
            else {
                "succeeded": self.payout.succeeded,
                "transaction_reference": self.payout.transaction_reference,
                "recipient": self.payout.recipient,
                "amount_sol": num(self.payout.amount_sol),
            },
            "winner": None
            if self.winner is None
            else {
                "owner_address": self.winner.owner_address,
                # big int; store as string for safety
                "raw_token_amount": str(self.winner.raw_token_amount),
            },
            "no_eligible_holder": self.no_eligible_holder,
            "pool_balance_sol": num(self.pool_balance_sol),
            "jackpot_sol": num(self.jackpot_sol),
            "next_jackpot_sol": num(self.next_jackpot_sol),
            "sol_price_usd": num(self.sol_price_usd),
            "error": self.error,
        }


@dataclass(frozen=True)
class EventResult:
    event: TradeEvent
    skipped: Optional[str] = None
    reports: List[DrawReport] = field(default_factory=list)
