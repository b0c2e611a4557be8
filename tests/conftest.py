"""Shared fakes for the jackpot tests."""

import asyncio
import json
import random
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from solders.keypair import Keypair

from buy_jackpot.ledger import is_valid_address, lamports_to_sol
from buy_jackpot.models import LotteryOutcome, TradeEvent
from buy_jackpot.wallet import RewardPool

FEE = Decimal("0.000005")


class FakeLedger:
    """In-memory ledger: balances in SOL, every transfer also burns FEE."""

    def __init__(
        self,
        balances: Optional[Dict[str, Decimal]] = None,
        fail_with: Optional[Exception] = None,
        submit_delay: float = 0.0,
    ) -> None:
        self.balances: Dict[str, Decimal] = dict(balances or {})
        self.fail_with = fail_with
        self.submit_delay = submit_delay
        self.submissions: List[tuple] = []
        self.balance_reads = 0
        self.in_flight = 0
        self.max_in_flight = 0

    def validate_address(self, address: str) -> bool:
        return is_valid_address(address)

    async def get_balance(self, pubkey: str) -> Decimal:
        self.balance_reads += 1
        return self.balances.get(pubkey, Decimal(0))

    async def submit_transfer(self, keypair: Keypair, to: str, lamports: int) -> str:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.submit_delay)
            if self.fail_with is not None:
                raise self.fail_with
            sender = str(keypair.pubkey())
            amount = lamports_to_sol(lamports)
            self.balances[sender] = self.balances.get(sender, Decimal(0)) - amount - FEE
            self.balances[to] = self.balances.get(to, Decimal(0)) + amount
            self.submissions.append((sender, to, lamports))
            return f"sig-{len(self.submissions)}"
        finally:
            self.in_flight -= 1

    async def estimate_fee(self, keypair: Keypair) -> Decimal:
        return FEE


class FixedDraw:
    """Stands in for DrawEngine with a predetermined verdict."""

    def __init__(self, win: bool, seed: int = 0) -> None:
        self.win = win
        self.rng = random.Random(seed)
        self.calls: List[int] = []

    def draw(self, win_percent: int) -> LotteryOutcome:
        self.calls.append(win_percent)
        pot = tuple(range(1, win_percent + 1))
        if self.win and pot:
            winning = pot[0]
        else:
            winning = 100
        return LotteryOutcome(winning in pot, winning, pot, win_percent)


class RecordingSink:
    def __init__(self) -> None:
        self.reports: List[Any] = []

    async def publish(self, report: Any) -> None:
        self.reports.append(report)


def new_address() -> str:
    return str(Keypair().pubkey())


def buy(usd: Any = "150", buyer: Optional[str] = None, event_id: Optional[str] = None,
        trade_type: str = "buy") -> TradeEvent:
    return TradeEvent(
        trade_type=trade_type,
        buyer_address=buyer or new_address(),
        usd_volume=None if usd is None else Decimal(str(usd)),
        event_id=event_id,
    )


def rpc_transport(handlers: Dict[str, Callable[[Any], Any]]) -> httpx.MockTransport:
    """MockTransport answering JSON-RPC calls by method name.

    A handler returns the ``result`` value, raises to produce an error, or
    returns an ``httpx.Response`` to answer with that body verbatim.
    """
    calls: List[Dict[str, Any]] = []

    def handle(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        calls.append(body)
        fn = handlers.get(body["method"])
        if fn is None:
            return httpx.Response(
                200, json={"jsonrpc": "2.0", "id": 1, "error": {"message": "Method not found"}}
            )
        try:
            result = fn(body["params"])
        except RuntimeError as e:
            return httpx.Response(
                200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32002, "message": str(e)}}
            )
        if isinstance(result, httpx.Response):
            return result
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": result})

    transport = httpx.MockTransport(handle)
    transport.calls = calls  # type: ignore[attr-defined]
    return transport


@pytest.fixture
def pool_keypair() -> Keypair:
    return Keypair()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def trade_pool(pool_keypair: Keypair, ledger: FakeLedger) -> RewardPool:
    ledger.balances[str(pool_keypair.pubkey())] = Decimal("10")
    return RewardPool("jackpot", pool_keypair, ledger)
