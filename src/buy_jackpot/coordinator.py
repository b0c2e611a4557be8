from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, AsyncIterable, FrozenSet, List, Optional, Set

import httpx

from .dedupe import DedupCache
from .draw import DrawEngine
from .errors import BuyJackpotError
from .feed import parse_trade_event
from .holders import HolderSource, select_winner
from .models import (
    KIND_HOLDER,
    KIND_TRADE,
    SKIP_BELOW_MINIMUM,
    SKIP_DUPLICATE,
    SKIP_MISSING_USD,
    SKIP_NOT_A_BUY,
    DrawReport,
    EventResult,
    TradeEvent,
    TradeRejected,
)
from .notify import NotificationSink
from .price import PriceService
from .probability import DEFAULT_TABLE, ProbabilityTable
from .project_constants import (
    BURN_ADDRESSES,
    DEDUP_CAPACITY,
    HOLDER_MIN_RAW_BALANCE,
    HOLDER_PAYOUT_SHARE,
    MIN_BUY_USD,
    TRADE_PAYOUT_SHARE,
)
from .wallet import RewardPool

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CoordinatorParams:
    min_buy_usd: Decimal = MIN_BUY_USD
    holder_min_raw_balance: int = HOLDER_MIN_RAW_BALANCE
    excluded_addresses: FrozenSet[str] = frozenset()
    trade_payout_share: Decimal = TRADE_PAYOUT_SHARE
    holder_payout_share: Decimal = HOLDER_PAYOUT_SHARE
    trade_table: ProbabilityTable = DEFAULT_TABLE
    holder_table: ProbabilityTable = DEFAULT_TABLE
    dedup_capacity: int = DEDUP_CAPACITY


class PayoutCoordinator:
    """Turns buy events into draws and payouts.

    Every buy above the minimum gets a trade draw paid from ``trade_pool``
    to the buyer. The same buy independently gets a holder draw (when a
    holder pool and source are configured) paid from ``holder_pool`` to a
    random eligible holder. Failed payouts are reported, never retried.
    """

    def __init__(
        self,
        trade_pool: RewardPool,
        sink: NotificationSink,
        params: CoordinatorParams | None = None,
        holder_pool: RewardPool | None = None,
        holder_source: HolderSource | None = None,
        price_service: PriceService | None = None,
        trade_draw: DrawEngine | None = None,
        holder_draw: DrawEngine | None = None,
    ) -> None:
        self.trade_pool = trade_pool
        self.holder_pool = holder_pool
        self.holder_source = holder_source
        self.sink = sink
        self.params = params or CoordinatorParams()
        self.price_service = price_service
        # separate random sources per pipeline
        self.trade_draw = trade_draw or DrawEngine()
        self.holder_draw = holder_draw or DrawEngine()
        self.dedup = DedupCache(self.params.dedup_capacity)
        self.in_flight: Set[asyncio.Task] = set()

        excluded = set(self.params.excluded_addresses) | set(BURN_ADDRESSES)
        excluded.add(trade_pool.address)
        if holder_pool is not None:
            excluded.add(holder_pool.address)
        self.excluded_addresses: FrozenSet[str] = frozenset(excluded)

    @property
    def holder_jackpot_enabled(self) -> bool:
        return self.holder_pool is not None and self.holder_source is not None

    async def handle_event(self, event: TradeEvent) -> EventResult:
        if event.event_id is not None and self.dedup.check_and_add(event.event_id):
            log.debug("Skipping duplicate event %s", event.event_id)
            return EventResult(event, skipped=SKIP_DUPLICATE)

        if not event.is_buy:
            return EventResult(event, skipped=SKIP_NOT_A_BUY)

        sol_price = await self._sol_price()
        usd = event.usd_volume
        if usd is None and event.sol_volume is not None and sol_price is not None:
            usd = event.sol_volume * sol_price
            event = replace(event, usd_volume=usd)
        if usd is None:
            log.warning("Buy %s has no USD value; skipping", event.event_id)
            return EventResult(event, skipped=SKIP_MISSING_USD)

        if usd < self.params.min_buy_usd:
            log.debug(
                "Skipping small transaction: $%.2f (below $%s)",
                usd,
                self.params.min_buy_usd,
            )
            return EventResult(event, skipped=SKIP_BELOW_MINIMUM)

        trade_report, holder_report = await asyncio.gather(
            self._run_trade_draw(event, usd, sol_price),
            self._run_holder_draw(event, usd, sol_price),
        )
        reports = [trade_report]
        if holder_report is not None:
            reports.append(holder_report)
        return EventResult(event, reports=reports)

    async def run(
        self, payloads: AsyncIterable[Any], collect: bool = True
    ) -> List[EventResult]:
        """Parse and handle every payload, with orchestrations overlapping.

        Only unfinished orchestrations are held, in ``in_flight``. With
        ``collect=False`` results are dropped once published, for an
        endless live feed.
        """
        results: List[EventResult] = []

        def finished(task: asyncio.Task) -> None:
            self.in_flight.discard(task)
            if task.cancelled():
                return
            exc = task.exception()
            if exc is not None:
                log.error("Error handling trade: %r", exc)
            elif collect:
                results.append(task.result())

        async for payload in payloads:
            parsed = parse_trade_event(payload)
            if isinstance(parsed, TradeRejected):
                log.warning("Rejected trade payload: %s", parsed.reason)
                continue
            task = asyncio.create_task(self.handle_event(parsed))
            self.in_flight.add(task)
            task.add_done_callback(finished)

        if self.in_flight:
            await asyncio.wait(set(self.in_flight))
        return results

    async def _run_trade_draw(
        self, event: TradeEvent, usd: Decimal, sol_price: Optional[Decimal]
    ) -> DrawReport:
        share = self.params.trade_payout_share
        chance = self.params.trade_table.chance_for_usd_value(usd)
        outcome = self.trade_draw.draw(chance)
        balance = await self._read_balance(self.trade_pool)

        payout = None
        if outcome.is_winner:
            log.info(
                "Winner found! Paying %s of the jackpot to %s", share, event.buyer_address
            )
            payout = await self.trade_pool.transfer_share(share, event.buyer_address)

        report = DrawReport(
            kind=KIND_TRADE,
            event=event,
            outcome=outcome,
            payout=payout,
            pool_balance_sol=balance,
            jackpot_sol=None if balance is None else balance * share,
            next_jackpot_sol=None if balance is None else balance * share * share,
            sol_price_usd=sol_price,
        )
        await self._publish(report)
        return report

    async def _run_holder_draw(
        self, event: TradeEvent, usd: Decimal, sol_price: Optional[Decimal]
    ) -> Optional[DrawReport]:
        if not self.holder_jackpot_enabled:
            return None
        assert self.holder_pool is not None and self.holder_source is not None

        share = self.params.holder_payout_share
        chance = self.params.holder_table.chance_for_usd_value(usd)
        outcome = self.holder_draw.draw(chance)
        if not outcome.is_winner:
            # holder losses are not announced
            return DrawReport(kind=KIND_HOLDER, event=event, outcome=outcome)

        balance = await self._read_balance(self.holder_pool)
        base = DrawReport(
            kind=KIND_HOLDER,
            event=event,
            outcome=outcome,
            pool_balance_sol=balance,
            jackpot_sol=None if balance is None else balance * share,
            next_jackpot_sol=None if balance is None else balance * share * share,
            sol_price_usd=sol_price,
        )

        try:
            holders = await self.holder_source.list_holders()
        except (httpx.HTTPError, BuyJackpotError) as e:
            log.error("Could not list holders: %s", e)
            report = replace(base, error=f"holder listing failed: {e}")
            await self._publish(report)
            return report

        winner = select_winner(
            holders,
            self.params.holder_min_raw_balance,
            self.excluded_addresses,
            rng=self.holder_draw.rng,
        )
        if winner is None:
            log.info("Holder jackpot won but no eligible holder was found")
            report = replace(base, no_eligible_holder=True)
        else:
            log.info("Holder jackpot winner: %s", winner.owner_address)
            payout = await self.holder_pool.transfer_share(share, winner.owner_address)
            report = replace(base, winner=winner, payout=payout)

        await self._publish(report)
        return report

    async def _read_balance(self, pool: RewardPool) -> Optional[Decimal]:
        try:
            return await pool.current_balance()
        except (httpx.HTTPError, BuyJackpotError) as e:
            log.error("Error getting %s balance: %s", pool.name, e)
            return None

    async def _sol_price(self) -> Optional[Decimal]:
        if self.price_service is None:
            return None
        try:
            return await self.price_service.get_price()
        except BuyJackpotError as e:
            log.warning("%s", e)
            return None

    async def _publish(self, report: DrawReport) -> None:
        try:
            await self.sink.publish(report)
        except Exception:
            log.exception("Notification sink failed for %s draw", report.kind)
