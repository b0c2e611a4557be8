from __future__ import annotations

import asyncio
import json
import logging
from typing import List, Protocol

from .models import KIND_HOLDER, DrawReport

log = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def publish(self, report: DrawReport) -> None: ...


def short_address(address: str) -> str:
    if len(address) <= 10:
        return address
    return f"{address[:5]}...{address[-5:]}"


def summarize(report: DrawReport) -> str:
    o = report.outcome
    pot = ", ".join(str(n) for n in o.sample_set)
    head = "HOLDER JACKPOT" if report.kind == KIND_HOLDER else "BUY"
    parts = [
        f"{head} {'WINNER' if o.is_winner else 'no win'}",
        f"player={short_address(report.event.buyer_address)}",
        f"usd={report.event.usd_volume}",
        f"chance={o.win_percent}%",
        f"winning_num={o.winning_number}",
        f"pot=[{pot}]",
    ]
    if report.jackpot_sol is not None:
        parts.append(f"jackpot={report.jackpot_sol:.3f} SOL")
    if report.no_eligible_holder:
        parts.append("no eligible holder found")
    if report.winner is not None:
        parts.append(f"holder={short_address(report.winner.owner_address)}")
    if report.payout is not None:
        if report.payout.succeeded:
            parts.append(
                f"paid {report.payout.amount_sol:.5f} SOL tx={report.payout.transaction_reference}"
            )
        else:
            parts.append("payout failed")
    return " | ".join(parts)


class LoggingSink:
    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or log

    async def publish(self, report: DrawReport) -> None:
        self.logger.info("%s", summarize(report))


class JsonlAuditSink:
    """Appends each report as one JSON line; ``verify`` re-checks the file."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = asyncio.Lock()

    async def publish(self, report: DrawReport) -> None:
        line = json.dumps(report.to_dict(), sort_keys=True)
        async with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")


class FanOutSink:
    def __init__(self, sinks: List[NotificationSink]) -> None:
        self.sinks = sinks

    async def publish(self, report: DrawReport) -> None:
        for sink in self.sinks:
            await sink.publish(report)
