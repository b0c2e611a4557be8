from __future__ import annotations

import argparse
import asyncio
import logging
from decimal import Decimal
from typing import Any, AsyncIterator, Iterable, List, Optional, Tuple

from .config import Settings
from .coordinator import CoordinatorParams, PayoutCoordinator
from .draw import DrawEngine
from .errors import ConfigurationError
from .feed import iter_jsonl_payloads
from .holders import (
    HeliusHolderSource,
    HolderSource,
    ProgramAccountsHolderSource,
    eligible_holders,
)
from .ledger import DryRunLedger, SolanaLedger
from .notify import FanOutSink, JsonlAuditSink, LoggingSink, NotificationSink
from .price import CoinGeckoFetcher, PriceService
from .probability import chance_for_usd_value
from .project_constants import BURN_ADDRESSES, TOKEN_DECIMALS
from .rpc import RpcClient
from .verify import verify_audit
from .wallet import RewardPool, load_keypair

log = logging.getLogger("buy_jackpot")


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def to_tokens(raw_amount: int) -> float:
    return round(raw_amount / (10**TOKEN_DECIMALS), 1)


def build_pools(
    settings: Settings, ledger: SolanaLedger
) -> Tuple[RewardPool, Optional[RewardPool]]:
    trade_pool = RewardPool("jackpot", load_keypair(settings.jackpot_private_key), ledger)
    holder_pool = None
    if settings.holders_jackpot_private_key:
        holder_pool = RewardPool(
            "holders-jackpot",
            load_keypair(settings.holders_jackpot_private_key),
            ledger,
        )
    return trade_pool, holder_pool


def build_holder_source(source: str, rpc: RpcClient, mint: str) -> HolderSource:
    if source == "program":
        return ProgramAccountsHolderSource(rpc, mint)
    return HeliusHolderSource(rpc, mint)


async def _aiter(items: Iterable[Any]) -> AsyncIterator[Any]:
    for item in items:
        yield item


async def _replay(args: argparse.Namespace, settings: Settings) -> int:
    rpc = RpcClient(settings.rpc_url, timeout_s=args.timeout)
    fetcher = CoinGeckoFetcher()
    try:
        version = await rpc.get_version()
        log.info("Connected to Solana RPC: %s", version)

        ledger = DryRunLedger(rpc) if args.dry_run else SolanaLedger(rpc)
        trade_pool, holder_pool = build_pools(settings, ledger)
        log.info("Jackpot wallet        : %s", trade_pool.address)
        if holder_pool is not None:
            log.info("Holders jackpot wallet: %s", holder_pool.address)
        else:
            log.info("HOLDERS_JACKPOT_PRIVATE_KEY not set; holder jackpot disabled")

        sinks: List[NotificationSink] = [LoggingSink()]
        if args.audit:
            sinks.append(JsonlAuditSink(args.audit))

        coordinator = PayoutCoordinator(
            trade_pool=trade_pool,
            sink=FanOutSink(sinks),
            params=CoordinatorParams(
                min_buy_usd=settings.min_buy_usd,
                holder_min_raw_balance=settings.holder_min_raw_balance,
                excluded_addresses=settings.excluded_wallets,
                trade_payout_share=settings.trade_payout_share,
                holder_payout_share=settings.holder_payout_share,
                dedup_capacity=settings.dedup_capacity,
            ),
            holder_pool=holder_pool,
            holder_source=build_holder_source(args.source, rpc, settings.token_address),
            price_service=PriceService(fetcher, ttl_seconds=settings.price_ttl_seconds),
        )

        results = await coordinator.run(_aiter(iter_jsonl_payloads(args.events)))
    finally:
        await fetcher.close()
        await rpc.close()

    drawn = [r for r in results if r.skipped is None]
    paid = [
        rep
        for r in drawn
        for rep in r.reports
        if rep.payout is not None and rep.payout.succeeded
    ]
    print("========================================")
    print("🎰 BUY JACKPOT REPLAY")
    print("========================================")
    print(f"Events handled : {len(results)}")
    print(f"Draws run      : {len(drawn)}")
    print(f"Skipped        : {len(results) - len(drawn)}")
    print(f"Payouts sent   : {len(paid)}")
    if args.audit:
        print(f"🧾 Wrote audit: {args.audit}")
    return 0


def cmd_replay(args: argparse.Namespace) -> int:
    settings = Settings.from_env(rpc_url_override=args.rpc_url)
    return asyncio.run(_replay(args, settings))


def cmd_draw(args: argparse.Namespace) -> int:
    """Shows the chance for a USD value and runs sample draws, moving no funds."""
    usd = Decimal(args.usd)
    chance = chance_for_usd_value(usd)
    engine = DrawEngine()
    print(f"Buy amount    : ${usd}")
    print(f"Probability   : {chance}%")
    print("----------------------------------------")
    for _ in range(args.count):
        outcome = engine.draw(chance)
        verdict = "🏆 WINNER 🏆" if outcome.is_winner else "🚫 You are not a winner"
        pot = ", ".join(str(n) for n in outcome.sample_set)
        print(f"{verdict} | Winning Num: {outcome.winning_number} | Pot: [{pot}]")
    return 0


async def _balance(args: argparse.Namespace, settings: Settings) -> int:
    rpc = RpcClient(settings.rpc_url, timeout_s=args.timeout)
    try:
        trade_pool, holder_pool = build_pools(settings, SolanaLedger(rpc))
        for pool in (trade_pool, holder_pool):
            if pool is None:
                continue
            balance = await pool.current_balance()
            fee = await pool.estimate_transfer_fee()
            print(f"{pool.name:<16}: {pool.address}")
            print(f"{'balance':<16}: {balance:.5f} SOL (transfer fee ~{fee:.6f} SOL)")
    finally:
        await rpc.close()
    return 0


def cmd_balance(args: argparse.Namespace) -> int:
    settings = Settings.from_env(rpc_url_override=args.rpc_url)
    return asyncio.run(_balance(args, settings))


async def _holders(args: argparse.Namespace, settings: Settings) -> int:
    rpc = RpcClient(settings.rpc_url, timeout_s=args.timeout)
    try:
        source = build_holder_source(args.source, rpc, settings.token_address)
        holders = await source.list_holders()
    finally:
        await rpc.close()

    excluded = set(settings.excluded_wallets) | set(BURN_ADDRESSES)
    eligible = eligible_holders(holders, settings.holder_min_raw_balance, excluded)
    print(f"Token accounts   : {len(holders)}")
    print(f"Eligible holders : {len(eligible)}")
    print(f"Min balance      : {to_tokens(settings.holder_min_raw_balance)}")
    for h in eligible[: args.top]:
        print(f"  {h.owner_address}  {to_tokens(h.raw_token_amount)}")
    return 0


def cmd_holders(args: argparse.Namespace) -> int:
    settings = Settings.from_env(rpc_url_override=args.rpc_url)
    return asyncio.run(_holders(args, settings))


def cmd_verify(args: argparse.Namespace) -> int:
    result = verify_audit(args.audit)
    print("✅ AUDIT VERIFIED")
    print(f"Records       : {result['records']}")
    print(f"Winning draws : {result['wins']}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="buy-jackpot",
        description="Buy-triggered Solana jackpot with an independent holder jackpot.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--rpc-url", default=None, help="Override RPC URL (else use env).")
    p.add_argument("--timeout", type=float, default=60.0, help="RPC timeout seconds.")

    sub = p.add_subparsers(dest="cmd", required=True)

    r = sub.add_parser("replay", help="Feed JSON-lines trade payloads through the jackpot.")
    r.add_argument("--events", required=True, help="Path to a JSON-lines trade file.")
    r.add_argument("--audit", default=None, help="Append draw reports to this JSONL file.")
    r.add_argument(
        "--dry-run",
        action="store_true",
        help="Read balances but never submit a transfer.",
    )
    r.add_argument(
        "--source",
        choices=("helius", "program"),
        default="helius",
        help="Where holder lists come from.",
    )
    r.set_defaults(func=cmd_replay)

    d = sub.add_parser("draw", help="Show the chance for a buy size and sample draws.")
    d.add_argument("--usd", required=True, help="Buy value in USD.")
    d.add_argument("--count", type=int, default=1, help="Number of draws to show.")
    d.set_defaults(func=cmd_draw)

    b = sub.add_parser("balance", help="Show pool addresses and balances.")
    b.set_defaults(func=cmd_balance)

    h = sub.add_parser("holders", help="List eligible holders for the holder jackpot.")
    h.add_argument("--source", choices=("helius", "program"), default="helius")
    h.add_argument("--top", type=int, default=10, help="How many holders to print.")
    h.set_defaults(func=cmd_holders)

    v = sub.add_parser("verify", help="Verify the draws recorded in an audit JSONL file.")
    v.add_argument("--audit", required=True, help="Path to audit JSONL.")
    v.set_defaults(func=cmd_verify)

    return p


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.verbose)
    try:
        raise SystemExit(args.func(args))
    except ConfigurationError as e:
        log.error("Configuration error: %s", e)
        raise SystemExit(2)
