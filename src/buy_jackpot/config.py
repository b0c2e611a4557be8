from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import FrozenSet, Optional

from dotenv import load_dotenv

from .errors import ConfigurationError
from .ledger import is_valid_address
from .project_constants import (
    DEDUP_CAPACITY,
    HOLDER_MIN_RAW_BALANCE,
    HOLDER_PAYOUT_SHARE,
    MIN_BUY_USD,
    PRICE_TTL_SECONDS,
    TRADE_PAYOUT_SHARE,
)
from .token_accounts import read_address_list
from .wallet import load_keypair


def _env(name: str) -> str:
    return os.getenv(name, "").strip()


def _decimal(name: str, default: Decimal) -> Decimal:
    raw = _env(name)
    if not raw:
        return default
    try:
        value = Decimal(raw)
    except InvalidOperation as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
    if not value.is_finite() or value < 0:
        raise ConfigurationError(f"{name} must be a non-negative number, got {raw!r}")
    return value


def _share(name: str, default: Decimal) -> Decimal:
    value = _decimal(name, default)
    if not 0 < value <= 1:
        raise ConfigurationError(f"{name} must be in (0, 1], got {value}")
    return value


def _int(name: str, default: int) -> int:
    raw = _env(name)
    if not raw:
        return default
    try:
        value = int(Decimal(raw))
    except (InvalidOperation, ValueError, OverflowError) as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
    if value < 0:
        raise ConfigurationError(f"{name} must be non-negative, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    jackpot_private_key: str
    token_address: str
    holders_jackpot_private_key: Optional[str] = None
    min_buy_usd: Decimal = MIN_BUY_USD
    holder_min_raw_balance: int = HOLDER_MIN_RAW_BALANCE
    excluded_wallets: FrozenSet[str] = frozenset()
    trade_payout_share: Decimal = TRADE_PAYOUT_SHARE
    holder_payout_share: Decimal = HOLDER_PAYOUT_SHARE
    dedup_capacity: int = DEDUP_CAPACITY
    price_ttl_seconds: float = PRICE_TTL_SECONDS

    @staticmethod
    def rpc_url_from_env(rpc_url_override: str | None = None) -> str:
        # If user provides --rpc-url, trust it.
        if rpc_url_override:
            return rpc_url_override

        # Otherwise, use RPC_URL from env if present, else build helius url from key.
        env_rpc = _env("RPC_URL")
        if env_rpc:
            return env_rpc

        helius_key = _env("HELIUS_API_KEY")
        if not helius_key:
            raise ConfigurationError(
                "Missing HELIUS_API_KEY (or RPC_URL). Put it in .env or export it."
            )
        return f"https://mainnet.helius-rpc.com/?api-key={helius_key}"

    @staticmethod
    def from_env(rpc_url_override: str | None = None) -> "Settings":
        load_dotenv()

        rpc_url = Settings.rpc_url_from_env(rpc_url_override)

        jackpot_key = _env("JACKPOT_PRIVATE_KEY")
        if not jackpot_key:
            raise ConfigurationError("JACKPOT_PRIVATE_KEY is not set in environment variables.")
        jackpot_address = load_keypair(jackpot_key).pubkey()

        token_address = _env("TOKEN_ADDRESS")
        if not token_address:
            raise ConfigurationError("TOKEN_ADDRESS is not set in environment variables.")
        if not is_valid_address(token_address):
            raise ConfigurationError(f"TOKEN_ADDRESS is not a valid address: {token_address}")

        excluded = {w.strip() for w in _env("EXCLUDED_WALLETS").split(",") if w.strip()}
        excluded_file = _env("EXCLUDED_WALLETS_FILE")
        if excluded_file:
            try:
                excluded |= read_address_list(excluded_file)
            except OSError as e:
                raise ConfigurationError(f"Cannot read EXCLUDED_WALLETS_FILE: {e}") from e
        # the mint itself never wins
        excluded.add(token_address)

        try:
            ttl = float(_env("PRICE_TTL_SECONDS") or PRICE_TTL_SECONDS)
        except ValueError as e:
            raise ConfigurationError("PRICE_TTL_SECONDS must be a number") from e

        holders_key = _env("HOLDERS_JACKPOT_PRIVATE_KEY") or None
        # the same key may be written as base58 or as a byte array
        if holders_key is not None and load_keypair(holders_key).pubkey() == jackpot_address:
            raise ConfigurationError(
                "HOLDERS_JACKPOT_PRIVATE_KEY must differ from JACKPOT_PRIVATE_KEY."
            )

        dedup_capacity = _int("DEDUP_CAPACITY", DEDUP_CAPACITY)
        if dedup_capacity <= 0:
            raise ConfigurationError("DEDUP_CAPACITY must be positive")

        return Settings(
            rpc_url=rpc_url,
            jackpot_private_key=jackpot_key,
            token_address=token_address,
            holders_jackpot_private_key=holders_key,
            min_buy_usd=_decimal("MIN_BUY_USD", MIN_BUY_USD),
            holder_min_raw_balance=_int("HOLDER_MIN_RAW_BALANCE", HOLDER_MIN_RAW_BALANCE),
            excluded_wallets=frozenset(excluded),
            trade_payout_share=_share("TRADE_PAYOUT_SHARE", TRADE_PAYOUT_SHARE),
            holder_payout_share=_share("HOLDER_PAYOUT_SHARE", HOLDER_PAYOUT_SHARE),
            dedup_capacity=dedup_capacity,
            price_ttl_seconds=ttl,
        )
