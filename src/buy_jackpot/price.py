from __future__ import annotations

import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Awaitable, Callable, Optional

import httpx

from .errors import PriceUnavailableError
from .project_constants import COINGECKO_PRICE_URL, PRICE_TTL_SECONDS

log = logging.getLogger(__name__)

PriceFetcher = Callable[[], Awaitable[Decimal]]


class CoinGeckoFetcher:
    def __init__(
        self,
        url: str = COINGECKO_PRICE_URL,
        timeout_s: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.client = httpx.AsyncClient(timeout=timeout_s, transport=transport)

    async def close(self) -> None:
        await self.client.aclose()

    async def __call__(self) -> Decimal:
        resp = await self.client.get(self.url)
        resp.raise_for_status()
        data = resp.json()
        quote = data.get("solana") if isinstance(data, dict) else None
        usd = quote.get("usd") if isinstance(quote, dict) else None
        if usd is None:
            raise PriceUnavailableError("CoinGecko response has no solana.usd")
        try:
            price = Decimal(str(usd))
        except InvalidOperation as e:
            raise PriceUnavailableError(f"CoinGecko sent a non-numeric price: {usd!r}") from e
        if not price.is_finite() or price <= 0:
            raise PriceUnavailableError(f"CoinGecko sent an unusable price: {usd!r}")
        return price


class PriceService:
    """SOL/USD price cached for ``ttl_seconds``.

    ``clock`` returns seconds; tests pass a fake one.
    """

    def __init__(
        self,
        fetcher: PriceFetcher,
        ttl_seconds: float = PRICE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.fetcher = fetcher
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._price: Optional[Decimal] = None
        self._updated_at: Optional[float] = None

    async def get_price(self) -> Decimal:
        """Cached price; refreshes when stale and falls back to the stale value on failure."""
        now = self.clock()
        if (
            self._price is not None
            and self._updated_at is not None
            and now - self._updated_at < self.ttl_seconds
        ):
            return self._price
        try:
            return await self.force_refresh()
        except (httpx.HTTPError, PriceUnavailableError, ValueError, ArithmeticError) as e:
            if self._price is None:
                raise PriceUnavailableError(f"No SOL price available: {e}") from e
            log.warning("Failed to update SOL price, using cached value: %s", e)
            return self._price

    async def force_refresh(self) -> Decimal:
        price = await self.fetcher()
        self._price = price
        self._updated_at = self.clock()
        log.info("Updated SOL price: $%s", price)
        return price
