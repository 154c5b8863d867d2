from __future__ import annotations

import logging
from collections.abc import Iterable

from pydantic import ValidationError
from redis.asyncio import Redis

from core.domain.market_data import StockPrice
from core.ports.price_cache import PriceCache

logger = logging.getLogger(__name__)


class RedisPriceCache(PriceCache):
    """Redis-backed cache for the latest stock prices."""

    def __init__(
        self,
        redis_url: str,
        *,
        namespace: str = "prices",
        ttl_seconds: int | None = 900,
        client: Redis | None = None,
    ) -> None:
        self._client = client or Redis.from_url(redis_url, decode_responses=True)
        self._namespace = namespace
        self._ttl_seconds = ttl_seconds

    def _key(self, symbol: str) -> str:
        return f"{self._namespace}:{symbol.strip().upper()}"

    async def store_price(self, price: StockPrice) -> None:
        payload = price.model_dump_json()
        if self._ttl_seconds:
            await self._client.set(self._key(price.symbol), payload, ex=self._ttl_seconds)
        else:
            await self._client.set(self._key(price.symbol), payload)

    async def get_latest_prices(self, symbols: Iterable[str]) -> dict[str, StockPrice]:
        symbol_list = [symbol.strip().upper() for symbol in symbols if symbol and symbol.strip()]
        if not symbol_list:
            return {}
        payloads = await self._client.mget([self._key(symbol) for symbol in symbol_list])
        results: dict[str, StockPrice] = {}
        for symbol, payload in zip(symbol_list, payloads, strict=False):
            if not payload:
                continue
            try:
                results[symbol] = StockPrice.model_validate_json(payload)
            except ValidationError:
                logger.exception("Failed to decode price payload for %s", symbol)
        return results

    async def close(self) -> None:
        await self._client.aclose()
