from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from core.domain.market_data import StockPrice


class PriceCache(Protocol):
    """Cache interface for the latest known stock prices."""

    async def store_price(self, price: StockPrice) -> None:
        """Persist the latest price for a symbol."""

    async def get_latest_prices(self, symbols: Iterable[str]) -> dict[str, StockPrice]:
        """Fetch cached prices for the requested symbols."""

    async def close(self) -> None:
        """Close any underlying resources."""
