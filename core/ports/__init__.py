"""Port interfaces for adapters."""

from core.ports.price_cache import PriceCache
from core.ports.repository import ChartDataRepository, PortfolioRepository, StockSymbolRepository, TipRepository

__all__ = ["ChartDataRepository", "PortfolioRepository", "PriceCache", "StockSymbolRepository", "TipRepository"]
