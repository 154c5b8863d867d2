from __future__ import annotations

from datetime import date
from typing import Protocol

from core.domain.performance import ChartDataPoint
from core.domain.portfolio import Portfolio
from core.domain.stock_symbol import StockSymbol
from core.domain.tip import Tip


class PortfolioRepository(Protocol):
    """Persistence interface for portfolios and their holdings."""

    def get_portfolio(self, portfolio_id: str) -> Portfolio | None:
        """Load one portfolio, or ``None`` when absent."""

    def list_portfolios(self) -> list[Portfolio]:
        """Load every portfolio, newest first."""

    def create_portfolio(self, portfolio: Portfolio) -> Portfolio:
        """Persist a new portfolio."""

    def update_portfolio(self, portfolio: Portfolio) -> Portfolio:
        """Replace a stored portfolio, holdings included."""

    def delete_portfolio(self, portfolio_id: str) -> bool:
        """Remove a portfolio; returns whether it existed."""


class TipRepository(Protocol):
    """Persistence interface for advisory tips."""

    def get_tip(self, tip_id: str) -> Tip | None:
        """Load one tip, or ``None`` when absent."""

    def list_tips(self) -> list[Tip]:
        """Load every tip, newest first."""

    def list_tips_for_portfolio(self, portfolio_id: str) -> list[Tip]:
        """Load the tips attached to a portfolio."""

    def create_tip(self, tip: Tip) -> Tip:
        """Persist a new tip."""

    def update_tip(self, tip: Tip) -> Tip:
        """Replace a stored tip."""

    def delete_tip(self, tip_id: str) -> bool:
        """Remove a tip; returns whether it existed."""


class StockSymbolRepository(Protocol):
    """Persistence interface for the stock-symbol registry."""

    def get_stock_symbol(self, symbol_id: str) -> StockSymbol | None:
        """Load one registry entry by id."""

    def get_stock_symbol_by_ticker(self, symbol: str) -> StockSymbol | None:
        """Load one registry entry by its ticker, case-insensitively."""

    def list_stock_symbols(self, *, offset: int = 0, limit: int | None = None) -> list[StockSymbol]:
        """Load registry entries ordered by ticker."""

    def count_stock_symbols(self) -> int:
        """Number of registry entries."""

    def search_stock_symbols(self, keyword: str, *, limit: int = 20) -> list[StockSymbol]:
        """Entries whose ticker or name contains ``keyword``."""

    def create_stock_symbol(self, stock_symbol: StockSymbol) -> StockSymbol:
        """Persist a new entry; tickers are unique."""

    def update_stock_symbol(self, stock_symbol: StockSymbol) -> StockSymbol:
        """Replace a stored entry."""

    def delete_stock_symbol(self, symbol_id: str) -> bool:
        """Remove an entry; returns whether it existed."""


class ChartDataRepository(Protocol):
    """Persistence interface for portfolio value history."""

    def get_chart_point(self, point_id: str) -> ChartDataPoint | None: ...

    def list_chart_points(
        self,
        *,
        portfolio_id: str | None = None,
        start: date | None = None,
        end: date | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[ChartDataPoint]:
        """Points in date order, newest first, optionally filtered."""

    def count_chart_points(
        self, *, portfolio_id: str | None = None, start: date | None = None, end: date | None = None
    ) -> int: ...

    def create_chart_point(self, point: ChartDataPoint) -> ChartDataPoint: ...

    def update_chart_point(self, point: ChartDataPoint) -> ChartDataPoint: ...

    def delete_chart_point(self, point_id: str) -> bool: ...

    def record_snapshot(self, point: ChartDataPoint) -> ChartDataPoint:
        """Store the day's valuation, replacing an earlier one for the same portfolio and day."""

    def delete_chart_points(self, point_ids: list[str]) -> int:
        """Remove several points; returns how many were removed."""
