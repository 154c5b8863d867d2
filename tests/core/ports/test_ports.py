from __future__ import annotations

from adapters.market_data.redis_price_cache import RedisPriceCache
from adapters.storage.sqlalchemy_store import SqlAlchemyPortfolioStore
from core.ports import ChartDataRepository, PortfolioRepository, PriceCache, StockSymbolRepository, TipRepository


def test_ports_expose_expected_methods() -> None:
    assert {
        "get_portfolio",
        "list_portfolios",
        "create_portfolio",
        "update_portfolio",
        "delete_portfolio",
    } <= set(PortfolioRepository.__dict__)
    assert {"get_tip", "list_tips", "list_tips_for_portfolio", "create_tip", "update_tip", "delete_tip"} <= set(
        TipRepository.__dict__
    )
    assert {"get_stock_symbol_by_ticker", "search_stock_symbols", "count_stock_symbols"} <= set(
        StockSymbolRepository.__dict__
    )
    assert {"list_chart_points", "record_snapshot", "delete_chart_points"} <= set(ChartDataRepository.__dict__)
    assert {"store_price", "get_latest_prices", "close"} <= set(PriceCache.__dict__)


def test_adapters_implement_ports() -> None:
    for port in (PortfolioRepository, TipRepository, StockSymbolRepository, ChartDataRepository):
        missing = {name for name in port.__dict__ if not name.startswith("_")} - set(dir(SqlAlchemyPortfolioStore))
        assert not missing
    assert PriceCache in RedisPriceCache.__mro__
