from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from adapters.storage.sqlalchemy_store import SqlAlchemyPortfolioStore
from core.domain.errors import InvalidInputError, NotFoundError
from core.domain.performance import ChartDataPoint, ChartDataUpdate, snapshot_portfolio
from core.domain.portfolio import EditAction, HoldingEdit, HoldingStatus, PortfolioCreate
from core.domain.reconciler import build_portfolio, edit_holding
from core.domain.stock_symbol import StockSymbol, StockSymbolUpdate
from core.domain.tip import Tip, TipStatus, TipUpdate


def _portfolio():
    return build_portfolio(
        PortfolioCreate.model_validate(
            {
                "name": "Growth",
                "minInvestment": "100000",
                "subscriptionFee": [{"type": "monthly", "price": "10"}],
                "description": [{"key": "home", "value": "Large caps"}],
                "holdings": [
                    {"symbol": "AAPL", "sector": "Tech", "weight": "10", "buyPrice": "150"},
                    {"symbol": "MSFT", "sector": "Tech", "weight": "20", "buyPrice": "300"},
                ],
            }
        )
    )


def _build_store(tmp_path) -> SqlAlchemyPortfolioStore:
    return SqlAlchemyPortfolioStore(f"sqlite:///{tmp_path / 'nested' / 'portfolio.db'}")


def test_create_and_get_portfolio(tmp_path) -> None:
    store = _build_store(tmp_path)
    portfolio = _portfolio()

    store.create_portfolio(portfolio)
    loaded = store.get_portfolio(portfolio.id)

    assert loaded is not None
    assert loaded.name == "Growth"
    assert loaded.cash_balance == Decimal("70300")
    assert [item.symbol for item in loaded.holdings] == ["AAPL", "MSFT"]
    assert loaded.holdings[0].quantity == 66
    assert loaded.holdings[0].weight == Decimal("9.90")
    assert loaded.subscription_fee[0].price == Decimal("10")
    assert loaded.description[0].value == "Large caps"
    assert store.list_portfolios()[0].id == portfolio.id

    store.close()


def test_update_portfolio_replaces_holdings(tmp_path) -> None:
    store = _build_store(tmp_path)
    portfolio = store.create_portfolio(_portfolio())

    sold = edit_holding(
        portfolio,
        "AAPL",
        HoldingEdit(action=EditAction.SELL, latest_price=Decimal("180")),
        sold_on=date(2025, 1, 2),
    ).portfolio
    store.update_portfolio(sold)
    loaded = store.get_portfolio(portfolio.id)

    assert loaded is not None
    assert [item.symbol for item in loaded.holdings] == ["MSFT", "Sold-Date-2025-01-02-AAPL"]
    assert loaded.holdings[1].status is HoldingStatus.SELL
    assert loaded.holdings[1].sold_at == date(2025, 1, 2)
    assert loaded.holdings[1].realized_pnl == Decimal("1980")
    assert loaded.cash_balance == Decimal("82180")

    store.close()


def test_update_and_delete_missing_portfolio(tmp_path) -> None:
    store = _build_store(tmp_path)

    with pytest.raises(NotFoundError):
        store.update_portfolio(_portfolio())
    assert store.get_portfolio("missing") is None
    assert store.delete_portfolio("missing") is False

    store.close()


def test_delete_portfolio_removes_holdings(tmp_path) -> None:
    store = _build_store(tmp_path)
    portfolio = store.create_portfolio(_portfolio())

    assert store.delete_portfolio(portfolio.id) is True
    assert store.get_portfolio(portfolio.id) is None
    assert store.list_portfolios() == []

    store.close()


def test_tip_round_trip(tmp_path) -> None:
    store = _build_store(tmp_path)
    tip = Tip.model_validate(
        {
            "portfolioId": "p-1",
            "title": "Accumulate",
            "stockId": "INFY",
            "content": "Buy below 1500",
            "description": "IT pick",
            "downloadLinks": [{"name": "Report", "url": "https://example.com/r.pdf"}],
        }
    )
    other = Tip.model_validate({"title": "Other", "stockId": "TCS", "content": "Hold", "description": "x"})

    store.create_tip(tip)
    store.create_tip(other)

    assert [item.id for item in store.list_tips_for_portfolio("p-1")] == [tip.id]
    assert {item.id for item in store.list_tips()} == {tip.id, other.id}

    store.update_tip(tip.apply_update(TipUpdate(status=TipStatus.CLOSED)))
    loaded = store.get_tip(tip.id)
    assert loaded is not None
    assert loaded.status is TipStatus.CLOSED
    assert loaded.content[0].value == "Buy below 1500"
    assert loaded.download_links[0].name == "Report"

    assert store.delete_tip(tip.id) is True
    assert store.delete_tip(tip.id) is False
    assert store.get_tip(tip.id) is None

    store.close()


def _stock_symbol(symbol: str, name: str, price: str = "100") -> StockSymbol:
    return StockSymbol.model_validate({"symbol": symbol, "exchange": "NSE", "name": name, "currentPrice": price})


def test_stock_symbol_registry(tmp_path) -> None:
    store = _build_store(tmp_path)
    infy = store.create_stock_symbol(_stock_symbol("INFY", "Infosys Ltd", "1500"))
    store.create_stock_symbol(_stock_symbol("TCS", "Tata Consultancy Services"))
    store.create_stock_symbol(_stock_symbol("TATAMOTORS", "Tata Motors"))

    assert store.count_stock_symbols() == 3
    assert [item.symbol for item in store.list_stock_symbols(offset=1, limit=1)] == ["TATAMOTORS"]
    assert [item.symbol for item in store.search_stock_symbols("tata")] == ["TATAMOTORS", "TCS"]
    assert [item.symbol for item in store.search_stock_symbols("INF")] == ["INFY"]
    assert store.search_stock_symbols("100%") == []

    loaded = store.get_stock_symbol_by_ticker(" infy ")
    assert loaded is not None
    assert loaded.id == infy.id
    assert loaded.current_price == Decimal("1500")

    store.update_stock_symbol(loaded.apply_update(StockSymbolUpdate(current_price=Decimal("1525"))))
    repriced = store.get_stock_symbol(infy.id)
    assert repriced is not None
    assert repriced.current_price == Decimal("1525")
    assert repriced.previous_price == Decimal("1500")

    assert store.delete_stock_symbol(infy.id) is True
    assert store.delete_stock_symbol(infy.id) is False
    assert store.get_stock_symbol_by_ticker("INFY") is None

    store.close()


def test_stock_symbol_tickers_are_unique(tmp_path) -> None:
    store = _build_store(tmp_path)
    store.create_stock_symbol(_stock_symbol("INFY", "Infosys"))
    tcs = store.create_stock_symbol(_stock_symbol("TCS", "TCS"))

    with pytest.raises(InvalidInputError) as excinfo:
        store.create_stock_symbol(_stock_symbol("infy", "Duplicate"))
    assert excinfo.value.field == "symbol"
    with pytest.raises(InvalidInputError):
        store.update_stock_symbol(tcs.apply_update(StockSymbolUpdate(symbol="INFY")))
    with pytest.raises(NotFoundError):
        store.update_stock_symbol(_stock_symbol("WIPRO", "Wipro"))

    store.close()


def test_record_snapshot_keeps_one_point_per_day(tmp_path) -> None:
    store = _build_store(tmp_path)
    portfolio = store.create_portfolio(_portfolio())
    morning = snapshot_portfolio(
        portfolio, taken_at=datetime(2025, 3, 1, 9, tzinfo=UTC), compare_index_value=Decimal("22000")
    )

    first = store.record_snapshot(morning)
    second = store.record_snapshot(snapshot_portfolio(portfolio, taken_at=datetime(2025, 3, 1, 15, tzinfo=UTC)))
    store.record_snapshot(snapshot_portfolio(portfolio, taken_at=datetime(2025, 3, 2, 15, tzinfo=UTC)))

    points = store.list_chart_points(portfolio_id=portfolio.id)
    assert second.id == first.id
    assert [point.date_only for point in points] == [date(2025, 3, 2), date(2025, 3, 1)]
    assert points[1].date.hour == 15
    assert points[1].compare_index_value == Decimal("22000")
    assert store.count_chart_points(portfolio_id=portfolio.id, start=date(2025, 3, 2)) == 1

    store.delete_portfolio(portfolio.id)
    assert store.count_chart_points(portfolio_id=portfolio.id) == 0

    store.close()


def test_chart_point_crud(tmp_path) -> None:
    store = _build_store(tmp_path)
    point = ChartDataPoint(
        portfolio_id="p-1",
        date=datetime(2025, 3, 1, 16, tzinfo=UTC),
        portfolio_value=Decimal("100000"),
        cash_remaining=Decimal("2500"),
        data_quality_issues=["missing close for INFY"],
    )
    extra = ChartDataPoint(
        portfolio_id="p-1",
        date=datetime(2025, 3, 1, 17, tzinfo=UTC),
        portfolio_value=Decimal("100100"),
        cash_remaining=Decimal("2500"),
    )

    store.create_chart_point(point)
    store.create_chart_point(extra)
    store.update_chart_point(point.apply_update(ChartDataUpdate(portfolio_value=Decimal("101000"))))
    loaded = store.get_chart_point(point.id)

    assert loaded is not None
    assert loaded.portfolio_value == Decimal("101000")
    assert loaded.data_quality_issues == ["missing close for INFY"]
    assert [item.id for item in store.list_chart_points(limit=1)] == [extra.id]
    assert store.delete_chart_points([point.id, extra.id, "missing"]) == 2
    assert store.delete_chart_point(point.id) is False
    with pytest.raises(NotFoundError):
        store.update_chart_point(point)

    store.close()
