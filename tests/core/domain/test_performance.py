from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from core.domain.errors import InvalidInputError, NotFoundError
from core.domain.performance import (
    ChartDataPoint,
    ChartDataUpdate,
    PriceSource,
    duplicate_points,
    max_drawdown,
    percent_change,
    snapshot_portfolio,
    summarize_performance,
)
from core.domain.portfolio import PortfolioCreate
from core.domain.reconciler import build_portfolio


def _point(day: int, value: str, *, index: str = "0", hour: int = 16, portfolio: str = "p-1") -> ChartDataPoint:
    return ChartDataPoint(
        portfolio_id=portfolio,
        date=datetime(2025, 3, day, hour, tzinfo=UTC),
        portfolio_value=Decimal(value),
        cash_remaining=Decimal("1000"),
        compare_index_value=Decimal(index),
    )


def test_date_only_follows_utc_date() -> None:
    point = ChartDataPoint.model_validate(
        {"portfolio": "p-1", "date": "2025-03-04T23:30:00-05:00", "portfolioValue": "100", "cashRemaining": "5"}
    )

    assert point.portfolio_id == "p-1"
    assert point.date_only == date(2025, 3, 5)
    assert point.compare_index_price_source is PriceSource.CLOSING


def test_snapshot_values_portfolio() -> None:
    portfolio = build_portfolio(
        PortfolioCreate.model_validate(
            {
                "name": "Growth",
                "minInvestment": "100000",
                "subscriptionFee": [{"type": "monthly", "price": "10"}],
                "holdings": [{"symbol": "AAPL", "sector": "Tech", "weight": "10", "buyPrice": "150"}],
            }
        )
    )

    point = snapshot_portfolio(portfolio, taken_at=datetime(2025, 3, 1, tzinfo=UTC))

    assert point.portfolio_id == portfolio.id
    assert point.portfolio_value == portfolio.current_value
    assert point.cash_remaining == Decimal("90100")
    assert point.date_only == date(2025, 3, 1)
    assert point.data_verified is True


def test_percent_change_and_drawdown() -> None:
    assert percent_change(Decimal("100"), Decimal("112.345")) == Decimal("12.35")
    assert percent_change(Decimal("0"), Decimal("50")) == Decimal("0")
    assert max_drawdown([Decimal("100"), Decimal("120"), Decimal("90"), Decimal("130"), Decimal("117")]) == Decimal(
        "-25.00"
    )
    assert max_drawdown([Decimal("100"), Decimal("110")]) == Decimal("0.00")


def test_summarize_performance_over_range() -> None:
    points = [
        _point(3, "110000", index="2100"),
        _point(1, "100000", index="2000"),
        _point(2, "95000", index="2050"),
        _point(4, "120000", index="2200"),
        _point(2, "50000", portfolio="other"),
    ]

    summary = summarize_performance("p-1", points, end=date(2025, 3, 3))

    assert summary.start_date == date(2025, 3, 1)
    assert summary.end_date == date(2025, 3, 3)
    assert summary.start_value == Decimal("100000")
    assert summary.current_value == Decimal("110000")
    assert summary.total_return == Decimal("10.00")
    assert summary.benchmark_return == Decimal("5.00")
    assert summary.excess_return == Decimal("5.00")
    assert summary.max_drawdown == Decimal("-5.00")
    assert summary.data_points == 3


def test_summarize_without_benchmark() -> None:
    summary = summarize_performance("p-1", [_point(1, "100"), _point(2, "150")])

    assert summary.total_return == Decimal("50.00")
    assert summary.benchmark_return is None
    assert summary.excess_return is None


def test_summarize_rejects_bad_ranges() -> None:
    with pytest.raises(InvalidInputError):
        summarize_performance("p-1", [_point(1, "100")], start=date(2025, 3, 5), end=date(2025, 3, 1))
    with pytest.raises(NotFoundError):
        summarize_performance("p-1", [_point(1, "100")], start=date(2025, 4, 1))


def test_duplicate_points_keep_latest_per_day() -> None:
    morning = _point(1, "100", hour=9)
    evening = _point(1, "105", hour=17)
    next_day = _point(2, "110")
    other = _point(1, "50", portfolio="other")

    assert duplicate_points([evening, next_day, morning, other]) == [morning]


def test_apply_update_recomputes_day() -> None:
    point = _point(1, "100")

    updated = point.apply_update(
        ChartDataUpdate.model_validate({"date": "2025-03-09T10:00:00Z", "portfolioValue": "120", "dataVerified": None})
    )

    assert updated.id == point.id
    assert updated.date_only == date(2025, 3, 9)
    assert updated.portfolio_value == Decimal("120")
    assert updated.data_verified is False
