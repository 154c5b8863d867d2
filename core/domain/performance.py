"""Portfolio value history and the performance summary derived from it."""

from __future__ import annotations

from collections.abc import Sequence
import datetime as dt
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from core.domain.allocation import HUNDRED
from core.domain.errors import InvalidInputError, NotFoundError
from core.domain.portfolio import Portfolio

RETURN_PLACES = Decimal("0.01")
_ZERO = Decimal("0")


class PriceSource(str, Enum):
    CLOSING = "closing"
    OPENING = "opening"


class ChartDataFields(BaseModel):
    portfolio_id: str = Field(alias="portfolio")
    date: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.UTC))
    date_only: dt.date | None = None
    portfolio_value: Decimal = Field(ge=0)
    cash_remaining: Decimal
    compare_index_value: Decimal = _ZERO
    compare_index_price_source: PriceSource = PriceSource.CLOSING
    used_closing_prices: bool = True
    data_verified: bool = False
    data_quality_issues: list[str] = Field(default_factory=list)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @model_validator(mode="after")
    def _fill_date_only(self) -> ChartDataFields:
        if self.date_only is None:
            self.date_only = _as_utc(self.date).date()
        return self


class ChartDataPoint(ChartDataFields):
    """One valuation of a portfolio at a point in time."""

    id: str = Field(default_factory=lambda: str(uuid4()))

    def apply_update(self, update: ChartDataUpdate) -> ChartDataPoint:
        changes = {key: value for key, value in update.model_dump(exclude_unset=True).items() if value is not None}
        merged = self.model_dump()
        merged.update(changes)
        if "date" in changes and "date_only" not in changes:
            merged["date_only"] = None
        return ChartDataPoint.model_validate(merged)


class ChartDataUpdate(BaseModel):
    date: dt.datetime | None = None
    date_only: dt.date | None = None
    portfolio_value: Decimal | None = Field(default=None, ge=0)
    cash_remaining: Decimal | None = None
    compare_index_value: Decimal | None = None
    compare_index_price_source: PriceSource | None = None
    used_closing_prices: bool | None = None
    data_verified: bool | None = None
    data_quality_issues: list[str] | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PortfolioPerformance(BaseModel):
    portfolio_id: str
    start_date: dt.date
    end_date: dt.date
    start_value: Decimal
    current_value: Decimal
    total_return: Decimal
    benchmark_return: Decimal | None = None
    excess_return: Decimal | None = None
    max_drawdown: Decimal
    data_points: int

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _as_utc(moment: dt.datetime) -> dt.datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=dt.UTC)
    return moment.astimezone(dt.UTC)


def snapshot_portfolio(portfolio: Portfolio, *, taken_at: dt.datetime | None = None, **extra: Any) -> ChartDataPoint:
    """Value a portfolio as it stands after a reconciliation."""
    return ChartDataPoint(
        portfolio_id=portfolio.id,
        date=taken_at or dt.datetime.now(dt.UTC),
        portfolio_value=portfolio.current_value,
        cash_remaining=portfolio.cash_balance,
        data_verified=True,
        **extra,
    )


def percent_change(start: Decimal, end: Decimal) -> Decimal:
    if start <= 0:
        return _ZERO
    return ((end - start) / start * HUNDRED).quantize(RETURN_PLACES, rounding=ROUND_HALF_UP)


def max_drawdown(values: Sequence[Decimal]) -> Decimal:
    """Largest peak-to-trough fall, as a non-positive percentage."""
    peak: Decimal | None = None
    worst = _ZERO
    for value in values:
        if peak is None or value > peak:
            peak = value
            continue
        if peak > 0:
            worst = min(worst, (value - peak) / peak * HUNDRED)
    return worst.quantize(RETURN_PLACES, rounding=ROUND_HALF_UP)


def in_range(point: ChartDataPoint, start: dt.date | None, end: dt.date | None) -> bool:
    if start is not None and point.date_only < start:
        return False
    if end is not None and point.date_only > end:
        return False
    return True


def summarize_performance(
    portfolio_id: str,
    points: Sequence[ChartDataPoint],
    *,
    start: dt.date | None = None,
    end: dt.date | None = None,
) -> PortfolioPerformance:
    """Return, benchmark return and drawdown over the points that fall in ``[start, end]``."""
    if start is not None and end is not None and start > end:
        raise InvalidInputError("Start date must not be after end date", field="startDate")
    window = sorted(
        (point for point in points if point.portfolio_id == portfolio_id and in_range(point, start, end)),
        key=lambda point: _as_utc(point.date),
    )
    if not window:
        raise NotFoundError("No chart data in the requested range", field="portfolioId")

    first, last = window[0], window[-1]
    total_return = percent_change(first.portfolio_value, last.portfolio_value)
    benchmark_return = None
    excess_return = None
    if first.compare_index_value > 0:
        benchmark_return = percent_change(first.compare_index_value, last.compare_index_value)
        excess_return = total_return - benchmark_return
    return PortfolioPerformance(
        portfolio_id=portfolio_id,
        start_date=first.date_only,
        end_date=last.date_only,
        start_value=first.portfolio_value,
        current_value=last.portfolio_value,
        total_return=total_return,
        benchmark_return=benchmark_return,
        excess_return=excess_return,
        max_drawdown=max_drawdown([point.portfolio_value for point in window]),
        data_points=len(window),
    )


def duplicate_points(points: Sequence[ChartDataPoint]) -> list[ChartDataPoint]:
    """Points superseded by a later valuation of the same portfolio on the same day."""
    latest: dict[tuple[str, dt.date], ChartDataPoint] = {}
    duplicates: list[ChartDataPoint] = []
    for point in sorted(points, key=lambda item: _as_utc(item.date)):
        key = (point.portfolio_id, point.date_only)
        if key in latest:
            duplicates.append(latest[key])
        latest[key] = point
    return duplicates


__all__ = [
    "ChartDataFields",
    "ChartDataPoint",
    "ChartDataUpdate",
    "PortfolioPerformance",
    "PriceSource",
    "duplicate_points",
    "max_drawdown",
    "percent_change",
    "snapshot_portfolio",
    "summarize_performance",
]
