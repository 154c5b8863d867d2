from __future__ import annotations

from decimal import Decimal

import pytest

from core.domain.errors import InvalidInputError
from core.domain.pnl import calculate_pnl, reinvest_realized_profit, shares_to_sell


def test_full_sale_realizes_profit() -> None:
    result = calculate_pnl(66, Decimal("150"), Decimal("180"), Decimal("1"))

    assert result.quantity_sold == 66
    assert result.sale_value == Decimal("11880")
    assert result.original_cost == Decimal("9900")
    assert result.profit_loss == Decimal("1980")
    assert result.profit_loss_percent == Decimal("20.00")
    assert result.remaining_quantity == 0
    assert result.remaining_value == 0


def test_partial_sale_floors_quantity() -> None:
    result = calculate_pnl(10, Decimal("100"), Decimal("90"), Decimal("0.25"))

    assert result.quantity_sold == 2
    assert result.remaining_quantity == 8
    assert result.profit_loss == Decimal("-20")
    assert result.profit_loss_percent == Decimal("-10.00")
    assert result.remaining_value == Decimal("720")


def test_zero_proportion_sells_nothing() -> None:
    result = calculate_pnl(10, Decimal("100"), Decimal("90"), Decimal("0"))

    assert result.quantity_sold == 0
    assert result.profit_loss == 0
    assert result.profit_loss_percent == 0
    assert result.remaining_quantity == 10


def test_sold_plus_remaining_equals_original() -> None:
    for proportion in ("0.1", "0.33", "0.5", "0.99", "1"):
        result = calculate_pnl(37, Decimal("12.5"), Decimal("14"), Decimal(proportion))
        assert result.quantity_sold + result.remaining_quantity == 37
        assert result.profit_loss == result.sale_value - result.original_cost


@pytest.mark.parametrize(
    ("args", "field"),
    [
        ((-1, Decimal("1"), Decimal("1"), Decimal("1")), "quantity"),
        ((1, Decimal("0"), Decimal("1"), Decimal("1")), "originalBuyPrice"),
        ((1, Decimal("1"), Decimal("0"), Decimal("1")), "currentMarketPrice"),
        ((1, Decimal("1"), Decimal("1"), Decimal("1.1")), "proportionToSell"),
    ],
)
def test_pnl_rejects_invalid_input(args: tuple, field: str) -> None:
    with pytest.raises(InvalidInputError) as excinfo:
        calculate_pnl(*args)

    assert excinfo.value.field == field


def test_shares_to_sell_bounds() -> None:
    assert shares_to_sell(10, Decimal("1")) == 10
    assert shares_to_sell(10, Decimal("0")) == 0
    assert shares_to_sell(10, Decimal("0.19")) == 1


def test_reinvest_only_adds_gains() -> None:
    assert reinvest_realized_profit(Decimal("1000"), Decimal("50")) == Decimal("1050")
    assert reinvest_realized_profit(Decimal("1000"), Decimal("-50")) == Decimal("1000")
    assert reinvest_realized_profit(Decimal("1000"), Decimal("0")) == Decimal("1000")


def test_half_sale_of_gaining_position() -> None:
    result = calculate_pnl(100, Decimal("50"), Decimal("80"), Decimal("0.5"))

    assert result.quantity_sold == 50
    assert result.sale_value == Decimal("4000")
    assert result.original_cost == Decimal("2500")
    assert result.profit_loss == Decimal("1500")
    assert result.profit_loss_percent == Decimal("60")
    assert result.remaining_quantity == 50
    assert result.remaining_value == Decimal("4000")
