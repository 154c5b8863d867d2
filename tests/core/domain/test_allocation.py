from __future__ import annotations

from decimal import Decimal

import pytest

from core.domain.allocation import accurate_weight, calculate_allocation, whole_shares
from core.domain.errors import InvalidInputError


def test_allocation_floors_to_whole_shares() -> None:
    result = calculate_allocation(Decimal("10"), Decimal("150"), Decimal("100000"))

    assert result.allocated_amount == Decimal("10000")
    assert result.quantity == 66
    assert result.actual_investment_amount == Decimal("9900")
    assert result.leftover_amount == Decimal("100")


def test_allocation_buys_nothing_when_price_exceeds_allocation() -> None:
    result = calculate_allocation(Decimal("1"), Decimal("500"), Decimal("10000"))

    assert result.quantity == 0
    assert result.actual_investment_amount == 0
    assert result.leftover_amount == Decimal("100")


def test_zero_weight_allocates_nothing() -> None:
    result = calculate_allocation(Decimal("0"), Decimal("10"), Decimal("1000"))

    assert result.quantity == 0
    assert result.allocated_amount == 0
    assert result.leftover_amount == 0


@pytest.mark.parametrize(
    ("weight", "price", "base"),
    [
        ("10", "150", "100000"),
        ("33.33", "7.77", "25000"),
        ("100", "0.01", "1"),
        ("5", "999.99", "1234.56"),
    ],
)
def test_allocation_never_overspends_without_tolerance(weight: str, price: str, base: str) -> None:
    result = calculate_allocation(Decimal(weight), Decimal(price), Decimal(base))

    assert result.actual_investment_amount <= result.allocated_amount
    assert 0 <= result.leftover_amount < Decimal(price)
    assert result.actual_investment_amount + result.leftover_amount == result.allocated_amount


def test_tolerance_buys_one_extra_share_when_gap_is_small() -> None:
    plain = calculate_allocation(Decimal("10"), Decimal("25.5"), Decimal("1000"))
    assert plain.quantity == 3

    rounded = calculate_allocation(
        Decimal("10"), Decimal("25.5"), Decimal("1000"), rounding_tolerance=Decimal("0.1")
    )
    # 3 shares cost 76.5; the 4th is 2 short, within 10% of 25.5
    assert rounded.quantity == 4
    assert rounded.actual_investment_amount == Decimal("102")
    assert rounded.leftover_amount == Decimal("-2")


def test_tolerance_is_ignored_when_gap_is_large() -> None:
    result = calculate_allocation(
        Decimal("10"), Decimal("32"), Decimal("1000"), rounding_tolerance=Decimal("0.1")
    )

    assert result.quantity == 3
    assert result.leftover_amount == Decimal("4")


def test_tolerance_does_not_fire_on_exact_allocation() -> None:
    result = calculate_allocation(
        Decimal("10"), Decimal("25"), Decimal("1000"), rounding_tolerance=Decimal("1")
    )

    assert result.quantity == 4
    assert result.leftover_amount == 0


@pytest.mark.parametrize(
    ("kwargs", "field"),
    [
        ({"weight_percent": Decimal("10"), "buy_price": Decimal("0"), "base_capital": Decimal("100")}, "buyPrice"),
        ({"weight_percent": Decimal("10"), "buy_price": Decimal("-1"), "base_capital": Decimal("100")}, "buyPrice"),
        ({"weight_percent": Decimal("10"), "buy_price": Decimal("1"), "base_capital": Decimal("-5")}, "baseCapital"),
        ({"weight_percent": Decimal("101"), "buy_price": Decimal("1"), "base_capital": Decimal("100")}, "weight"),
        ({"weight_percent": Decimal("-1"), "buy_price": Decimal("1"), "base_capital": Decimal("100")}, "weight"),
    ],
    ids=["zero-price", "negative-price", "negative-base", "weight-over-100", "negative-weight"],
)
def test_allocation_rejects_invalid_input(kwargs: dict[str, Decimal], field: str) -> None:
    with pytest.raises(InvalidInputError) as excinfo:
        calculate_allocation(**kwargs)

    assert excinfo.value.field == field


def test_allocation_rejects_tolerance_outside_unit_range() -> None:
    with pytest.raises(InvalidInputError):
        calculate_allocation(Decimal("10"), Decimal("1"), Decimal("100"), rounding_tolerance=Decimal("1.5"))


def test_whole_shares_floors() -> None:
    assert whole_shares(Decimal("66.999")) == 66
    assert whole_shares(Decimal("0.5")) == 0


def test_accurate_weight_reflects_rounded_investment() -> None:
    assert accurate_weight(Decimal("9900"), Decimal("100000")) == Decimal("9.90")
    assert accurate_weight(Decimal("1"), Decimal("3")) == Decimal("33.33")
    assert accurate_weight(Decimal("100"), Decimal("0")) == Decimal("0.00")


def test_quarter_weight_buys_exact_shares() -> None:
    result = calculate_allocation(Decimal("25"), Decimal("100"), Decimal("10000"))

    assert result.allocated_amount == Decimal("2500")
    assert result.quantity == 25
    assert result.actual_investment_amount == Decimal("2500")
    assert result.leftover_amount == 0


def test_share_price_above_allocation_leaves_everything_unused() -> None:
    result = calculate_allocation(Decimal("10"), Decimal("333"), Decimal("1000"))

    assert result.allocated_amount == Decimal("100")
    assert result.quantity == 0
    assert result.actual_investment_amount == 0
    assert result.leftover_amount == Decimal("100")


def test_allocation_is_repeatable() -> None:
    args = (Decimal("12.5"), Decimal("41.3"), Decimal("52000"))

    assert calculate_allocation(*args) == calculate_allocation(*args)
