"""Weight-to-shares allocation arithmetic."""

from __future__ import annotations

from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from core.domain.errors import InvalidInputError

HUNDRED = Decimal("100")
WEIGHT_PLACES = Decimal("0.01")


class AllocationResult(BaseModel):
    allocated_amount: Decimal
    quantity: int
    actual_investment_amount: Decimal
    leftover_amount: Decimal

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


def whole_shares(value: Decimal) -> int:
    """Floor a share count; markets here trade integer lots only."""
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def calculate_allocation(
    weight_percent: Decimal,
    buy_price: Decimal,
    base_capital: Decimal,
    *,
    rounding_tolerance: Decimal = Decimal("0"),
) -> AllocationResult:
    """Convert a target weight into a whole-share purchase.

    Args:
        weight_percent: Target share of ``base_capital``, 0 to 100.
        buy_price: Price per share, must be positive.
        base_capital: Capital the weight applies to.
        rounding_tolerance: Fraction of ``buy_price``. When the cash still
            missing for one more share is within this fraction, the extra
            share is bought and the leftover turns into a small negative
            debit. Zero disables the rule.
    """

    weight_percent = Decimal(weight_percent)
    buy_price = Decimal(buy_price)
    base_capital = Decimal(base_capital)
    rounding_tolerance = Decimal(rounding_tolerance)

    if buy_price <= 0:
        raise InvalidInputError("Buy price must be greater than 0", field="buyPrice")
    if base_capital < 0:
        raise InvalidInputError("Base capital cannot be negative", field="baseCapital")
    if weight_percent < 0 or weight_percent > HUNDRED:
        raise InvalidInputError("Weight percentage must be between 0 and 100", field="weight")
    if rounding_tolerance < 0 or rounding_tolerance > 1:
        raise InvalidInputError("Rounding tolerance must be between 0 and 1", field="roundingTolerance")

    allocated_amount = weight_percent / HUNDRED * base_capital
    quantity = whole_shares(allocated_amount / buy_price)
    leftover_amount = allocated_amount - quantity * buy_price

    if rounding_tolerance > 0 and leftover_amount > 0:
        gap_to_next_share = buy_price - leftover_amount
        if gap_to_next_share <= buy_price * rounding_tolerance:
            quantity += 1

    actual_investment_amount = quantity * buy_price
    return AllocationResult(
        allocated_amount=allocated_amount,
        quantity=quantity,
        actual_investment_amount=actual_investment_amount,
        leftover_amount=allocated_amount - actual_investment_amount,
    )


def accurate_weight(actual_investment_amount: Decimal, base_capital: Decimal) -> Decimal:
    """Weight actually held after integer rounding, to two decimals."""
    if base_capital <= 0:
        return Decimal("0.00")
    return (actual_investment_amount / base_capital * HUNDRED).quantize(WEIGHT_PLACES, rounding=ROUND_HALF_UP)


__all__ = ["AllocationResult", "accurate_weight", "calculate_allocation", "whole_shares"]
