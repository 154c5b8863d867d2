"""Realized profit/loss for full and partial liquidations."""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from core.domain.allocation import HUNDRED, whole_shares
from core.domain.errors import InvalidInputError

logger = logging.getLogger(__name__)

PERCENT_PLACES = Decimal("0.01")


class PnLResult(BaseModel):
    quantity_sold: int
    sale_value: Decimal
    original_cost: Decimal
    profit_loss: Decimal
    profit_loss_percent: Decimal
    remaining_quantity: int
    remaining_value: Decimal

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


def shares_to_sell(original_quantity: int, proportion_to_sell: Decimal) -> int:
    # Floor everywhere: a partial sell never rounds up into a share the proportion does not cover.
    if proportion_to_sell >= 1:
        return original_quantity
    if proportion_to_sell <= 0:
        return 0
    return whole_shares(original_quantity * proportion_to_sell)


def calculate_pnl(
    original_quantity: int,
    original_buy_price: Decimal,
    current_market_price: Decimal,
    proportion_to_sell: Decimal,
) -> PnLResult:
    original_buy_price = Decimal(original_buy_price)
    current_market_price = Decimal(current_market_price)
    proportion_to_sell = Decimal(proportion_to_sell)

    if original_quantity < 0:
        raise InvalidInputError("Quantity cannot be negative", field="quantity")
    if original_buy_price <= 0:
        raise InvalidInputError("Original buy price must be greater than 0", field="originalBuyPrice")
    if current_market_price <= 0:
        raise InvalidInputError("Current market price must be greater than 0", field="currentMarketPrice")
    if proportion_to_sell < 0 or proportion_to_sell > 1:
        raise InvalidInputError("Proportion to sell must be between 0 and 1", field="proportionToSell")

    quantity_sold = shares_to_sell(original_quantity, proportion_to_sell)
    sale_value = quantity_sold * current_market_price
    original_cost = quantity_sold * original_buy_price
    profit_loss = sale_value - original_cost
    if original_cost > 0:
        profit_loss_percent = (profit_loss / original_cost * HUNDRED).quantize(PERCENT_PLACES, rounding=ROUND_HALF_UP)
    else:
        profit_loss_percent = Decimal("0")
    remaining_quantity = original_quantity - quantity_sold

    return PnLResult(
        quantity_sold=quantity_sold,
        sale_value=sale_value,
        original_cost=original_cost,
        profit_loss=profit_loss,
        profit_loss_percent=profit_loss_percent,
        remaining_quantity=remaining_quantity,
        remaining_value=remaining_quantity * current_market_price,
    )


def reinvest_realized_profit(min_investment: Decimal, profit_loss: Decimal) -> Decimal:
    """Compound a realized gain into the investable capital pool.

    Losses leave the pool untouched.
    """
    if profit_loss <= 0:
        return min_investment
    updated = min_investment + profit_loss
    logger.info("Reinvesting realized profit %s; min investment %s -> %s", profit_loss, min_investment, updated)
    return updated


__all__ = ["PnLResult", "calculate_pnl", "reinvest_realized_profit", "shares_to_sell"]
