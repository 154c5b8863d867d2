"""Merge allocation and P&L results into a portfolio's holdings.

Every operation takes a portfolio snapshot and returns a new one; the input
is never mutated, and validation runs before anything is recomputed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from core.domain.allocation import HUNDRED, WEIGHT_PLACES, AllocationResult, accurate_weight, calculate_allocation
from core.domain.errors import CapacityError, InvalidInputError, NotFoundError
from core.domain.pnl import PnLResult, calculate_pnl, reinvest_realized_profit
from core.domain.portfolio import (
    SOLD_SYMBOL_PREFIX,
    DescriptionItem,
    EditAction,
    Holding,
    HoldingEdit,
    HoldingRequest,
    HoldingStatus,
    Portfolio,
    PortfolioCreate,
    PortfolioUpdate,
)

logger = logging.getLogger(__name__)

PRICE_PLACES = Decimal("0.0001")
_ZERO = Decimal("0")


@dataclass(frozen=True)
class ReconcilePolicy:
    """Business rules that operators may switch per deployment."""

    rounding_tolerance: Decimal = _ZERO
    reinvest_realized_profit: bool = False
    retain_sold_holdings: bool = True


DEFAULT_POLICY = ReconcilePolicy()


class ReconcileResult(BaseModel):
    portfolio: Portfolio
    holding: Holding | None = None
    allocation: AllocationResult | None = None
    pnl: PnLResult | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def sold_symbol(symbol: str, sold_on: date) -> str:
    return f"{SOLD_SYMBOL_PREFIX}{sold_on.isoformat()}-{symbol}"


def build_portfolio(request: PortfolioCreate, *, policy: ReconcilePolicy = DEFAULT_POLICY) -> Portfolio:
    """Create a portfolio funded with its minimum investment, then buy the requested holdings in order."""
    if not request.name:
        raise InvalidInputError("Portfolio name is required", field="name")
    if request.min_investment <= 0:
        raise InvalidInputError("Minimum investment must be greater than 0", field="minInvestment")
    if not request.subscription_fee:
        raise InvalidInputError("At least one subscription fee is required", field="subscriptionFee")

    fields = request.model_dump(exclude={"holdings"})
    descriptions = [item for item in request.description if item.value.strip()]
    if not descriptions:
        descriptions = [DescriptionItem(key="description", value=f"Investment portfolio: {request.name}")]
    fields["description"] = [item.model_dump() for item in descriptions]
    fields["cash_balance"] = request.min_investment
    fields["current_value"] = request.min_investment

    portfolio = Portfolio.model_validate(fields)
    for holding_request in request.holdings:
        portfolio = add_holding(portfolio, holding_request, policy=policy).portfolio
    logger.info(
        "Built portfolio %s with %d holdings; cash=%s",
        portfolio.name,
        len(portfolio.active_holdings),
        portfolio.cash_balance,
    )
    return portfolio


def update_portfolio_details(portfolio: Portfolio, update: PortfolioUpdate) -> Portfolio:
    """Apply descriptive changes. A new minimum investment moves cash by the same delta."""
    changes = update.model_dump(exclude_unset=True)
    if "name" in changes and not (changes["name"] or "").strip():
        raise InvalidInputError("Portfolio name is required", field="name")
    if "subscription_fee" in changes and not changes["subscription_fee"]:
        raise InvalidInputError("At least one subscription fee is required", field="subscriptionFee")

    merged = portfolio.model_dump()
    merged.update({key: value for key, value in changes.items() if value is not None})
    new_min = changes.get("min_investment")
    if new_min is not None and new_min != portfolio.min_investment:
        cash_balance = portfolio.cash_balance + (new_min - portfolio.min_investment)
        if cash_balance < 0:
            raise CapacityError(
                f"Minimum investment ({new_min}) is below the capital already invested ({portfolio.holdings_value})",
                field="minInvestment",
            )
        merged["cash_balance"] = cash_balance
        merged["current_value"] = cash_balance + portfolio.holdings_value
    merged["updated_at"] = datetime.now(UTC)
    return Portfolio.model_validate(merged)


def add_holding(
    portfolio: Portfolio,
    request: HoldingRequest,
    *,
    policy: ReconcilePolicy = DEFAULT_POLICY,
) -> ReconcileResult:
    symbol = request.symbol.strip()
    if not symbol:
        raise InvalidInputError("Stock symbol is required", field="symbol")
    if symbol.startswith(SOLD_SYMBOL_PREFIX):
        raise InvalidInputError(f"Symbols starting with {SOLD_SYMBOL_PREFIX} are reserved", field="symbol")
    if request.weight <= 0:
        raise InvalidInputError("Weight percentage must be greater than 0", field="weight")
    remaining = portfolio.remaining_weight
    if request.weight > remaining:
        raise CapacityError(
            f"Weight percentage ({request.weight}%) exceeds remaining weight ({remaining}%)", field="weight"
        )
    if request.buy_price <= 0:
        raise InvalidInputError("Buy price must be greater than 0", field="buyPrice")
    if not request.sector.strip():
        raise InvalidInputError("Sector is required", field="sector")
    if portfolio.find_active(symbol) is not None:
        raise InvalidInputError(
            "This symbol already exists. Use the edit function to modify existing holdings.", field="symbol"
        )

    base = portfolio.weighting_base()
    allocation = calculate_allocation(
        request.weight, request.buy_price, base, rounding_tolerance=policy.rounding_tolerance
    )
    _ensure_cash(portfolio, allocation.actual_investment_amount)
    weight = accurate_weight(allocation.actual_investment_amount, base)
    _ensure_weight(portfolio.total_weight + weight)

    holding = Holding(
        symbol=symbol,
        sector=request.sector,
        stock_cap_type=request.stock_cap_type,
        status=HoldingStatus.FRESH_BUY,
        weight=weight,
        buy_price=request.buy_price,
        quantity=allocation.quantity,
        allocated_amount=allocation.allocated_amount,
        actual_investment_amount=allocation.actual_investment_amount,
        leftover_amount=allocation.leftover_amount,
        original_weight=weight,
        original_buy_price=request.buy_price,
        total_quantity_owned=allocation.quantity,
        realized_pnl=_ZERO,
    )
    updated = _rebuild(
        portfolio,
        [*portfolio.holdings, holding],
        portfolio.cash_balance - allocation.actual_investment_amount,
    )
    logger.info(
        "Added %s qty=%d price=%s weight=%s leftover=%s",
        symbol,
        allocation.quantity,
        request.buy_price,
        weight,
        allocation.leftover_amount,
    )
    return ReconcileResult(portfolio=updated, holding=holding, allocation=allocation)


def edit_holding(
    portfolio: Portfolio,
    symbol: str,
    edit: HoldingEdit,
    *,
    market_price: Decimal | None = None,
    policy: ReconcilePolicy = DEFAULT_POLICY,
    sold_on: date | None = None,
) -> ReconcileResult:
    """Apply a hold/buy/addon/partial-sell/sell action to an active holding.

    The execution price is the edit's ``latest_price``, else ``market_price``,
    else the holding's own buy price.
    """
    holding = portfolio.find_active(symbol)
    if holding is None:
        raise NotFoundError(f"Holding not found: {symbol}", field="symbol")

    price = next(
        candidate for candidate in (edit.latest_price, market_price, holding.buy_price) if candidate is not None
    )
    if price <= 0:
        raise InvalidInputError("Latest price must be greater than 0", field="latestPrice")

    if edit.action is EditAction.HOLD:
        updated_holding = holding.model_copy(update={"status": HoldingStatus.HOLD})
        updated = _rebuild(portfolio, _replace(portfolio, holding, updated_holding), portfolio.cash_balance)
        return ReconcileResult(portfolio=updated, holding=updated_holding)
    if edit.action is EditAction.BUY:
        return _buy_more(portfolio, holding, edit.weight_change, price, HoldingStatus.FRESH_BUY, policy)
    if edit.action is EditAction.ADDON:
        return _buy_more(portfolio, holding, edit.weight_change, price, HoldingStatus.ADDON_BUY, policy)
    if edit.action is EditAction.PARTIAL_SELL:
        if edit.weight_change <= 0:
            raise InvalidInputError("Weight to sell must be greater than 0", field="weightChange")
        if edit.weight_change > holding.weight:
            raise InvalidInputError(
                f"Cannot sell more than current weight ({holding.weight}%)", field="weightChange"
            )
        proportion = edit.weight_change / holding.weight
        return _sell(portfolio, holding, proportion, price, policy, sold_on)
    return _sell(portfolio, holding, Decimal("1"), price, policy, sold_on)


def remove_holding(portfolio: Portfolio, symbol: str) -> ReconcileResult:
    """Drop an active holding without a sale, returning its investment to cash."""
    holding = portfolio.find_active(symbol)
    if holding is None:
        raise NotFoundError(f"Holding not found: {symbol}", field="symbol")
    holdings = [item for item in portfolio.holdings if item is not holding]
    updated = _rebuild(portfolio, holdings, portfolio.cash_balance + holding.actual_investment_amount)
    logger.info("Removed %s; returned %s to cash", holding.symbol, holding.actual_investment_amount)
    return ReconcileResult(portfolio=updated, holding=None)


def average_cost(
    quantity: int, price: Decimal, additional_quantity: int, additional_price: Decimal
) -> Decimal:
    """Weighted-average price across two lots of the same security."""
    total_quantity = quantity + additional_quantity
    if total_quantity == 0:
        return price
    total_cost = quantity * price + additional_quantity * additional_price
    return (total_cost / total_quantity).quantize(PRICE_PLACES, rounding=ROUND_HALF_UP)


def _buy_more(
    portfolio: Portfolio,
    holding: Holding,
    weight_change: Decimal,
    price: Decimal,
    status: HoldingStatus,
    policy: ReconcilePolicy,
) -> ReconcileResult:
    if weight_change <= 0:
        raise InvalidInputError("Weight to add must be greater than 0", field="weightChange")
    remaining = portfolio.remaining_weight
    if weight_change > remaining:
        raise CapacityError(
            f"Weight percentage ({weight_change}%) exceeds remaining weight ({remaining}%)", field="weightChange"
        )

    base = portfolio.weighting_base()
    allocation = calculate_allocation(weight_change, price, base, rounding_tolerance=policy.rounding_tolerance)
    if allocation.quantity == 0:
        raise InvalidInputError(
            f"Weight change of {weight_change}% does not cover a single share at {price}", field="weightChange"
        )
    _ensure_cash(portfolio, allocation.actual_investment_amount)
    added_weight = accurate_weight(allocation.actual_investment_amount, base)
    new_weight = holding.weight + added_weight
    _ensure_weight(portfolio.total_weight - holding.weight + new_weight)

    quantity = holding.quantity + allocation.quantity
    updated_holding = holding.model_copy(
        update={
            "status": status,
            "weight": new_weight,
            "buy_price": average_cost(holding.quantity, holding.buy_price, allocation.quantity, price),
            "original_buy_price": average_cost(
                holding.quantity, holding.cost_basis_price, allocation.quantity, price
            ),
            "quantity": quantity,
            "total_quantity_owned": quantity,
            "allocated_amount": holding.allocated_amount + allocation.allocated_amount,
            "actual_investment_amount": holding.actual_investment_amount + allocation.actual_investment_amount,
            "leftover_amount": holding.leftover_amount + allocation.leftover_amount,
            "original_weight": new_weight,
        }
    )
    updated = _rebuild(
        portfolio,
        _replace(portfolio, holding, updated_holding),
        portfolio.cash_balance - allocation.actual_investment_amount,
    )
    logger.info(
        "Bought %d more %s at %s; average price %s -> %s",
        allocation.quantity,
        holding.symbol,
        price,
        holding.buy_price,
        updated_holding.buy_price,
    )
    return ReconcileResult(portfolio=updated, holding=updated_holding, allocation=allocation)


def _sell(
    portfolio: Portfolio,
    holding: Holding,
    proportion: Decimal,
    price: Decimal,
    policy: ReconcilePolicy,
    sold_on: date | None,
) -> ReconcileResult:
    pnl = calculate_pnl(holding.quantity, holding.cost_basis_price, price, proportion)
    if proportion < 1 and pnl.quantity_sold == 0:
        raise InvalidInputError(
            f"Selling {proportion * HUNDRED:.2f}% of {holding.quantity} shares does not cover a whole share",
            field="weightChange",
        )

    min_investment = portfolio.min_investment
    if policy.reinvest_realized_profit:
        min_investment = reinvest_realized_profit(min_investment, pnl.profit_loss)
    cash_balance = portfolio.cash_balance + pnl.sale_value
    realized_pnl = holding.realized_pnl + pnl.profit_loss

    if pnl.remaining_quantity == 0:
        holdings = [item for item in portfolio.holdings if item is not holding]
        record = None
        if policy.retain_sold_holdings:
            sold_date = sold_on or datetime.now(UTC).date()
            record = holding.model_copy(
                update={
                    "symbol": sold_symbol(holding.symbol, sold_date),
                    "status": HoldingStatus.SELL,
                    "weight": _ZERO,
                    "quantity": 0,
                    "total_quantity_owned": 0,
                    "allocated_amount": _ZERO,
                    "actual_investment_amount": _ZERO,
                    "leftover_amount": _ZERO,
                    "original_weight": holding.weight,
                    "realized_pnl": realized_pnl,
                    "sold_at": sold_date,
                }
            )
            holdings.append(record)
        updated = _rebuild(portfolio, holdings, cash_balance, min_investment=min_investment)
        logger.info(
            "Sold all %d %s at %s; realized P&L %s", pnl.quantity_sold, holding.symbol, price, pnl.profit_loss
        )
        return ReconcileResult(portfolio=updated, holding=record, pnl=pnl)

    ratio = Decimal(pnl.remaining_quantity) / Decimal(holding.quantity)
    weight = (holding.weight * ratio).quantize(WEIGHT_PLACES, rounding=ROUND_HALF_UP)
    actual_investment_amount = pnl.remaining_quantity * holding.buy_price
    allocated_amount = holding.allocated_amount * ratio
    updated_holding = holding.model_copy(
        update={
            "status": HoldingStatus.PARTIAL_SELL,
            "weight": weight,
            "quantity": pnl.remaining_quantity,
            "total_quantity_owned": pnl.remaining_quantity,
            "allocated_amount": allocated_amount,
            "actual_investment_amount": actual_investment_amount,
            "leftover_amount": allocated_amount - actual_investment_amount,
            "original_weight": weight,
            "realized_pnl": realized_pnl,
        }
    )
    updated = _rebuild(
        portfolio,
        _replace(portfolio, holding, updated_holding),
        cash_balance,
        min_investment=min_investment,
    )
    logger.info(
        "Sold %d of %d %s at %s; realized P&L %s",
        pnl.quantity_sold,
        holding.quantity,
        holding.symbol,
        price,
        pnl.profit_loss,
    )
    return ReconcileResult(portfolio=updated, holding=updated_holding, pnl=pnl)


def _ensure_weight(total_weight: Decimal) -> None:
    if total_weight > HUNDRED:
        raise CapacityError(f"Total weight ({total_weight}%) exceeds 100%", field="weight")


def _ensure_cash(portfolio: Portfolio, amount: Decimal) -> None:
    if amount > portfolio.cash_balance:
        raise CapacityError(
            f"Investment ({amount}) exceeds available cash balance ({portfolio.cash_balance})",
            field="cashBalance",
        )


def _replace(portfolio: Portfolio, current: Holding, replacement: Holding) -> list[Holding]:
    return [replacement if item is current else item for item in portfolio.holdings]


def _rebuild(portfolio: Portfolio, holdings: list[Holding], cash_balance: Decimal, **changes: object) -> Portfolio:
    holdings_value = sum(
        (item.actual_investment_amount for item in holdings if item.is_active),
        _ZERO,
    )
    return portfolio.model_copy(
        update={
            "holdings": holdings,
            "cash_balance": cash_balance,
            "current_value": cash_balance + holdings_value,
            "updated_at": datetime.now(UTC),
            **changes,
        }
    )


__all__ = [
    "DEFAULT_POLICY",
    "ReconcilePolicy",
    "ReconcileResult",
    "add_holding",
    "average_cost",
    "build_portfolio",
    "edit_holding",
    "remove_holding",
    "sold_symbol",
    "update_portfolio_details",
]
