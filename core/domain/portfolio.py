from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

SOLD_SYMBOL_PREFIX = "Sold-Date-"

_ZERO = Decimal("0")


class HoldingStatus(str, Enum):
    FRESH_BUY = "Fresh-Buy"
    HOLD = "Hold"
    ADDON_BUY = "addon-buy"
    PARTIAL_SELL = "partial-sell"
    SELL = "Sell"


class StockCapType(str, Enum):
    MICRO = "micro cap"
    SMALL = "small cap"
    MID = "mid cap"
    LARGE = "large cap"
    MEGA = "mega cap"


class FeePeriod(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class EditAction(str, Enum):
    BUY = "buy"
    ADDON = "addon"
    PARTIAL_SELL = "partial-sell"
    SELL = "sell"
    HOLD = "hold"


class Holding(BaseModel):
    """A position in a single security within a portfolio."""

    symbol: str
    sector: str = ""
    stock_cap_type: StockCapType | None = None
    status: HoldingStatus = HoldingStatus.FRESH_BUY
    weight: Decimal = _ZERO
    buy_price: Decimal
    quantity: int = Field(default=0, ge=0)
    allocated_amount: Decimal = _ZERO
    actual_investment_amount: Decimal = Field(
        default=_ZERO,
        validation_alias=AliasChoices(
            "actualInvestmentAmount", "actual_investment_amount", "minimumInvestmentValueStock"
        ),
        serialization_alias="actualInvestmentAmount",
    )
    leftover_amount: Decimal = _ZERO
    original_weight: Decimal | None = None
    original_buy_price: Decimal | None = None
    total_quantity_owned: int | None = None
    realized_pnl: Decimal = Field(default=_ZERO, alias="realizedPnL")
    sold_at: date | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @property
    def is_active(self) -> bool:
        return self.status is not HoldingStatus.SELL and not self.symbol.startswith(SOLD_SYMBOL_PREFIX)

    @property
    def cost_basis_price(self) -> Decimal:
        """Per-share price used as the cost basis for realized P&L."""
        return self.original_buy_price if self.original_buy_price is not None else self.buy_price


class DescriptionItem(BaseModel):
    key: str
    value: str


class SubscriptionFee(BaseModel):
    type: FeePeriod
    price: Decimal = Field(gt=0)


class DownloadLink(BaseModel):
    link_type: str
    link_url: str
    name: str | None = None
    link_discription: str | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class YouTubeLink(BaseModel):
    link: str
    created_at: datetime | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PortfolioDetails(BaseModel):
    """Descriptive portfolio fields that carry no allocation semantics."""

    description: list[DescriptionItem] = Field(default_factory=list)
    category: str = Field(default="Basic", alias="PortfolioCategory")
    time_horizon: str | None = None
    rebalancing: str | None = None
    index: str | None = None
    details: str | None = None
    monthly_gains: str | None = None
    cagr_since_inception: str | None = Field(default=None, alias="CAGRSinceInception")
    one_year_gains: str | None = None
    compare_with: str | None = None
    monthly_contribution: Decimal | None = None
    last_rebalance_date: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "lastRebalanceDate", "lastRebalancingDate", "last_rebalance_date"
        ),
        serialization_alias="lastRebalanceDate",
    )
    next_rebalance_date: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "nextRebalanceDate", "nextRebalancingDate", "next_rebalance_date"
        ),
        serialization_alias="nextRebalanceDate",
    )
    download_links: list[DownloadLink] = Field(default_factory=list)
    you_tube_links: list[YouTubeLink] = Field(default_factory=list)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Portfolio(PortfolioDetails):
    """Container of holdings plus a cash balance."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    cash_balance: Decimal = _ZERO
    current_value: Decimal = _ZERO
    min_investment: Decimal = Field(ge=0)
    duration_months: int = 24
    subscription_fee: list[SubscriptionFee] = Field(default_factory=list)
    holdings: list[Holding] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def active_holdings(self) -> list[Holding]:
        return [holding for holding in self.holdings if holding.is_active]

    @computed_field(alias="totalWeight")
    @property
    def total_weight(self) -> Decimal:
        return sum((holding.weight for holding in self.active_holdings), _ZERO)

    @computed_field(alias="holdingsValue")
    @property
    def holdings_value(self) -> Decimal:
        return sum((holding.actual_investment_amount for holding in self.active_holdings), _ZERO)

    @property
    def remaining_weight(self) -> Decimal:
        return Decimal("100") - self.total_weight

    def weighting_base(self) -> Decimal:
        """Capital that weight percentages are applied to.

        A portfolio without active holdings allocates against its minimum
        investment; once it holds stock, against cash plus holdings value.
        """
        if not self.active_holdings:
            return self.min_investment
        return self.cash_balance + self.holdings_value

    def find_active(self, symbol: str) -> Holding | None:
        target = symbol.strip().lower()
        for holding in self.active_holdings:
            if holding.symbol.lower() == target:
                return holding
        return None


class HoldingRequest(BaseModel):
    """Operator input for adding a new holding."""

    symbol: str
    sector: str = ""
    weight: Decimal
    buy_price: Decimal
    stock_cap_type: StockCapType | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("symbol", "sector", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class HoldingEdit(BaseModel):
    """Operator input for changing an existing holding."""

    action: EditAction
    weight_change: Decimal = _ZERO
    latest_price: Decimal | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PortfolioCreate(PortfolioDetails):
    name: str
    min_investment: Decimal
    duration_months: int = 24
    subscription_fee: list[SubscriptionFee] = Field(default_factory=list)
    holdings: list[HoldingRequest] = Field(default_factory=list)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class PortfolioUpdate(BaseModel):
    """Partial update of descriptive and fee fields; holdings change elsewhere."""

    name: str | None = None
    description: list[DescriptionItem] | None = None
    category: str | None = Field(default=None, alias="PortfolioCategory")
    time_horizon: str | None = None
    rebalancing: str | None = None
    index: str | None = None
    details: str | None = None
    monthly_gains: str | None = None
    cagr_since_inception: str | None = Field(default=None, alias="CAGRSinceInception")
    one_year_gains: str | None = None
    compare_with: str | None = None
    monthly_contribution: Decimal | None = None
    last_rebalance_date: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "lastRebalanceDate", "lastRebalancingDate", "last_rebalance_date"
        ),
    )
    next_rebalance_date: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "nextRebalanceDate", "nextRebalancingDate", "next_rebalance_date"
        ),
    )
    min_investment: Decimal | None = Field(default=None, ge=0)
    duration_months: int | None = None
    subscription_fee: list[SubscriptionFee] | None = None
    download_links: list[DownloadLink] | None = None
    you_tube_links: list[YouTubeLink] | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


__all__ = [
    "SOLD_SYMBOL_PREFIX",
    "DescriptionItem",
    "DownloadLink",
    "EditAction",
    "FeePeriod",
    "Holding",
    "HoldingEdit",
    "HoldingRequest",
    "HoldingStatus",
    "Portfolio",
    "PortfolioCreate",
    "PortfolioDetails",
    "PortfolioUpdate",
    "StockCapType",
    "SubscriptionFee",
    "YouTubeLink",
]
