"""Registry of tradable symbols with their reference prices."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

SEARCH_MIN_LENGTH = 2


class MarketStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    PRE_MARKET = "PRE_MARKET"
    AFTER_HOURS = "AFTER_HOURS"


def _normalize_ticker(value: Any) -> Any:
    return value.strip().upper() if isinstance(value, str) else value


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


class StockSymbolCreate(BaseModel):
    symbol: str = Field(min_length=1)
    exchange: str = Field(min_length=1)
    name: str = Field(min_length=1)
    current_price: Decimal = Field(gt=0)
    previous_price: Decimal | None = Field(default=None, gt=0)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("symbol", "exchange", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        return _normalize_ticker(value)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return _strip(value)


class StockSymbolUpdate(BaseModel):
    symbol: str | None = Field(default=None, min_length=1)
    exchange: str | None = Field(default=None, min_length=1)
    name: str | None = Field(default=None, min_length=1)
    current_price: Decimal | None = Field(default=None, gt=0)
    previous_price: Decimal | None = Field(default=None, gt=0)
    market_status: MarketStatus | None = None
    volume: str | None = None
    market_cap: str | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("symbol", "exchange", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        return _normalize_ticker(value)


class StockSymbol(StockSymbolCreate):
    id: str = Field(default_factory=lambda: str(uuid4()))
    market_status: MarketStatus | None = None
    volume: str | None = None
    market_cap: str | None = None
    last_price_update: datetime | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def apply_update(self, update: StockSymbolUpdate) -> StockSymbol:
        """Merge an update; a new current price shifts the old one into ``previous_price``."""
        changes = {key: value for key, value in update.model_dump(exclude_unset=True).items() if value is not None}
        merged = self.model_dump()
        merged.update(changes)
        now = datetime.now(UTC)
        new_price = changes.get("current_price")
        if new_price is not None and new_price != self.current_price:
            if "previous_price" not in changes:
                merged["previous_price"] = self.current_price
            merged["last_price_update"] = now
        merged["updated_at"] = now
        return StockSymbol.model_validate(merged)


def search_keyword(keyword: str | None) -> str | None:
    """Return the usable search keyword, or ``None`` when it is too short to search on."""
    if keyword is None:
        return None
    keyword = keyword.strip()
    if len(keyword) < SEARCH_MIN_LENGTH:
        return None
    return keyword


__all__ = [
    "SEARCH_MIN_LENGTH",
    "MarketStatus",
    "StockSymbol",
    "StockSymbolCreate",
    "StockSymbolUpdate",
    "search_keyword",
]
