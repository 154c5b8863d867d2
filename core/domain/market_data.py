from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


class StockPrice(BaseModel):
    """Latest known market price for a symbol."""

    symbol: str
    price: Decimal = Field(gt=0)
    updated_at: datetime | None = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("symbol")
    @classmethod
    def _normalize_symbol(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("updated_at", mode="before")
    @classmethod
    def _parse_timestamp_field(cls, value: Any) -> datetime | None:
        return _parse_timestamp(value)


__all__ = ["StockPrice"]
