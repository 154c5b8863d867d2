from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class PortfolioRecord(Base):
    __tablename__ = "portfolios"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    min_investment: Mapped[Decimal] = mapped_column(Numeric(20, 4))
    cash_balance: Mapped[Decimal] = mapped_column(Numeric(20, 4))
    current_value: Mapped[Decimal] = mapped_column(Numeric(20, 4))
    duration_months: Mapped[int] = mapped_column(Integer, default=24)
    category: Mapped[str] = mapped_column(String(64), default="Basic")
    time_horizon: Mapped[str | None] = mapped_column(String(128), nullable=True)
    rebalancing: Mapped[str | None] = mapped_column(String(128), nullable=True)
    index: Mapped[str | None] = mapped_column(String(128), nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    monthly_gains: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cagr_since_inception: Mapped[str | None] = mapped_column(String(64), nullable=True)
    one_year_gains: Mapped[str | None] = mapped_column(String(64), nullable=True)
    compare_with: Mapped[str | None] = mapped_column(String(128), nullable=True)
    monthly_contribution: Mapped[Decimal | None] = mapped_column(Numeric(20, 4), nullable=True)
    last_rebalance_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    next_rebalance_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    description: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    subscription_fee: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    download_links: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    you_tube_links: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))

    holdings: Mapped[list[HoldingRecord]] = relationship(
        back_populates="portfolio",
        cascade="all, delete-orphan",
        order_by="HoldingRecord.position",
    )


class HoldingRecord(Base):
    __tablename__ = "holdings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    portfolio_id: Mapped[str] = mapped_column(ForeignKey("portfolios.id", ondelete="CASCADE"), index=True)
    position: Mapped[int] = mapped_column(Integer)
    symbol: Mapped[str] = mapped_column(String(96))
    sector: Mapped[str] = mapped_column(String(128), default="")
    stock_cap_type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    status: Mapped[str] = mapped_column(String(16))
    weight: Mapped[Decimal] = mapped_column(Numeric(10, 4))
    buy_price: Mapped[Decimal] = mapped_column(Numeric(20, 8))
    quantity: Mapped[int] = mapped_column(Integer)
    allocated_amount: Mapped[Decimal] = mapped_column(Numeric(20, 8))
    actual_investment_amount: Mapped[Decimal] = mapped_column(Numeric(20, 8))
    leftover_amount: Mapped[Decimal] = mapped_column(Numeric(20, 8))
    original_weight: Mapped[Decimal | None] = mapped_column(Numeric(10, 4), nullable=True)
    original_buy_price: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)
    total_quantity_owned: Mapped[int | None] = mapped_column(Integer, nullable=True)
    realized_pnl: Mapped[Decimal] = mapped_column(Numeric(20, 8), default=Decimal("0"))
    sold_at: Mapped[date | None] = mapped_column(Date, nullable=True)

    portfolio: Mapped[PortfolioRecord] = relationship(back_populates="holdings")


class TipRecord(Base):
    __tablename__ = "tips"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    portfolio_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    title: Mapped[str] = mapped_column(String(255))
    stock_id: Mapped[str] = mapped_column(String(64))
    category: Mapped[str] = mapped_column(String(32))
    content: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    description: Mapped[str] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(16))
    action: Mapped[str | None] = mapped_column(String(64), nullable=True)
    buy_range: Mapped[str | None] = mapped_column(String(64), nullable=True)
    target_price: Mapped[str | None] = mapped_column(String(64), nullable=True)
    target_percentage: Mapped[str | None] = mapped_column(String(64), nullable=True)
    add_more_at: Mapped[str | None] = mapped_column(String(64), nullable=True)
    tip_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    exit_price: Mapped[str | None] = mapped_column(String(64), nullable=True)
    exit_status: Mapped[str | None] = mapped_column(String(128), nullable=True)
    exit_status_percentage: Mapped[str | None] = mapped_column(String(64), nullable=True)
    horizon: Mapped[str] = mapped_column(String(64))
    download_links: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))


class StockSymbolRecord(Base):
    __tablename__ = "stock_symbols"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    symbol: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    exchange: Mapped[str] = mapped_column(String(32))
    name: Mapped[str] = mapped_column(String(255))
    current_price: Mapped[Decimal] = mapped_column(Numeric(20, 8))
    previous_price: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)
    market_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    volume: Mapped[str | None] = mapped_column(String(64), nullable=True)
    market_cap: Mapped[str | None] = mapped_column(String(64), nullable=True)
    last_price_update: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))


class ChartDataRecord(Base):
    __tablename__ = "chart_data"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    portfolio_id: Mapped[str] = mapped_column(String(36), index=True)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    date_only: Mapped[date] = mapped_column(Date, index=True)
    portfolio_value: Mapped[Decimal] = mapped_column(Numeric(20, 4))
    cash_remaining: Mapped[Decimal] = mapped_column(Numeric(20, 4))
    compare_index_value: Mapped[Decimal] = mapped_column(Numeric(20, 4), default=Decimal("0"))
    compare_index_price_source: Mapped[str] = mapped_column(String(16), default="closing")
    used_closing_prices: Mapped[bool] = mapped_column(Boolean, default=True)
    data_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    data_quality_issues: Mapped[list[str]] = mapped_column(JSON, default=list)
