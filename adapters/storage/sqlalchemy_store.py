from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from pathlib import Path

from sqlalchemy import create_engine, delete, func, or_, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import selectinload, sessionmaker

from adapters.storage.models import (
    Base,
    ChartDataRecord,
    HoldingRecord,
    PortfolioRecord,
    StockSymbolRecord,
    TipRecord,
)
from core.domain.errors import InvalidInputError, NotFoundError
from core.domain.performance import ChartDataPoint
from core.domain.portfolio import Holding, Portfolio
from core.domain.stock_symbol import StockSymbol
from core.domain.tip import Tip

logger = logging.getLogger(__name__)

_PORTFOLIO_COLUMNS = (
    "name",
    "min_investment",
    "cash_balance",
    "current_value",
    "duration_months",
    "category",
    "time_horizon",
    "rebalancing",
    "index",
    "details",
    "monthly_gains",
    "cagr_since_inception",
    "one_year_gains",
    "compare_with",
    "monthly_contribution",
    "last_rebalance_date",
    "next_rebalance_date",
    "created_at",
    "updated_at",
)
_PORTFOLIO_JSON_COLUMNS = ("description", "subscription_fee", "download_links", "you_tube_links")

_TIP_COLUMNS = (
    "portfolio_id",
    "title",
    "stock_id",
    "description",
    "action",
    "buy_range",
    "target_price",
    "target_percentage",
    "add_more_at",
    "tip_url",
    "exit_price",
    "exit_status",
    "exit_status_percentage",
    "horizon",
    "created_at",
    "updated_at",
)

_STOCK_SYMBOL_COLUMNS = (
    "symbol",
    "exchange",
    "name",
    "current_price",
    "previous_price",
    "volume",
    "market_cap",
    "last_price_update",
    "created_at",
    "updated_at",
)

_CHART_DATA_COLUMNS = (
    "portfolio_id",
    "date",
    "date_only",
    "portfolio_value",
    "cash_remaining",
    "compare_index_value",
    "used_closing_prices",
    "data_verified",
)


class SqlAlchemyPortfolioStore:
    """Portfolio, tip, stock-symbol and chart-data repository backed by SQLAlchemy."""

    def __init__(self, database_url: str, *, create_tables: bool = True) -> None:
        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        _ensure_sqlite_directory(database_url)
        self._engine: Engine = create_engine(database_url, connect_args=connect_args, future=True)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False)
        if create_tables:
            Base.metadata.create_all(self._engine)

    def get_portfolio(self, portfolio_id: str) -> Portfolio | None:
        with self._session_factory() as session:
            record = session.execute(
                select(PortfolioRecord)
                .options(selectinload(PortfolioRecord.holdings))
                .where(PortfolioRecord.id == portfolio_id)
            ).scalar_one_or_none()
            return self._record_to_portfolio(record) if record is not None else None

    def list_portfolios(self) -> list[Portfolio]:
        with self._session_factory() as session:
            records = session.execute(
                select(PortfolioRecord)
                .options(selectinload(PortfolioRecord.holdings))
                .order_by(PortfolioRecord.created_at.desc())
            ).scalars()
            return [self._record_to_portfolio(record) for record in records]

    def create_portfolio(self, portfolio: Portfolio) -> Portfolio:
        with self._session_factory() as session:
            record = PortfolioRecord(id=portfolio.id)
            self._apply_portfolio(record, portfolio)
            session.add(record)
            session.commit()
        logger.info("Stored portfolio %s with %d holdings", portfolio.id, len(portfolio.holdings))
        return portfolio

    def update_portfolio(self, portfolio: Portfolio) -> Portfolio:
        with self._session_factory() as session:
            record = session.execute(
                select(PortfolioRecord)
                .options(selectinload(PortfolioRecord.holdings))
                .where(PortfolioRecord.id == portfolio.id)
            ).scalar_one_or_none()
            if record is None:
                raise NotFoundError(f"Portfolio not found: {portfolio.id}", field="id")
            self._apply_portfolio(record, portfolio)
            session.commit()
        logger.info("Updated portfolio %s cash=%s", portfolio.id, portfolio.cash_balance)
        return portfolio

    def delete_portfolio(self, portfolio_id: str) -> bool:
        with self._session_factory() as session:
            record = session.get(PortfolioRecord, portfolio_id)
            if record is None:
                return False
            session.delete(record)
            session.execute(delete(ChartDataRecord).where(ChartDataRecord.portfolio_id == portfolio_id))
            session.commit()
        logger.info("Deleted portfolio %s", portfolio_id)
        return True

    def get_tip(self, tip_id: str) -> Tip | None:
        with self._session_factory() as session:
            record = session.get(TipRecord, tip_id)
            return self._record_to_tip(record) if record is not None else None

    def list_tips(self) -> list[Tip]:
        with self._session_factory() as session:
            records = session.execute(select(TipRecord).order_by(TipRecord.created_at.desc())).scalars()
            return [self._record_to_tip(record) for record in records]

    def list_tips_for_portfolio(self, portfolio_id: str) -> list[Tip]:
        with self._session_factory() as session:
            records = session.execute(
                select(TipRecord)
                .where(TipRecord.portfolio_id == portfolio_id)
                .order_by(TipRecord.created_at.desc())
            ).scalars()
            return [self._record_to_tip(record) for record in records]

    def create_tip(self, tip: Tip) -> Tip:
        with self._session_factory() as session:
            record = TipRecord(id=tip.id)
            self._apply_tip(record, tip)
            session.add(record)
            session.commit()
        logger.info("Stored tip %s for %s", tip.id, tip.stock_id)
        return tip

    def update_tip(self, tip: Tip) -> Tip:
        with self._session_factory() as session:
            record = session.get(TipRecord, tip.id)
            if record is None:
                raise NotFoundError(f"Tip not found: {tip.id}", field="id")
            self._apply_tip(record, tip)
            session.commit()
        logger.info("Updated tip %s", tip.id)
        return tip

    def delete_tip(self, tip_id: str) -> bool:
        with self._session_factory() as session:
            result = session.execute(delete(TipRecord).where(TipRecord.id == tip_id))
            deleted = bool(result.rowcount)
            session.commit()
        if deleted:
            logger.info("Deleted tip %s", tip_id)
        return deleted

    def get_stock_symbol(self, symbol_id: str) -> StockSymbol | None:
        with self._session_factory() as session:
            record = session.get(StockSymbolRecord, symbol_id)
            return self._record_to_stock_symbol(record) if record is not None else None

    def get_stock_symbol_by_ticker(self, symbol: str) -> StockSymbol | None:
        with self._session_factory() as session:
            record = session.execute(
                select(StockSymbolRecord).where(StockSymbolRecord.symbol == symbol.strip().upper())
            ).scalar_one_or_none()
            return self._record_to_stock_symbol(record) if record is not None else None

    def list_stock_symbols(self, *, offset: int = 0, limit: int | None = None) -> list[StockSymbol]:
        query = select(StockSymbolRecord).order_by(StockSymbolRecord.symbol).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        with self._session_factory() as session:
            return [self._record_to_stock_symbol(record) for record in session.execute(query).scalars()]

    def count_stock_symbols(self) -> int:
        with self._session_factory() as session:
            return session.execute(select(func.count()).select_from(StockSymbolRecord)).scalar_one()

    def search_stock_symbols(self, keyword: str, *, limit: int = 20) -> list[StockSymbol]:
        needle = keyword.strip().lower()
        query = (
            select(StockSymbolRecord)
            .where(
                or_(
                    func.lower(StockSymbolRecord.symbol).contains(needle, autoescape=True),
                    func.lower(StockSymbolRecord.name).contains(needle, autoescape=True),
                )
            )
            .order_by(StockSymbolRecord.symbol)
            .limit(limit)
        )
        with self._session_factory() as session:
            return [self._record_to_stock_symbol(record) for record in session.execute(query).scalars()]

    def create_stock_symbol(self, stock_symbol: StockSymbol) -> StockSymbol:
        with self._session_factory() as session:
            self._ensure_unique_ticker(session, stock_symbol)
            record = StockSymbolRecord(id=stock_symbol.id)
            self._apply_stock_symbol(record, stock_symbol)
            session.add(record)
            session.commit()
        logger.info("Registered stock symbol %s at %s", stock_symbol.symbol, stock_symbol.current_price)
        return stock_symbol

    def update_stock_symbol(self, stock_symbol: StockSymbol) -> StockSymbol:
        with self._session_factory() as session:
            record = session.get(StockSymbolRecord, stock_symbol.id)
            if record is None:
                raise NotFoundError(f"Stock symbol not found: {stock_symbol.id}", field="id")
            self._ensure_unique_ticker(session, stock_symbol)
            self._apply_stock_symbol(record, stock_symbol)
            session.commit()
        logger.info("Updated stock symbol %s", stock_symbol.symbol)
        return stock_symbol

    def delete_stock_symbol(self, symbol_id: str) -> bool:
        with self._session_factory() as session:
            result = session.execute(delete(StockSymbolRecord).where(StockSymbolRecord.id == symbol_id))
            deleted = bool(result.rowcount)
            session.commit()
        if deleted:
            logger.info("Deleted stock symbol %s", symbol_id)
        return deleted

    def get_chart_point(self, point_id: str) -> ChartDataPoint | None:
        with self._session_factory() as session:
            record = session.get(ChartDataRecord, point_id)
            return self._record_to_chart_point(record) if record is not None else None

    def list_chart_points(
        self,
        *,
        portfolio_id: str | None = None,
        start: date | None = None,
        end: date | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[ChartDataPoint]:
        query = (
            _filter_chart_points(select(ChartDataRecord), portfolio_id, start, end)
            .order_by(ChartDataRecord.date.desc())
            .offset(offset)
        )
        if limit is not None:
            query = query.limit(limit)
        with self._session_factory() as session:
            return [self._record_to_chart_point(record) for record in session.execute(query).scalars()]

    def count_chart_points(
        self, *, portfolio_id: str | None = None, start: date | None = None, end: date | None = None
    ) -> int:
        query = _filter_chart_points(select(func.count()).select_from(ChartDataRecord), portfolio_id, start, end)
        with self._session_factory() as session:
            return session.execute(query).scalar_one()

    def create_chart_point(self, point: ChartDataPoint) -> ChartDataPoint:
        with self._session_factory() as session:
            record = ChartDataRecord(id=point.id)
            self._apply_chart_point(record, point)
            session.add(record)
            session.commit()
        logger.info("Stored chart point %s for portfolio %s", point.date_only, point.portfolio_id)
        return point

    def update_chart_point(self, point: ChartDataPoint) -> ChartDataPoint:
        with self._session_factory() as session:
            record = session.get(ChartDataRecord, point.id)
            if record is None:
                raise NotFoundError(f"Price log not found: {point.id}", field="id")
            self._apply_chart_point(record, point)
            session.commit()
        return point

    def delete_chart_point(self, point_id: str) -> bool:
        return self.delete_chart_points([point_id]) > 0

    def delete_chart_points(self, point_ids: list[str]) -> int:
        if not point_ids:
            return 0
        with self._session_factory() as session:
            result = session.execute(delete(ChartDataRecord).where(ChartDataRecord.id.in_(point_ids)))
            deleted = result.rowcount or 0
            session.commit()
        logger.info("Deleted %d chart points", deleted)
        return deleted

    def record_snapshot(self, point: ChartDataPoint) -> ChartDataPoint:
        with self._session_factory() as session:
            record = session.execute(
                select(ChartDataRecord)
                .where(ChartDataRecord.portfolio_id == point.portfolio_id)
                .where(ChartDataRecord.date_only == point.date_only)
                .order_by(ChartDataRecord.date.desc())
                .limit(1)
            ).scalar_one_or_none()
            if record is None:
                record = ChartDataRecord(id=point.id)
                session.add(record)
            elif point.compare_index_value == 0:
                point = point.model_copy(update={"compare_index_value": Decimal(record.compare_index_value)})
            point = point.model_copy(update={"id": record.id})
            self._apply_chart_point(record, point)
            session.commit()
        logger.debug("Recorded value %s for portfolio %s", point.portfolio_value, point.portfolio_id)
        return point

    def close(self) -> None:
        self._engine.dispose()

    @staticmethod
    def _apply_portfolio(record: PortfolioRecord, portfolio: Portfolio) -> None:
        for column in _PORTFOLIO_COLUMNS:
            setattr(record, column, getattr(portfolio, column))
        for column in _PORTFOLIO_JSON_COLUMNS:
            items = getattr(portfolio, column)
            setattr(record, column, [item.model_dump(mode="json") for item in items])
        record.holdings = [
            SqlAlchemyPortfolioStore._holding_to_record(position, holding)
            for position, holding in enumerate(portfolio.holdings)
        ]

    @staticmethod
    def _holding_to_record(position: int, holding: Holding) -> HoldingRecord:
        return HoldingRecord(
            position=position,
            symbol=holding.symbol,
            sector=holding.sector,
            stock_cap_type=holding.stock_cap_type.value if holding.stock_cap_type else None,
            status=holding.status.value,
            weight=holding.weight,
            buy_price=holding.buy_price,
            quantity=holding.quantity,
            allocated_amount=holding.allocated_amount,
            actual_investment_amount=holding.actual_investment_amount,
            leftover_amount=holding.leftover_amount,
            original_weight=holding.original_weight,
            original_buy_price=holding.original_buy_price,
            total_quantity_owned=holding.total_quantity_owned,
            realized_pnl=holding.realized_pnl,
            sold_at=holding.sold_at,
        )

    @staticmethod
    def _record_to_holding(record: HoldingRecord) -> Holding:
        return Holding(
            symbol=record.symbol,
            sector=record.sector,
            stock_cap_type=record.stock_cap_type,
            status=record.status,
            weight=Decimal(record.weight),
            buy_price=Decimal(record.buy_price),
            quantity=record.quantity,
            allocated_amount=Decimal(record.allocated_amount),
            actual_investment_amount=Decimal(record.actual_investment_amount),
            leftover_amount=Decimal(record.leftover_amount),
            original_weight=Decimal(record.original_weight) if record.original_weight is not None else None,
            original_buy_price=Decimal(record.original_buy_price) if record.original_buy_price is not None else None,
            total_quantity_owned=record.total_quantity_owned,
            realized_pnl=Decimal(record.realized_pnl),
            sold_at=record.sold_at,
        )

    @staticmethod
    def _record_to_portfolio(record: PortfolioRecord) -> Portfolio:
        payload = {column: getattr(record, column) for column in _PORTFOLIO_COLUMNS}
        payload.update({column: getattr(record, column) or [] for column in _PORTFOLIO_JSON_COLUMNS})
        payload["id"] = record.id
        payload["holdings"] = [SqlAlchemyPortfolioStore._record_to_holding(item) for item in record.holdings]
        return Portfolio.model_validate(payload)

    @staticmethod
    def _apply_tip(record: TipRecord, tip: Tip) -> None:
        for column in _TIP_COLUMNS:
            setattr(record, column, getattr(tip, column))
        record.category = tip.category.value
        record.status = tip.status.value
        record.content = [item.model_dump(mode="json") for item in tip.content]
        record.download_links = [item.model_dump(mode="json") for item in tip.download_links]

    @staticmethod
    def _record_to_tip(record: TipRecord) -> Tip:
        payload = {column: getattr(record, column) for column in _TIP_COLUMNS}
        payload.update(
            {
                "id": record.id,
                "category": record.category,
                "status": record.status,
                "content": record.content or [],
                "download_links": record.download_links or [],
            }
        )
        return Tip.model_validate(payload)

    @staticmethod
    def _ensure_unique_ticker(session, stock_symbol: StockSymbol) -> None:
        clash = session.execute(
            select(StockSymbolRecord.id)
            .where(StockSymbolRecord.symbol == stock_symbol.symbol)
            .where(StockSymbolRecord.id != stock_symbol.id)
        ).first()
        if clash is not None:
            raise InvalidInputError(f"Stock symbol already exists: {stock_symbol.symbol}", field="symbol")

    @staticmethod
    def _apply_stock_symbol(record: StockSymbolRecord, stock_symbol: StockSymbol) -> None:
        for column in _STOCK_SYMBOL_COLUMNS:
            setattr(record, column, getattr(stock_symbol, column))
        record.market_status = stock_symbol.market_status.value if stock_symbol.market_status else None

    @staticmethod
    def _record_to_stock_symbol(record: StockSymbolRecord) -> StockSymbol:
        payload = {column: getattr(record, column) for column in _STOCK_SYMBOL_COLUMNS}
        payload["id"] = record.id
        payload["market_status"] = record.market_status
        return StockSymbol.model_validate(payload)

    @staticmethod
    def _apply_chart_point(record: ChartDataRecord, point: ChartDataPoint) -> None:
        for column in _CHART_DATA_COLUMNS:
            setattr(record, column, getattr(point, column))
        record.compare_index_price_source = point.compare_index_price_source.value
        record.data_quality_issues = list(point.data_quality_issues)

    @staticmethod
    def _record_to_chart_point(record: ChartDataRecord) -> ChartDataPoint:
        payload = {column: getattr(record, column) for column in _CHART_DATA_COLUMNS}
        payload.update(
            {
                "id": record.id,
                "compare_index_price_source": record.compare_index_price_source,
                "data_quality_issues": record.data_quality_issues or [],
            }
        )
        return ChartDataPoint.model_validate(payload)


def _filter_chart_points(query, portfolio_id: str | None, start: date | None, end: date | None):
    if portfolio_id is not None:
        query = query.where(ChartDataRecord.portfolio_id == portfolio_id)
    if start is not None:
        query = query.where(ChartDataRecord.date_only >= start)
    if end is not None:
        query = query.where(ChartDataRecord.date_only <= end)
    return query


def _ensure_sqlite_directory(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        return
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)
