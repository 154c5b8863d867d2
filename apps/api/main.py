from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from typing import Annotated, Generic, TypeVar

import uvicorn
from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from adapters.market_data.redis_price_cache import RedisPriceCache
from adapters.storage.sqlalchemy_store import SqlAlchemyPortfolioStore
from core.domain.allocation import AllocationResult, calculate_allocation
from core.domain.errors import CapacityError, NotFoundError, PortfolioError
from core.domain.market_data import StockPrice
from core.domain.performance import (
    ChartDataFields,
    ChartDataPoint,
    ChartDataUpdate,
    PortfolioPerformance,
    duplicate_points,
    snapshot_portfolio,
    summarize_performance,
)
from core.domain.pnl import PnLResult, calculate_pnl
from core.domain.portfolio import HoldingEdit, HoldingRequest, Portfolio, PortfolioCreate, PortfolioUpdate
from core.domain.reconciler import (
    ReconcilePolicy,
    ReconcileResult,
    add_holding,
    build_portfolio,
    edit_holding,
    remove_holding,
    update_portfolio_details,
)
from core.domain.stock_symbol import StockSymbol, StockSymbolCreate, StockSymbolUpdate, search_keyword
from core.domain.tip import Tip, TipCreate, TipFields, TipUpdate, validate_tip
from core.settings import Settings
from core.settings import get_settings as load_settings

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT")


def _configure_logging(level: str = "INFO") -> None:
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


class AllocationRequest(BaseModel):
    weight_percent: Decimal
    buy_price: Decimal
    base_capital: Decimal
    rounding_tolerance: Decimal | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PnLRequest(BaseModel):
    original_quantity: int = Field(ge=0)
    original_buy_price: Decimal
    current_market_price: Decimal
    proportion_to_sell: Decimal

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StockPriceUpdate(BaseModel):
    price: Decimal = Field(gt=0)


class Page(BaseModel, Generic[ItemT]):
    data: list[ItemT]
    count: int
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def of(cls, items: list[ItemT], total: int, page: int, limit: int) -> Page[ItemT]:
        return cls(data=items, count=len(items), total=total, page=page, limit=limit, pages=-(-total // limit))


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()
    _configure_logging(settings.log_level)
    store = SqlAlchemyPortfolioStore(settings.database_url)
    price_cache = RedisPriceCache(
        settings.redis_url,
        namespace=settings.price_cache_namespace,
        ttl_seconds=settings.price_cache_ttl_seconds or None,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.price_cache = price_cache

    try:
        yield
    finally:
        store.close()
        await price_cache.close()


app = FastAPI(title="Portfolio Admin API", version="0.1.0", lifespan=lifespan)


def get_settings() -> Settings:
    return app.state.settings


def get_store() -> SqlAlchemyPortfolioStore:
    return app.state.store


def get_price_cache() -> RedisPriceCache:
    return app.state.price_cache


def get_policy(settings: Annotated[Settings, Depends(get_settings)]) -> ReconcilePolicy:
    return settings.reconcile_policy()


StoreDep = Annotated[SqlAlchemyPortfolioStore, Depends(get_store)]
PriceCacheDep = Annotated[RedisPriceCache, Depends(get_price_cache)]
PolicyDep = Annotated[ReconcilePolicy, Depends(get_policy)]


def _error_status(exc: PortfolioError) -> int:
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, CapacityError):
        return status.HTTP_409_CONFLICT
    return status.HTTP_400_BAD_REQUEST


@app.exception_handler(PortfolioError)
async def portfolio_error_handler(request: Request, exc: PortfolioError) -> JSONResponse:
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=_error_status(exc), content={"detail": exc.message, "field": exc.field})


def _load_portfolio(store: SqlAlchemyPortfolioStore, portfolio_id: str) -> Portfolio:
    portfolio = store.get_portfolio(portfolio_id)
    if portfolio is None:
        raise NotFoundError(f"Portfolio not found: {portfolio_id}", field="portfolioId")
    return portfolio


def _load_tip(store: SqlAlchemyPortfolioStore, tip_id: str) -> Tip:
    tip = store.get_tip(tip_id)
    if tip is None:
        raise NotFoundError(f"Tip not found: {tip_id}", field="tipId")
    return tip


def _load_stock_symbol(store: SqlAlchemyPortfolioStore, symbol_id: str) -> StockSymbol:
    stock_symbol = store.get_stock_symbol(symbol_id)
    if stock_symbol is None:
        raise NotFoundError(f"Stock symbol not found: {symbol_id}", field="id")
    return stock_symbol


def _load_chart_point(store: SqlAlchemyPortfolioStore, point_id: str) -> ChartDataPoint:
    point = store.get_chart_point(point_id)
    if point is None:
        raise NotFoundError("Price log not found", field="id")
    return point


async def _market_price(
    store: SqlAlchemyPortfolioStore, prices: RedisPriceCache, symbol: str
) -> Decimal | None:
    """Latest cached price, else the registry's reference price."""
    cached = (await prices.get_latest_prices([symbol])).get(symbol.strip().upper())
    if cached is not None:
        return cached.price
    registered = store.get_stock_symbol_by_ticker(symbol)
    return registered.current_price if registered is not None else None


def _save(store: SqlAlchemyPortfolioStore, portfolio: Portfolio) -> Portfolio:
    store.update_portfolio(portfolio)
    store.record_snapshot(snapshot_portfolio(portfolio))
    return portfolio


@app.get("/health", summary="Health check", status_code=status.HTTP_200_OK)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/portfolios", summary="List portfolios", status_code=status.HTTP_200_OK)
async def list_portfolios(store: StoreDep) -> list[Portfolio]:
    return store.list_portfolios()


@app.post("/portfolios", summary="Create portfolio", status_code=status.HTTP_201_CREATED)
async def create_portfolio(request: PortfolioCreate, store: StoreDep, policy: PolicyDep) -> Portfolio:
    portfolio = store.create_portfolio(build_portfolio(request, policy=policy))
    store.record_snapshot(snapshot_portfolio(portfolio))
    return portfolio


@app.get("/portfolios/{portfolio_id}", summary="Portfolio details", status_code=status.HTTP_200_OK)
async def read_portfolio(portfolio_id: str, store: StoreDep) -> Portfolio:
    return _load_portfolio(store, portfolio_id)


@app.put("/portfolios/{portfolio_id}", summary="Update portfolio details", status_code=status.HTTP_200_OK)
async def update_portfolio(portfolio_id: str, request: PortfolioUpdate, store: StoreDep) -> Portfolio:
    return _save(store, update_portfolio_details(_load_portfolio(store, portfolio_id), request))


@app.delete("/portfolios/{portfolio_id}", summary="Delete portfolio", status_code=status.HTTP_200_OK)
async def delete_portfolio(portfolio_id: str, store: StoreDep) -> dict[str, str]:
    if not store.delete_portfolio(portfolio_id):
        raise NotFoundError(f"Portfolio not found: {portfolio_id}", field="portfolioId")
    return {"message": f"Portfolio with ID {portfolio_id} deleted successfully"}


@app.post(
    "/portfolios/{portfolio_id}/holdings", summary="Add holding", status_code=status.HTTP_201_CREATED
)
async def create_holding(
    portfolio_id: str,
    request: HoldingRequest,
    store: StoreDep,
    policy: PolicyDep,
) -> ReconcileResult:
    result = add_holding(_load_portfolio(store, portfolio_id), request, policy=policy)
    _save(store, result.portfolio)
    return result


@app.patch(
    "/portfolios/{portfolio_id}/holdings/{symbol}", summary="Edit holding", status_code=status.HTTP_200_OK
)
async def update_holding(
    portfolio_id: str,
    symbol: str,
    request: HoldingEdit,
    store: StoreDep,
    prices: PriceCacheDep,
    policy: PolicyDep,
) -> ReconcileResult:
    # No await between loading the portfolio and saving it.
    market_price = None
    if request.latest_price is None:
        market_price = await _market_price(store, prices, symbol)
    portfolio = _load_portfolio(store, portfolio_id)
    result = edit_holding(portfolio, symbol, request, market_price=market_price, policy=policy)
    _save(store, result.portfolio)
    return result


@app.delete(
    "/portfolios/{portfolio_id}/holdings/{symbol}", summary="Remove holding", status_code=status.HTTP_200_OK
)
async def delete_holding(portfolio_id: str, symbol: str, store: StoreDep) -> ReconcileResult:
    result = remove_holding(_load_portfolio(store, portfolio_id), symbol)
    _save(store, result.portfolio)
    return result


@app.get("/portfolios/{portfolio_id}/tips", summary="Portfolio tips", status_code=status.HTTP_200_OK)
async def list_portfolio_tips(portfolio_id: str, store: StoreDep) -> list[Tip]:
    _load_portfolio(store, portfolio_id)
    return store.list_tips_for_portfolio(portfolio_id)


@app.post(
    "/portfolios/{portfolio_id}/tips", summary="Create portfolio tip", status_code=status.HTTP_201_CREATED
)
async def create_portfolio_tip(portfolio_id: str, request: TipFields, store: StoreDep) -> Tip:
    _load_portfolio(store, portfolio_id)
    validate_tip(request)
    tip = Tip.model_validate({**request.model_dump(), "portfolio_id": portfolio_id})
    return store.create_tip(tip)


@app.get("/tips", summary="List tips", status_code=status.HTTP_200_OK)
async def list_tips(store: StoreDep) -> list[Tip]:
    return store.list_tips()


@app.post("/tips", summary="Create tip", status_code=status.HTTP_201_CREATED)
async def create_tip(request: TipCreate, store: StoreDep) -> Tip:
    validate_tip(request)
    if request.portfolio_id is not None:
        _load_portfolio(store, request.portfolio_id)
    return store.create_tip(Tip.model_validate(request.model_dump()))


@app.get("/tips/{tip_id}", summary="Tip details", status_code=status.HTTP_200_OK)
async def read_tip(tip_id: str, store: StoreDep) -> Tip:
    return _load_tip(store, tip_id)


@app.put("/tips/{tip_id}", summary="Update tip", status_code=status.HTTP_200_OK)
async def update_tip(tip_id: str, request: TipUpdate, store: StoreDep) -> Tip:
    tip = _load_tip(store, tip_id).apply_update(request)
    validate_tip(tip)
    return store.update_tip(tip)


@app.delete("/tips/{tip_id}", summary="Delete tip", status_code=status.HTTP_200_OK)
async def delete_tip(tip_id: str, store: StoreDep) -> dict[str, str]:
    if not store.delete_tip(tip_id):
        raise NotFoundError(f"Tip not found: {tip_id}", field="tipId")
    return {"message": f"Tip with ID {tip_id} deleted successfully"}


@app.post("/calculations/allocation", summary="Preview allocation", status_code=status.HTTP_200_OK)
async def preview_allocation(request: AllocationRequest, policy: PolicyDep) -> AllocationResult:
    tolerance = request.rounding_tolerance
    if tolerance is None:
        tolerance = policy.rounding_tolerance
    return calculate_allocation(
        request.weight_percent, request.buy_price, request.base_capital, rounding_tolerance=tolerance
    )


@app.post("/calculations/pnl", summary="Preview sale P&L", status_code=status.HTTP_200_OK)
async def preview_pnl(request: PnLRequest) -> PnLResult:
    return calculate_pnl(
        request.original_quantity,
        request.original_buy_price,
        request.current_market_price,
        request.proportion_to_sell,
    )


@app.put("/stock-prices/{symbol}", summary="Record latest price", status_code=status.HTTP_200_OK)
async def store_stock_price(symbol: str, request: StockPriceUpdate, prices: PriceCacheDep) -> StockPrice:
    price = StockPrice(symbol=symbol, price=request.price)
    await prices.store_price(price)
    return price


@app.get("/stock-prices", summary="Latest prices", status_code=status.HTTP_200_OK)
async def read_stock_prices(prices: PriceCacheDep, symbols: str = "") -> dict[str, StockPrice]:
    requested = [item for item in symbols.split(",") if item.strip()]
    return await prices.get_latest_prices(requested)


@app.get("/stock-symbols", summary="List stock symbols", status_code=status.HTTP_200_OK)
async def list_stock_symbols(
    store: StoreDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
) -> Page[StockSymbol]:
    items = store.list_stock_symbols(offset=(page - 1) * limit, limit=limit)
    return Page[StockSymbol].of(items, store.count_stock_symbols(), page, limit)


@app.post("/stock-symbols", summary="Register stock symbol", status_code=status.HTTP_201_CREATED)
async def create_stock_symbol(request: StockSymbolCreate, store: StoreDep) -> StockSymbol:
    return store.create_stock_symbol(StockSymbol.model_validate(request.model_dump()))


@app.get("/stock-symbols/search", summary="Search stock symbols", status_code=status.HTTP_200_OK)
async def search_stock_symbols(store: StoreDep, keyword: str = "") -> list[StockSymbol]:
    usable = search_keyword(keyword)
    if usable is None:
        return []
    return store.search_stock_symbols(usable)


@app.get("/stock-symbols/ticker/{symbol}", summary="Stock symbol by ticker", status_code=status.HTTP_200_OK)
async def read_stock_symbol_by_ticker(symbol: str, store: StoreDep) -> StockSymbol:
    stock_symbol = store.get_stock_symbol_by_ticker(symbol)
    if stock_symbol is None:
        raise NotFoundError(f"Stock symbol not found: {symbol}", field="symbol")
    return stock_symbol


@app.get("/stock-symbols/{symbol_id}", summary="Stock symbol details", status_code=status.HTTP_200_OK)
async def read_stock_symbol(symbol_id: str, store: StoreDep) -> StockSymbol:
    return _load_stock_symbol(store, symbol_id)


@app.put("/stock-symbols/{symbol_id}", summary="Update stock symbol", status_code=status.HTTP_200_OK)
async def update_stock_symbol(symbol_id: str, request: StockSymbolUpdate, store: StoreDep) -> StockSymbol:
    return store.update_stock_symbol(_load_stock_symbol(store, symbol_id).apply_update(request))


@app.delete("/stock-symbols/{symbol_id}", summary="Delete stock symbol", status_code=status.HTTP_200_OK)
async def delete_stock_symbol(symbol_id: str, store: StoreDep) -> dict[str, str]:
    if not store.delete_stock_symbol(symbol_id):
        raise NotFoundError(f"Stock symbol not found: {symbol_id}", field="id")
    return {"message": f"Stock symbol with ID {symbol_id} deleted successfully"}


@app.get("/chart-data", summary="List portfolio value history", status_code=status.HTTP_200_OK)
async def list_chart_data(
    store: StoreDep,
    portfolio_id: Annotated[str | None, Query(alias="portfolioId")] = None,
    start_date: Annotated[date | None, Query(alias="startDate")] = None,
    end_date: Annotated[date | None, Query(alias="endDate")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
) -> Page[ChartDataPoint]:
    filters = {"portfolio_id": portfolio_id, "start": start_date, "end": end_date}
    items = store.list_chart_points(**filters, offset=(page - 1) * limit, limit=limit)
    return Page[ChartDataPoint].of(items, store.count_chart_points(**filters), page, limit)


@app.post("/chart-data", summary="Record portfolio value", status_code=status.HTTP_201_CREATED)
async def create_chart_data(request: ChartDataFields, store: StoreDep) -> ChartDataPoint:
    _load_portfolio(store, request.portfolio_id)
    return store.create_chart_point(ChartDataPoint.model_validate(request.model_dump()))


@app.post(
    "/chart-data/cleanup-duplicates", summary="Drop superseded same-day values", status_code=status.HTTP_200_OK
)
async def cleanup_chart_data(store: StoreDep) -> dict[str, int]:
    duplicates = duplicate_points(store.list_chart_points())
    return {"deletedCount": store.delete_chart_points([point.id for point in duplicates])}


@app.get(
    "/chart-data/portfolio/{portfolio_id}/performance",
    summary="Portfolio performance",
    status_code=status.HTTP_200_OK,
)
async def read_portfolio_performance(
    portfolio_id: str,
    store: StoreDep,
    start_date: Annotated[date | None, Query(alias="startDate")] = None,
    end_date: Annotated[date | None, Query(alias="endDate")] = None,
) -> PortfolioPerformance:
    _load_portfolio(store, portfolio_id)
    points = store.list_chart_points(portfolio_id=portfolio_id, start=start_date, end=end_date)
    return summarize_performance(portfolio_id, points, start=start_date, end=end_date)


@app.get("/chart-data/{point_id}", summary="Portfolio value details", status_code=status.HTTP_200_OK)
async def read_chart_data(point_id: str, store: StoreDep) -> ChartDataPoint:
    return _load_chart_point(store, point_id)


@app.put("/chart-data/{point_id}", summary="Correct portfolio value", status_code=status.HTTP_200_OK)
async def update_chart_data(point_id: str, request: ChartDataUpdate, store: StoreDep) -> ChartDataPoint:
    return store.update_chart_point(_load_chart_point(store, point_id).apply_update(request))


@app.delete("/chart-data/{point_id}", summary="Delete portfolio value", status_code=status.HTTP_200_OK)
async def delete_chart_data(point_id: str, store: StoreDep) -> dict[str, str]:
    if not store.delete_chart_point(point_id):
        raise NotFoundError("Price log not found", field="id")
    return {"message": "Price log deleted successfully"}


def main() -> None:
    settings = load_settings()
    _configure_logging(settings.log_level)
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
