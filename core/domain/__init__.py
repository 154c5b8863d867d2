"""Domain models."""

from core.domain.allocation import AllocationResult
from core.domain.errors import CapacityError, InvalidInputError, NotFoundError, PortfolioError
from core.domain.market_data import StockPrice
from core.domain.performance import ChartDataPoint, PortfolioPerformance
from core.domain.pnl import PnLResult
from core.domain.portfolio import Holding, HoldingStatus, Portfolio
from core.domain.stock_symbol import StockSymbol
from core.domain.tip import Tip

__all__ = [
    "AllocationResult",
    "CapacityError",
    "ChartDataPoint",
    "Holding",
    "HoldingStatus",
    "InvalidInputError",
    "NotFoundError",
    "PnLResult",
    "Portfolio",
    "PortfolioError",
    "PortfolioPerformance",
    "StockPrice",
    "StockSymbol",
    "Tip",
]
