"""
Backtesting Engine for CoinSignal

Single-position, long-only strategy simulation over one asset's price
history, with a strategy catalog comparison and buy-and-hold benchmark.
"""

from coinsignal.services.backtesting.engine import (
    BacktestConfig,
    BacktestEngine,
    BacktestResult,
    BuyHoldResult,
    MultiStrategyBacktest,
    StrategyFailure,
)
from coinsignal.services.backtesting.strategy import (
    STRATEGY_CATALOG,
    PortfolioSnapshot,
    Position,
    StrategyParams,
    Trade,
    get_strategy_params,
)
from coinsignal.services.backtesting.performance import PerformanceAnalyzer, PerformanceMetrics

__all__ = [
    "BacktestConfig",
    "BacktestEngine",
    "BacktestResult",
    "BuyHoldResult",
    "MultiStrategyBacktest",
    "StrategyFailure",
    "STRATEGY_CATALOG",
    "PortfolioSnapshot",
    "Position",
    "StrategyParams",
    "Trade",
    "get_strategy_params",
    "PerformanceAnalyzer",
    "PerformanceMetrics",
]
