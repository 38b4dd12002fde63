"""
Backtesting API Endpoints
"""

from typing import Any, Dict, List, Optional
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from coinsignal.api.deps import get_market_data_source
from coinsignal.config import settings
from coinsignal.core import constants
from coinsignal.services.backtesting import STRATEGY_CATALOG, MultiStrategyBacktest
from coinsignal.services.backtesting.engine import BacktestConfig
from coinsignal.services.backtesting.service import BacktestRunConfig, BacktestService
from coinsignal.services.market_data import MarketDataSource, SeriesRequest

logger = logging.getLogger(__name__)

router = APIRouter()


# Request/Response Models
class BacktestRequest(BaseModel):
    """Request model for running a backtest."""
    period_years: int = Field(default=settings.default_period_years, ge=1, le=10, description="Lookback in years")
    initial_capital: float = Field(default=settings.default_initial_capital, description="Starting capital in USD")
    strategy_type: str = Field(default=settings.default_strategy, description="moderate, frequent, aggressive or conservative")


class CompareRequest(BaseModel):
    """Request model for a side-by-side strategy comparison."""
    period_years: int = Field(default=settings.default_period_years, ge=1, le=10)
    initial_capital: float = Field(default=settings.default_initial_capital)
    strategies: Optional[List[str]] = Field(default=None, description="Defaults to the full catalog")


class StrategyInfo(BaseModel):
    """Information about an available strategy."""
    name: str
    description: str
    target_pct: float
    stop_loss_pct: float
    min_hold_days: float


class StrategiesResponse(BaseModel):
    """Response with available strategies."""
    strategies: List[StrategyInfo]


def _engine_config(capital: float, strategy_type: str = "moderate") -> BacktestConfig:
    return BacktestConfig(
        initial_capital=capital,
        strategy_type=strategy_type,
        fee_rate=settings.fee_rate,
        position_fraction=settings.position_fraction,
        warmup_bars=settings.warmup_bars,
    )


@router.get("/strategies", response_model=StrategiesResponse)
async def get_strategies() -> StrategiesResponse:
    """Get list of available backtesting strategies."""
    strategies = [
        StrategyInfo(
            name=params.name,
            description=params.description,
            target_pct=params.target_pct,
            stop_loss_pct=params.stop_loss_pct,
            min_hold_days=params.min_hold_days,
        )
        for params in STRATEGY_CATALOG.values()
    ]
    return StrategiesResponse(strategies=strategies)


@router.post("/run")
async def run_backtest(
    request: BacktestRequest,
    source: MarketDataSource = Depends(get_market_data_source),
) -> Dict[str, Any]:
    """
    Run the selected strategy plus the full comparison over the requested period.
    """
    service = BacktestService(
        source,
        fee_rate=settings.fee_rate,
        position_fraction=settings.position_fraction,
        warmup_bars=settings.warmup_bars,
    )
    report = service.run(
        BacktestRunConfig(
            period_years=request.period_years,
            initial_capital=request.initial_capital,
            strategy_type=request.strategy_type,
        )
    )
    return report.to_dict()


@router.post("/compare")
async def compare_strategies(
    request: CompareRequest,
    source: MarketDataSource = Depends(get_market_data_source),
) -> Dict[str, Any]:
    """
    Compare strategies on the same data; failed strategies carry an error marker.
    """
    BacktestRunConfig(
        period_years=request.period_years,
        initial_capital=request.initial_capital,
    ).validate()

    series = source.fetch_series(
        SeriesRequest(days=request.period_years * constants.DAYS_PER_YEAR)
    )
    runner = MultiStrategyBacktest(_engine_config(request.initial_capital))
    results = runner.run_comparison(series, request.initial_capital, request.strategies)
    ranking = runner.get_ranking(results)

    return {
        "results": {name: entry.to_dict() for name, entry in results.items()},
        "ranking": [{"strategy": k, "total_return": v} for k, v in ranking],
        "best_strategy": ranking[0][0] if ranking else None,
    }
