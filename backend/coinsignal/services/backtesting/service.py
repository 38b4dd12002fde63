"""
Backtest service

Host-side orchestration: fetch the series for the requested period, run the
selected strategy and the full comparison, then publish the report.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence
import logging

from coinsignal.core import constants
from coinsignal.core.exceptions import InvalidConfigError
from coinsignal.services.backtesting.engine import (
    BacktestConfig,
    BacktestEngine,
    BacktestResult,
    ComparisonEntry,
    MultiStrategyBacktest,
)
from coinsignal.services.backtesting.strategy import get_strategy_params
from coinsignal.services.market_data import MarketDataSource, ResultSink, SeriesRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BacktestRunConfig:
    """What the user picked: lookback in years, capital and strategy."""
    period_years: int = 1
    initial_capital: float = 1000.0
    strategy_type: str = "moderate"

    def validate(self) -> None:
        if self.period_years <= 0:
            raise InvalidConfigError(f"Period must be at least one year, got {self.period_years}")
        if not self.initial_capital > 0:
            raise InvalidConfigError(
                f"Initial capital must be positive, got {self.initial_capital}"
            )
        get_strategy_params(self.strategy_type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period_years": self.period_years,
            "initial_capital": self.initial_capital,
            "strategy_type": self.strategy_type,
        }


@dataclass(frozen=True)
class BacktestReport:
    config: BacktestRunConfig
    result: BacktestResult
    comparison: Dict[str, ComparisonEntry]
    ranking: List[tuple]
    data_source: str
    summary: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "config": self.config.to_dict(),
            "data_source": self.data_source,
            "result": self.result.to_dict(),
            "comparison": {name: entry.to_dict() for name, entry in self.comparison.items()},
            "ranking": [{"strategy": name, "total_return": value} for name, value in self.ranking],
            "summary": self.summary,
        }


class BacktestService:
    """Runs a configured backtest end to end."""

    def __init__(
        self,
        source: MarketDataSource,
        sinks: Optional[Sequence[ResultSink]] = None,
        fee_rate: float = constants.FEE_RATE,
        position_fraction: float = constants.POSITION_FRACTION,
        warmup_bars: int = constants.WARMUP_BARS,
    ):
        self.source = source
        self.sinks = list(sinks or [])
        self.fee_rate = fee_rate
        self.position_fraction = position_fraction
        self.warmup_bars = warmup_bars
        self.engine = BacktestEngine()

    def run(self, config: BacktestRunConfig) -> BacktestReport:
        config.validate()

        days = config.period_years * constants.DAYS_PER_YEAR
        series = self.source.fetch_series(SeriesRequest(days=days))
        data_source = getattr(self.source, "last_source", None) or self.source.name

        engine_config = BacktestConfig(
            initial_capital=config.initial_capital,
            strategy_type=config.strategy_type,
            fee_rate=self.fee_rate,
            position_fraction=self.position_fraction,
            warmup_bars=self.warmup_bars,
        )
        result = self.engine.run(series, engine_config)

        runner = MultiStrategyBacktest(engine_config, self.engine)
        comparison = runner.run_comparison(series, config.initial_capital)

        report = BacktestReport(
            config=config,
            result=result,
            comparison=comparison,
            ranking=runner.get_ranking(comparison),
            data_source=data_source,
            summary=self.engine.analyzer.generate_report(result.metrics, config.strategy_type),
        )

        logger.info(
            f"Backtest complete: {config.strategy_type} on {len(series)} bars from '{data_source}'",
            extra={"context": {
                "strategy": config.strategy_type,
                "data_source": data_source,
                "bars": len(series),
                "total_return": result.total_return,
            }},
        )
        self._publish(report)
        return report

    def _publish(self, report: BacktestReport) -> None:
        payload = report.to_dict()
        for sink in self.sinks:
            try:
                sink.publish_backtest(payload)
            except Exception as e:
                logger.error(f"Backtest sink error: {e}")
