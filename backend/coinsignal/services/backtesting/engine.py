"""
Core Backtesting Engine
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
import logging

import pandas as pd

from coinsignal.core import constants
from coinsignal.core.exceptions import CoinSignalError, InsufficientDataError, InvalidConfigError
from coinsignal.services.backtesting.performance import PerformanceAnalyzer, PerformanceMetrics
from coinsignal.services.backtesting.strategy import (
    STRATEGY_CATALOG,
    PortfolioSnapshot,
    Position,
    StrategyParams,
    Trade,
    get_strategy_params,
)
from coinsignal.services.market_data import PricePoint
from coinsignal.services.signals import indicators

logger = logging.getLogger(__name__)

EXIT_TARGET = "Target Reached"
EXIT_STOP_LOSS = "Stop Loss"
EXIT_RSI_OVERBOUGHT = "RSI Overbought"
EXIT_TIME_STOP = "Time Stop"

BUY_HOLD_KEY = "buy_hold"


@dataclass(frozen=True)
class BacktestConfig:
    """Configuration for one simulated run."""
    initial_capital: float = 1000.0
    strategy_type: str = "moderate"
    fee_rate: float = constants.FEE_RATE  # 0.1% per side
    position_fraction: float = constants.POSITION_FRACTION  # 95% of cash per entry
    warmup_bars: int = constants.WARMUP_BARS

    def validate(self) -> StrategyParams:
        """Reject bad settings before any arithmetic; returns the resolved params."""
        if not self.initial_capital > 0:
            raise InvalidConfigError(
                f"Initial capital must be positive, got {self.initial_capital}"
            )
        if not 0 <= self.fee_rate < 1:
            raise InvalidConfigError(f"Fee rate must be in [0, 1), got {self.fee_rate}")
        if not 0 < self.position_fraction <= 1:
            raise InvalidConfigError(
                f"Position fraction must be in (0, 1], got {self.position_fraction}"
            )
        if self.warmup_bars < 1:
            raise InvalidConfigError(f"Warm-up must be at least one bar, got {self.warmup_bars}")
        return get_strategy_params(self.strategy_type)


@dataclass
class BacktestState:
    """Mutable state of a single run; never outlives ``BacktestEngine.run``."""
    cash: float
    position: Optional[Position] = None
    trades: List[Trade] = field(default_factory=list)
    portfolio_history: List[PortfolioSnapshot] = field(default_factory=list)
    total_fees: float = 0.0

    def portfolio_value(self, price: float) -> float:
        if self.position is None:
            return self.cash
        return self.cash + self.position.market_value(price)


@dataclass(frozen=True)
class BacktestResult:
    """Complete backtest results."""
    strategy_type: str
    initial_capital: float
    final_value: float
    total_return: float
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    avg_duration: float
    best_trade: float
    worst_trade: float
    max_drawdown: float
    sharpe_ratio: float
    total_fees: float
    trades: Tuple[Trade, ...]
    portfolio_history: Tuple[PortfolioSnapshot, ...]

    @property
    def metrics(self) -> PerformanceMetrics:
        return PerformanceMetrics(
            total_return=self.total_return,
            max_drawdown=self.max_drawdown,
            sharpe_ratio=self.sharpe_ratio,
            total_trades=self.total_trades,
            winning_trades=self.winning_trades,
            losing_trades=self.losing_trades,
            win_rate=self.win_rate,
            avg_duration=self.avg_duration,
            best_trade=self.best_trade,
            worst_trade=self.worst_trade,
        )

    def equity_frame(self) -> pd.DataFrame:
        """Equity curve as a DataFrame indexed by date."""
        equity_df = pd.DataFrame(
            [(s.date, s.value) for s in self.portfolio_history],
            columns=["date", "equity"],
        )
        equity_df.set_index("date", inplace=True)
        return equity_df

    def to_dict(self) -> Dict[str, Any]:
        """Convert results to dictionary."""
        return {
            "strategy_type": self.strategy_type,
            "initial_capital": self.initial_capital,
            "final_value": self.final_value,
            "total_return": self.total_return,
            "total_trades": self.total_trades,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "win_rate": self.win_rate,
            "avg_duration": self.avg_duration,
            "best_trade": self.best_trade,
            "worst_trade": self.worst_trade,
            "max_drawdown": self.max_drawdown,
            "sharpe_ratio": self.sharpe_ratio,
            "total_fees": self.total_fees,
            "trades": [t.to_dict() for t in self.trades],
            "portfolio_history": [s.to_dict() for s in self.portfolio_history],
        }


@dataclass(frozen=True)
class BuyHoldResult:
    """Benchmark: buy at the warm-up bar, hold to the last bar."""
    initial_capital: float
    final_value: float
    total_return: float
    start_price: float
    end_price: float
    total_trades: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "initial_capital": self.initial_capital,
            "final_value": self.final_value,
            "total_return": self.total_return,
            "total_trades": self.total_trades,
            "start_price": self.start_price,
            "end_price": self.end_price,
        }


@dataclass(frozen=True)
class StrategyFailure:
    """Error marker standing in for a strategy whose run failed."""
    strategy_type: str
    code: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"strategy_type": self.strategy_type, "error": self.code, "detail": self.message}


ComparisonEntry = Union[BacktestResult, BuyHoldResult, StrategyFailure]


class BacktestEngine:
    """
    Single-position, long-only simulation over one price series.

    Example usage:
        engine = BacktestEngine()
        result = engine.run(series, BacktestConfig(initial_capital=1000, strategy_type="moderate"))
    """

    def __init__(self, analyzer: Optional[PerformanceAnalyzer] = None):
        self.analyzer = analyzer or PerformanceAnalyzer()

    def run(self, series: Sequence[PricePoint], config: Optional[BacktestConfig] = None) -> BacktestResult:
        """
        Run a backtest over ``series``.

        Indicators on bar ``i`` only see ``series[0..i]``. An open position
        at the end is liquidated into cash and fees but not into the ledger.

        Returns:
            BacktestResult with performance metrics and trade history
        """
        config = config or BacktestConfig()
        params = config.validate()

        if len(series) < config.warmup_bars + 1:
            raise InsufficientDataError(
                f"Need at least {config.warmup_bars + 1} bars, got {len(series)}"
            )

        state = BacktestState(cash=config.initial_capital)
        prices = [p.price for p in series]

        logger.info(
            f"Starting backtest: {params.name} over {len(series) - config.warmup_bars} bars "
            f"with capital {config.initial_capital:.2f}"
        )

        for i in range(config.warmup_bars, len(series)):
            window = prices[: i + 1]
            point = series[i]

            if state.position is None:
                if self._should_enter(window):
                    self._open_position(state, point, params, config)
            else:
                exit_reason = self._check_exit_conditions(state.position, window, point, params)
                if exit_reason:
                    self._close_position(state, point, exit_reason, config)

            state.portfolio_history.append(
                PortfolioSnapshot(date=point.timestamp, value=state.portfolio_value(point.price))
            )

        self._liquidate(state, series[-1], config)

        metrics = self.analyzer.calculate_metrics(
            trades=state.trades,
            portfolio_history=state.portfolio_history,
            initial_capital=config.initial_capital,
            final_value=state.cash,
        )

        logger.info(
            f"Finished backtest: {params.name} trades={metrics.total_trades} "
            f"return={metrics.total_return:+.2f}%"
        )

        return BacktestResult(
            strategy_type=params.name,
            initial_capital=config.initial_capital,
            final_value=state.cash,
            total_return=metrics.total_return,
            total_trades=metrics.total_trades,
            winning_trades=metrics.winning_trades,
            losing_trades=metrics.losing_trades,
            win_rate=metrics.win_rate,
            avg_duration=metrics.avg_duration,
            best_trade=metrics.best_trade,
            worst_trade=metrics.worst_trade,
            max_drawdown=metrics.max_drawdown,
            sharpe_ratio=metrics.sharpe_ratio,
            total_fees=state.total_fees,
            trades=tuple(state.trades),
            portfolio_history=tuple(state.portfolio_history),
        )

    def _should_enter(self, window: List[float]) -> bool:
        """Entry needs a buy trigger plus at least two confirming votes."""
        price = window[-1]
        rsi = indicators.rsi(window)
        macd = indicators.macd(window)
        ma50 = indicators.sma(window, 50)
        bands = indicators.bollinger_bands(window)

        buy_signal = False
        strength = 0

        if rsi < constants.ENTRY_RSI_MAX:
            buy_signal = True
            strength += 1

        if macd and macd.histogram > 0:
            strength += 1

        # A zero-width envelope (flat window) is not a band touch
        if bands and bands.width > 0 and price < bands.lower * constants.ENTRY_LOWER_BAND_FACTOR:
            buy_signal = True
            strength += 1

        if ma50 is not None and price > ma50 * constants.ENTRY_MA50_FACTOR:
            strength += 1

        return buy_signal and strength >= constants.ENTRY_MIN_STRENGTH

    def _check_exit_conditions(
        self,
        position: Position,
        window: List[float],
        point: PricePoint,
        params: StrategyParams,
    ) -> Optional[str]:
        """First matching exit rule wins."""
        price = point.price
        return_pct = position.return_pct(price)

        if price >= position.target_price:
            return EXIT_TARGET
        if price <= position.stop_loss_price:
            return EXIT_STOP_LOSS
        if indicators.rsi(window) > constants.EXIT_RSI_OVERBOUGHT and return_pct > constants.EXIT_RSI_MIN_RETURN_PCT:
            return EXIT_RSI_OVERBOUGHT
        if (
            position.hold_days(point.timestamp) > params.min_hold_days * constants.TIME_STOP_MULTIPLIER
            and return_pct < constants.TIME_STOP_MAX_RETURN_PCT
        ):
            return EXIT_TIME_STOP
        return None

    def _open_position(
        self,
        state: BacktestState,
        point: PricePoint,
        params: StrategyParams,
        config: BacktestConfig,
    ) -> None:
        """Commit a fixed share of cash; the fee comes off the notional."""
        position_size = state.cash * config.position_fraction
        fee = position_size * config.fee_rate
        price = point.price

        state.position = Position(
            entry_price=price,
            entry_date=point.timestamp,
            coins_held=(position_size - fee) / price,
            invested_amount=position_size,
            target_price=price * (1 + params.target_pct / 100),
            stop_loss_price=price * (1 - params.stop_loss_pct / 100),
        )
        state.cash -= position_size
        state.total_fees += fee

        logger.debug(f"Opened position @ {price:.6f} on {point.timestamp} size={position_size:.2f}")

    def _close_position(
        self,
        state: BacktestState,
        point: PricePoint,
        exit_reason: str,
        config: BacktestConfig,
    ) -> None:
        """Sell everything and append the round trip to the ledger."""
        position = state.position
        proceeds = position.market_value(point.price)
        fee = proceeds * config.fee_rate
        net_proceeds = proceeds - fee
        profit = net_proceeds - position.invested_amount

        trade = Trade(
            entry_date=position.entry_date,
            exit_date=point.timestamp,
            entry_price=position.entry_price,
            exit_price=point.price,
            invested_amount=position.invested_amount,
            profit=profit,
            profit_pct=profit / position.invested_amount * 100,
            hold_days=position.hold_days(point.timestamp),
            exit_reason=exit_reason,
        )

        state.trades.append(trade)
        state.cash += net_proceeds
        state.total_fees += fee
        state.position = None

        logger.debug(
            f"Closed position @ {point.price:.6f} ({exit_reason}) "
            f"P&L: {trade.profit:+.2f} ({trade.profit_pct:+.2f}%)"
        )

    def _liquidate(self, state: BacktestState, last: PricePoint, config: BacktestConfig) -> None:
        """End-of-series exit: cash and fees only, no ledger entry."""
        if state.position is None:
            return

        proceeds = state.position.market_value(last.price)
        fee = proceeds * config.fee_rate
        state.cash += proceeds - fee
        state.total_fees += fee
        state.position = None

        logger.debug(f"Liquidated open position @ {last.price:.6f} at end of series")


class MultiStrategyBacktest:
    """Run the strategy catalog plus a buy-and-hold benchmark on one series."""

    def __init__(self, config: Optional[BacktestConfig] = None, engine: Optional[BacktestEngine] = None):
        self.config = config or BacktestConfig()
        self.engine = engine or BacktestEngine()

    def run_comparison(
        self,
        series: Sequence[PricePoint],
        initial_capital: Optional[float] = None,
        strategies: Optional[Sequence[str]] = None,
    ) -> Dict[str, ComparisonEntry]:
        """
        Run multiple strategies on the same data and compare.

        Returns:
            Dictionary of strategy id -> BacktestResult (or StrategyFailure),
            plus ``buy_hold`` -> BuyHoldResult
        """
        capital = self.config.initial_capital if initial_capital is None else initial_capital
        warmup = self.config.warmup_bars

        if len(series) < warmup + 1:
            raise InsufficientDataError(
                f"Comparison needs at least {warmup + 1} bars, got {len(series)}"
            )
        if not capital > 0:
            raise InvalidConfigError(f"Initial capital must be positive, got {capital}")

        results: Dict[str, ComparisonEntry] = {}

        selected = list(STRATEGY_CATALOG) if strategies is None else list(strategies)
        for strategy_type in selected:
            config = BacktestConfig(
                initial_capital=capital,
                strategy_type=strategy_type,
                fee_rate=self.config.fee_rate,
                position_fraction=self.config.position_fraction,
                warmup_bars=warmup,
            )
            try:
                results[strategy_type] = self.engine.run(series, config)
            except CoinSignalError as e:
                logger.error(f"Error running strategy {strategy_type}: [{e.code}] {e.message}")
                results[strategy_type] = StrategyFailure(strategy_type, e.code, e.message)
            except Exception as e:
                logger.exception(f"Unexpected error running strategy {strategy_type}")
                results[strategy_type] = StrategyFailure(strategy_type, "STRATEGY_ERROR", str(e))

        results[BUY_HOLD_KEY] = self.buy_and_hold(series, capital)
        return results

    def buy_and_hold(self, series: Sequence[PricePoint], initial_capital: float) -> BuyHoldResult:
        """Benchmark from the warm-up bar's price to the last price."""
        start_price = series[self.config.warmup_bars].price
        end_price = series[-1].price
        total_return = (end_price - start_price) / start_price * 100

        return BuyHoldResult(
            initial_capital=initial_capital,
            final_value=initial_capital * (1 + total_return / 100),
            total_return=total_return,
            start_price=start_price,
            end_price=end_price,
        )

    def get_ranking(
        self,
        results: Dict[str, ComparisonEntry],
        metric: str = "total_return",
    ) -> List[Tuple[str, float]]:
        """
        Rank strategies by a specific metric.

        Args:
            results: Output of ``run_comparison``
            metric: BacktestResult attribute to rank by

        Returns:
            List of (strategy_id, metric_value) sorted descending; failures
            and the benchmark are skipped
        """
        rankings = []

        for name, result in results.items():
            if isinstance(result, BacktestResult):
                rankings.append((name, float(getattr(result, metric, 0))))

        return sorted(rankings, key=lambda x: x[1], reverse=True)
