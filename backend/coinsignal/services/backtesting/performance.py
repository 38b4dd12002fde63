"""
Performance Analysis Module for Backtesting
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

import numpy as np

from coinsignal.core.constants import TRADING_DAYS_PER_YEAR
from coinsignal.services.backtesting.strategy import PortfolioSnapshot, Trade


@dataclass(frozen=True)
class PerformanceMetrics:
    """Summary statistics of one simulated run."""
    # Returns
    total_return: float = 0.0

    # Risk
    max_drawdown: float = 0.0
    sharpe_ratio: float = 0.0

    # Trading
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    avg_duration: float = 0.0
    best_trade: float = 0.0
    worst_trade: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary."""
        return {
            "returns": {
                "total_return": round(self.total_return, 4),
            },
            "risk": {
                "max_drawdown": round(self.max_drawdown, 4),
                "sharpe_ratio": round(self.sharpe_ratio, 4),
            },
            "trading": {
                "total_trades": self.total_trades,
                "winning_trades": self.winning_trades,
                "losing_trades": self.losing_trades,
                "win_rate": round(self.win_rate, 2),
                "avg_duration": round(self.avg_duration, 2),
                "best_trade": round(self.best_trade, 4),
                "worst_trade": round(self.worst_trade, 4),
            },
        }


class PerformanceAnalyzer:
    """Analyze trading performance and calculate metrics."""

    TRADING_DAYS_PER_YEAR = TRADING_DAYS_PER_YEAR

    def calculate_metrics(
        self,
        trades: Sequence[Trade],
        portfolio_history: Sequence[PortfolioSnapshot],
        initial_capital: float,
        final_value: float,
    ) -> PerformanceMetrics:
        """
        Calculate summary metrics for a completed run.

        Args:
            trades: Closed trades in ledger order
            portfolio_history: One equity snapshot per simulated bar
            initial_capital: Starting capital
            final_value: Cash after any end-of-series liquidation

        Returns:
            PerformanceMetrics
        """
        values = [snapshot.value for snapshot in portfolio_history]
        total_trades = len(trades)
        winning = sum(1 for t in trades if t.profit > 0)

        if total_trades:
            profit_pcts = [t.profit_pct for t in trades]
            win_rate = winning / total_trades * 100
            avg_duration = float(np.mean([t.hold_days for t in trades]))
            best_trade = max(profit_pcts)
            worst_trade = min(profit_pcts)
        else:
            win_rate = avg_duration = best_trade = worst_trade = 0.0

        return PerformanceMetrics(
            total_return=(final_value - initial_capital) / initial_capital * 100,
            max_drawdown=self._calculate_max_drawdown(values, initial_capital),
            sharpe_ratio=self._calculate_sharpe_ratio(values),
            total_trades=total_trades,
            winning_trades=winning,
            losing_trades=total_trades - winning,
            win_rate=win_rate,
            avg_duration=avg_duration,
            best_trade=best_trade,
            worst_trade=worst_trade,
        )

    def _calculate_max_drawdown(self, values: List[float], initial_capital: float) -> float:
        """Largest peak-to-trough drop in percent; the running peak starts at initial capital."""
        max_dd = 0.0
        peak = initial_capital
        for value in values:
            if value > peak:
                peak = value
            drawdown = (peak - value) / peak * 100
            if drawdown > max_dd:
                max_dd = drawdown
        return max_dd

    def _calculate_sharpe_ratio(self, values: List[float]) -> float:
        """Annualised mean/std of per-bar returns, population std."""
        if len(values) < 2:
            return 0.0

        equity = np.asarray(values, dtype=float)
        returns = np.diff(equity) / equity[:-1]
        std = returns.std()
        if std == 0:
            return 0.0
        return float(returns.mean() / std * np.sqrt(self.TRADING_DAYS_PER_YEAR))

    def generate_report(self, metrics: PerformanceMetrics, strategy_name: str) -> str:
        """Generate a text-based performance report."""
        report = f"""
===============================================================
                    Backtest Performance Report
                    Strategy: {strategy_name}
===============================================================

Returns
---------------------------------------------------------------
  Total return:       {metrics.total_return:>15.2f}%

Risk
---------------------------------------------------------------
  Max drawdown:       {metrics.max_drawdown:>15.2f}%
  Sharpe ratio:       {metrics.sharpe_ratio:>15.4f}

Trading
---------------------------------------------------------------
  Total trades:       {metrics.total_trades:>15}
  Win rate:           {metrics.win_rate:>15.2f}%
  Winning trades:     {metrics.winning_trades:>15}
  Losing trades:      {metrics.losing_trades:>15}
  Avg duration:       {metrics.avg_duration:>15.1f} days
  Best trade:         {metrics.best_trade:>15.2f}%
  Worst trade:        {metrics.worst_trade:>15.2f}%

===============================================================
"""
        return report
