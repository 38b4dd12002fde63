"""Tests for the single-strategy simulation engine."""

import pytest

from coinsignal.core.exceptions import InsufficientDataError, InvalidConfigError
from coinsignal.services.backtesting import STRATEGY_CATALOG, BacktestConfig, BacktestEngine
from coinsignal.services.backtesting.engine import (
    EXIT_RSI_OVERBOUGHT,
    EXIT_STOP_LOSS,
    EXIT_TARGET,
    EXIT_TIME_STOP,
)
from coinsignal.services.signals import MACDResult, indicators

ENTRY_PRICE = 1.95
INVESTED = 950.0  # 95% of 1000
COINS = INVESTED * 0.999 / ENTRY_PRICE


@pytest.fixture
def engine():
    return BacktestEngine()


def run(engine, series, strategy="moderate", capital=1000.0):
    return engine.run(series, BacktestConfig(initial_capital=capital, strategy_type=strategy))


class TestValidation:
    def test_unknown_strategy(self, engine, make_series):
        with pytest.raises(InvalidConfigError, match="yolo"):
            run(engine, make_series([1.0] * 60), strategy="yolo")

    @pytest.mark.parametrize("capital", [0, -100])
    def test_non_positive_capital(self, engine, make_series, capital):
        with pytest.raises(InvalidConfigError):
            run(engine, make_series([1.0] * 60), capital=capital)

    def test_empty_series(self, engine):
        with pytest.raises(InsufficientDataError):
            run(engine, [])

    def test_series_shorter_than_warmup(self, engine, make_series):
        with pytest.raises(InsufficientDataError):
            run(engine, make_series([1.0] * 50))

    def test_minimum_series_simulates_one_bar(self, engine, make_series):
        result = run(engine, make_series([1.0] * 51))
        assert len(result.portfolio_history) == 1


class TestFlatSeries:
    def test_no_entry_on_flat_prices(self, engine, make_series):
        result = run(engine, make_series([0.10] * 150))

        assert result.total_trades == 0
        assert result.final_value == 1000
        assert result.total_return == 0
        assert result.total_fees == 0
        assert result.max_drawdown == 0
        assert result.sharpe_ratio == 0
        assert len(result.portfolio_history) == 100
        assert all(s.value == 1000 for s in result.portfolio_history)


# Last 20 bars alternate 1.00 / 1.02: RSI 50, lower band ~0.99, close 1.02 is inside 5% of it
BAND_ONLY_BELOW_MA50 = [2.0] * 40 + [1.0, 1.02] * 10
BAND_ONLY_ABOVE_MA50 = [1.0, 1.02] * 30


def _positive_histogram(prices):
    return MACDResult(macd=0.01, signal=0.0, histogram=0.01)


class TestEntryGate:
    def test_single_vote_does_not_enter(self, engine):
        window = BAND_ONLY_BELOW_MA50
        assert indicators.rsi(window) >= 40
        assert indicators.macd(window).histogram <= 0
        assert indicators.sma(window, 50) * 0.98 > window[-1]

        assert engine._should_enter(window) is False

    def test_band_trigger_confirmed_by_ma50(self, engine):
        window = BAND_ONLY_ABOVE_MA50
        assert indicators.rsi(window) >= 40
        assert indicators.macd(window).histogram <= 0
        assert window[-1] > indicators.sma(window, 50) * 0.98

        assert engine._should_enter(window) is True

    def test_histogram_alone_never_triggers(self, engine, monkeypatch):
        monkeypatch.setattr(indicators, "macd", _positive_histogram)
        # MA50 and histogram votes give strength 2, but neither is a trigger
        assert engine._should_enter([1.0] * 60) is False

    def test_histogram_counts_toward_strength(self, engine, monkeypatch):
        monkeypatch.setattr(indicators, "macd", _positive_histogram)
        assert engine._should_enter(BAND_ONLY_BELOW_MA50) is True

    def test_rsi_trigger_with_band_vote(self, engine):
        # Steady decline: RSI 0 and price hugging the lower band
        window = [2.0 - 0.001 * i for i in range(60)]
        assert indicators.rsi(window) < 40
        assert engine._should_enter(window) is True


class TestExitRules:
    def test_target_reached(self, engine, dip_then):
        result = run(engine, dip_then([2.10]))

        assert result.total_trades == 1
        trade = result.trades[0]
        assert trade.exit_reason == EXIT_TARGET
        assert trade.entry_price == pytest.approx(ENTRY_PRICE)
        assert trade.invested_amount == pytest.approx(INVESTED)
        assert trade.profit_pct == pytest.approx((0.999 ** 2 * 2.10 / 1.95 - 1) * 100)
        assert abs(trade.profit_pct - 7.5) < 0.2
        assert trade.hold_days == 1
        assert result.winning_trades == 1
        assert result.final_value == pytest.approx(50 + COINS * 2.10 * 0.999)
        assert result.total_fees == pytest.approx(0.95 + COINS * 2.10 * 0.001)

    def test_stop_loss(self, engine, dip_then):
        result = run(engine, dip_then([1.85]))

        trade = result.trades[0]
        assert trade.exit_reason == EXIT_STOP_LOSS
        assert trade.profit < 0
        assert result.losing_trades == 1
        assert result.win_rate == 0

    def test_rsi_overbought_after_gain(self, engine, dip_then):
        # +1% on the first bar is below the 2% floor; +2.05% with RSI ~77 exits
        result = run(engine, dip_then([1.97, 1.99]))

        assert result.total_trades == 1
        trade = result.trades[0]
        assert trade.exit_reason == EXIT_RSI_OVERBOUGHT
        assert trade.exit_price == 1.99
        assert trade.profit > 0

    def test_time_stop_after_five_times_min_hold(self, engine, dip_then):
        # moderate: min hold 2 days, so the losing position goes after day 10
        result = run(engine, dip_then([1.90] * 11))

        assert result.total_trades == 1
        trade = result.trades[0]
        assert trade.exit_reason == EXIT_TIME_STOP
        assert trade.hold_days == 11

    def test_time_stop_waits_for_hold_threshold(self, engine, dip_then):
        result = run(engine, dip_then([1.90] * 10))
        assert result.total_trades == 0

    def test_target_takes_priority(self, engine, dip_then):
        # 2.50 also satisfies the RSI rule; target wins
        result = run(engine, dip_then([2.50]))
        assert result.trades[0].exit_reason == EXIT_TARGET


class TestEndOfSeries:
    def test_open_position_liquidated_without_trade(self, engine, dip_then):
        result = run(engine, dip_then([1.96]))

        assert result.total_trades == 0
        assert result.trades == ()
        proceeds = COINS * 1.96
        assert result.final_value == pytest.approx(50 + proceeds * 0.999)
        assert result.total_fees == pytest.approx(0.95 + proceeds * 0.001)

    def test_equity_curve_excludes_liquidation_fee(self, engine, dip_then):
        result = run(engine, dip_then([1.96]))
        assert result.portfolio_history[-1].value == pytest.approx(50 + COINS * 1.96)
        assert result.final_value < result.portfolio_history[-1].value

    def test_entry_bar_snapshot_marks_to_market(self, engine, dip_then):
        result = run(engine, dip_then([1.96]))
        assert result.portfolio_history[0].value == pytest.approx(50 + COINS * ENTRY_PRICE)


class TestInvariants:
    @pytest.mark.parametrize("strategy", list(STRATEGY_CATALOG))
    def test_ledger_and_curve(self, engine, synthetic_series, strategy):
        result = run(engine, synthetic_series, strategy=strategy)

        assert result.winning_trades + result.losing_trades == result.total_trades
        assert 0 <= result.max_drawdown <= 100
        assert len(result.portfolio_history) == len(synthetic_series) - 50
        dates = [s.date for s in result.portfolio_history]
        assert dates == sorted(dates)
        for trade in result.trades:
            assert trade.exit_date > trade.entry_date

    def test_trades_never_overlap(self, engine, synthetic_series):
        result = run(engine, synthetic_series, strategy="aggressive")
        for previous, current in zip(result.trades, result.trades[1:]):
            assert current.entry_date > previous.exit_date

    def test_idempotent(self, engine, synthetic_series):
        first = run(engine, synthetic_series, strategy="frequent")
        second = BacktestEngine().run(
            synthetic_series, BacktestConfig(initial_capital=1000.0, strategy_type="frequent")
        )
        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_equity_frame(self, engine, synthetic_series):
        result = run(engine, synthetic_series)
        frame = result.equity_frame()
        assert list(frame.columns) == ["equity"]
        assert len(frame) == len(result.portfolio_history)
        assert frame["equity"].iloc[-1] == result.portfolio_history[-1].value
