"""Tests for the multi-strategy comparison and buy-and-hold benchmark."""

import pytest

from coinsignal.core.exceptions import InsufficientDataError, InvalidConfigError
from coinsignal.services.backtesting import (
    STRATEGY_CATALOG,
    BacktestConfig,
    BacktestEngine,
    BacktestResult,
    BuyHoldResult,
    MultiStrategyBacktest,
    StrategyFailure,
)
from coinsignal.services.backtesting.engine import BUY_HOLD_KEY


class _ExplodingEngine(BacktestEngine):
    """Fails for one strategy only."""

    def run(self, series, config=None):
        if config.strategy_type == "frequent":
            raise RuntimeError("boom")
        return super().run(series, config)


@pytest.fixture
def runner():
    return MultiStrategyBacktest()


class TestRunComparison:
    def test_empty_series(self, runner):
        with pytest.raises(InsufficientDataError):
            runner.run_comparison([], 1000)

    def test_short_series(self, runner, make_series):
        with pytest.raises(InsufficientDataError):
            runner.run_comparison(make_series([1.0] * 50), 1000)

    def test_non_positive_capital(self, runner, synthetic_series):
        with pytest.raises(InvalidConfigError):
            runner.run_comparison(synthetic_series, 0)

    def test_full_catalog_plus_benchmark(self, runner, synthetic_series):
        results = runner.run_comparison(synthetic_series, 1000)

        assert set(results) == set(STRATEGY_CATALOG) | {BUY_HOLD_KEY}
        for name in STRATEGY_CATALOG:
            assert isinstance(results[name], BacktestResult)
            assert results[name].strategy_type == name
        assert isinstance(results[BUY_HOLD_KEY], BuyHoldResult)

    def test_matches_independent_runs(self, runner, synthetic_series):
        results = runner.run_comparison(synthetic_series, 1000)
        solo = BacktestEngine().run(
            synthetic_series, BacktestConfig(initial_capital=1000, strategy_type="conservative")
        )
        assert results["conservative"] == solo

    def test_unknown_strategy_isolated(self, runner, synthetic_series):
        results = runner.run_comparison(synthetic_series, 1000, ["moderate", "bogus"])

        assert isinstance(results["moderate"], BacktestResult)
        failure = results["bogus"]
        assert isinstance(failure, StrategyFailure)
        assert failure.code == "INVALID_CONFIG"
        assert failure.to_dict()["error"] == "INVALID_CONFIG"
        assert BUY_HOLD_KEY in results

    def test_unexpected_error_isolated(self, synthetic_series):
        runner = MultiStrategyBacktest(engine=_ExplodingEngine())
        results = runner.run_comparison(synthetic_series, 1000)

        assert isinstance(results["frequent"], StrategyFailure)
        assert results["frequent"].code == "STRATEGY_ERROR"
        assert results["frequent"].message == "boom"
        for name in ("moderate", "aggressive", "conservative"):
            assert isinstance(results[name], BacktestResult)

    def test_explicit_empty_selection_runs_benchmark_only(self, runner, synthetic_series):
        results = runner.run_comparison(synthetic_series, 1000, [])
        assert set(results) == {BUY_HOLD_KEY}
        assert runner.get_ranking(results) == []


class TestBuyAndHold:
    def test_starts_at_warmup_bar(self, runner, synthetic_series):
        results = runner.run_comparison(synthetic_series, 1000)
        benchmark = results[BUY_HOLD_KEY]

        first = synthetic_series[50].price
        last = synthetic_series[-1].price
        assert abs(benchmark.total_return - (last - first) / first * 100) < 1e-9
        assert benchmark.final_value == pytest.approx(1000 * last / first)
        assert benchmark.total_trades == 1

    def test_ignores_pre_warmup_prices(self, runner, make_series):
        prices = [100.0] * 50 + [1.0, 1.5, 2.0]
        benchmark = runner.buy_and_hold(make_series(prices), 1000)
        assert benchmark.total_return == pytest.approx(100.0)
        assert benchmark.final_value == pytest.approx(2000.0)


class TestRanking:
    def test_ranking_skips_failures_and_benchmark(self, runner, synthetic_series):
        results = runner.run_comparison(synthetic_series, 1000, ["moderate", "bogus", "frequent"])
        ranking = runner.get_ranking(results)

        names = [name for name, _ in ranking]
        assert sorted(names) == ["frequent", "moderate"]
        values = [value for _, value in ranking]
        assert values == sorted(values, reverse=True)

    def test_rank_by_other_metric(self, runner, synthetic_series):
        results = runner.run_comparison(synthetic_series, 1000)
        ranking = runner.get_ranking(results, metric="sharpe_ratio")
        assert ranking[0][1] == max(results[name].sharpe_ratio for name in STRATEGY_CATALOG)
