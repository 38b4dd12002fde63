"""Tests for the host-side backtest service and signal scanner."""

import pytest

from coinsignal.core.exceptions import InsufficientDataError, InvalidConfigError
from coinsignal.services.backtesting import BacktestResult
from coinsignal.services.backtesting.engine import BUY_HOLD_KEY
from coinsignal.services.backtesting.service import BacktestRunConfig, BacktestService
from coinsignal.services.market_data import (
    FallbackMarketDataSource,
    InMemoryMarketDataSource,
    InMemoryResultSink,
)
from coinsignal.services.signals import SignalScanner, SignalScoringEngine


class _FailingSink(InMemoryResultSink):
    def publish_backtest(self, report):
        raise RuntimeError("sink down")

    def publish_signals(self, signals):
        raise RuntimeError("sink down")


class TestBacktestService:
    def test_run_produces_report(self, synthetic_series):
        sink = InMemoryResultSink()
        service = BacktestService(InMemoryMarketDataSource(synthetic_series, name="cache"), sinks=[sink])

        report = service.run(BacktestRunConfig(period_years=1, initial_capital=500, strategy_type="aggressive"))

        assert isinstance(report.result, BacktestResult)
        assert report.result.strategy_type == "aggressive"
        assert report.result.initial_capital == 500
        assert len(report.result.portfolio_history) == 365 - 50
        assert BUY_HOLD_KEY in report.comparison
        assert report.data_source == "cache"
        assert report.comparison["aggressive"] == report.result
        assert sink.backtests == [report.to_dict()]

    def test_reports_fallback_source_name(self, synthetic_series):
        source = FallbackMarketDataSource([
            InMemoryMarketDataSource([], name="live"),
            InMemoryMarketDataSource(synthetic_series, name="cache"),
        ])
        report = BacktestService(source).run(BacktestRunConfig())
        assert report.data_source == "cache"

    def test_invalid_strategy_rejected_before_fetch(self):
        service = BacktestService(InMemoryMarketDataSource([]))
        with pytest.raises(InvalidConfigError):
            service.run(BacktestRunConfig(strategy_type="moonshot"))

    @pytest.mark.parametrize("kwargs", [{"initial_capital": 0}, {"period_years": 0}])
    def test_invalid_config(self, kwargs):
        with pytest.raises(InvalidConfigError):
            BacktestRunConfig(**kwargs).validate()

    def test_short_history(self, make_series):
        service = BacktestService(InMemoryMarketDataSource(make_series([1.0] * 30)))
        with pytest.raises(InsufficientDataError):
            service.run(BacktestRunConfig())

    def test_sink_failure_does_not_break_run(self, synthetic_series):
        service = BacktestService(InMemoryMarketDataSource(synthetic_series), sinks=[_FailingSink()])
        report = service.run(BacktestRunConfig())
        assert report.result.strategy_type == "moderate"

    def test_report_dict_has_ranking(self, synthetic_series):
        report = BacktestService(InMemoryMarketDataSource(synthetic_series)).run(BacktestRunConfig())
        data = report.to_dict()
        assert {entry["strategy"] for entry in data["ranking"]} == {
            "moderate", "frequent", "aggressive", "conservative",
        }
        assert data["comparison"][BUY_HOLD_KEY]["total_trades"] == 1
        assert "Strategy: moderate" in data["summary"]


class TestSignalScanner:
    def test_scan_scores_latest_bar(self, synthetic_series):
        sink = InMemoryResultSink()
        scorer = SignalScoringEngine()
        scanner = SignalScanner(
            InMemoryMarketDataSource(synthetic_series, name="cache"), scorer=scorer, sinks=[sink]
        )

        result = scanner.scan(leading_score=90, leading_factors=["ETF inflows"])

        assert result.ok
        assert result.snapshot.price == synthetic_series[-1].price
        assert result.data_source == "cache"
        assert any(s.rule == "leading_gate" for s in result.signals)
        assert scanner.last_result is result
        assert sink.signal_batches == [[s.to_dict() for s in result.active]]
        assert scorer.history[: len(result.signals)] == result.signals

    def test_source_failure_is_structured(self):
        scanner = SignalScanner(InMemoryMarketDataSource([]), scorer=SignalScoringEngine())
        result = scanner.scan()

        assert not result.ok
        assert result.signals == []
        payload = result.to_dict()
        assert payload["error"] == "MARKET_DATA_ERROR"
        assert "detail" in payload

    def test_bad_leading_score_is_structured(self, synthetic_series):
        scanner = SignalScanner(InMemoryMarketDataSource(synthetic_series), scorer=SignalScoringEngine())
        result = scanner.scan(leading_score=140)
        assert result.error["error"] == "INVALID_CONFIG"

    def test_default_scorers_are_independent(self, synthetic_series):
        source = InMemoryMarketDataSource(synthetic_series)
        first = SignalScanner(source)
        second = SignalScanner(source)

        first.scan(leading_score=90)

        assert first.scorer is not second.scorer
        assert first.scorer.history
        assert second.scorer.history == []

    def test_sink_failure_is_logged(self, synthetic_series):
        scanner = SignalScanner(
            InMemoryMarketDataSource(synthetic_series),
            scorer=SignalScoringEngine(),
            sinks=[_FailingSink()],
        )
        assert scanner.scan().ok
