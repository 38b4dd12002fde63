"""
Signal scanner

Fetch series -> indicator snapshot -> rule scoring -> publish to sinks.
Errors come back as structured payloads, never as partial numbers.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from coinsignal.core import constants
from coinsignal.core.exceptions import CoinSignalError
from coinsignal.services.market_data import MarketDataSource, ResultSink, SeriesRequest

from .indicators import IndicatorCalculator, indicator_calculator
from .models import IndicatorSnapshot, Signal
from .triggers import SignalScoringEngine

logger = logging.getLogger(__name__)

DEFAULT_SCAN_DAYS = 365


@dataclass
class ScanResult:
    """Outcome of one scan"""
    scanned_at: datetime
    signals: List[Signal] = field(default_factory=list)
    snapshot: Optional[IndicatorSnapshot] = None
    data_source: Optional[str] = None
    error: Optional[Dict[str, str]] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def active(self) -> List[Signal]:
        return SignalScoringEngine.rank_active(self.signals)

    def to_dict(self) -> Dict[str, Any]:
        if self.error:
            return {"scanned_at": self.scanned_at.isoformat(), **self.error}
        return {
            "scanned_at": self.scanned_at.isoformat(),
            "data_source": self.data_source,
            "snapshot": self.snapshot.to_dict() if self.snapshot else None,
            "signals": [s.to_dict() for s in self.active],
        }


class SignalScanner:
    """Signal scanner"""

    def __init__(
        self,
        source: MarketDataSource,
        scorer: Optional[SignalScoringEngine] = None,
        calculator: Optional[IndicatorCalculator] = None,
        sinks: Optional[Sequence[ResultSink]] = None,
        days: int = DEFAULT_SCAN_DAYS,
    ):
        self.source = source
        # Each scanner owns its history unless a scorer is shared explicitly
        self.scorer = scorer if scorer is not None else SignalScoringEngine()
        self.calculator = calculator or indicator_calculator
        self.sinks: List[ResultSink] = list(sinks or [])
        self.days = days
        self._last_result: Optional[ScanResult] = None

    def add_sink(self, sink: ResultSink) -> None:
        self.sinks.append(sink)

    @property
    def last_result(self) -> Optional[ScanResult]:
        return self._last_result

    def scan(
        self,
        leading_score: float = constants.DEFAULT_LEADING_SCORE,
        leading_factors: Sequence[str] = (),
    ) -> ScanResult:
        """Run a full scan against the latest bar."""
        now = datetime.now()

        try:
            series = self.source.fetch_series(SeriesRequest(days=self.days))
            snapshot = self.calculator.calculate_all(series)
            signals = self.scorer.evaluate_all(
                snapshot,
                leading_score=leading_score,
                leading_factors=leading_factors,
                timestamp=now,
            )
        except CoinSignalError as e:
            logger.error(f"Signal scan failed [{e.code}]: {e.message}")
            result = ScanResult(scanned_at=now, error=e.to_dict())
            self._last_result = result
            return result

        result = ScanResult(
            scanned_at=now,
            signals=signals,
            snapshot=snapshot,
            data_source=getattr(self.source, "last_source", None) or self.source.name,
        )
        logger.info(
            f"Scan complete: {len(signals)} signals at price {snapshot.price:.6f}",
            extra={"context": {"data_source": result.data_source, "bars": snapshot.data_count}},
        )
        self._last_result = result
        self._publish(result)
        return result

    def _publish(self, result: ScanResult) -> None:
        payload = [s.to_dict() for s in result.active]
        for sink in self.sinks:
            try:
                sink.publish_signals(payload)
            except Exception as e:
                logger.error(f"Signal sink error: {e}")
