"""
Market data collaborators

Price retrieval lives outside the simulation core: sources materialise a
series of PricePoints before the engine or scorer ever runs.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence
import logging

import numpy as np
import pandas as pd

from coinsignal.core import constants
from coinsignal.core.exceptions import CoinSignalError, MarketDataError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PricePoint:
    """One bar of the input series."""
    timestamp: datetime
    price: float
    volume: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "price": self.price,
            "volume": self.volume,
        }


@dataclass(frozen=True)
class SeriesRequest:
    """What a host asks a source for."""
    days: int
    end: Optional[datetime] = None


def series_from_frame(df: pd.DataFrame, price_column: str = "close") -> List[PricePoint]:
    """Convert a DatetimeIndex-ed DataFrame into an ascending PricePoint list.

    Accepts either a ``close`` column (OHLCV frames) or a ``price`` column.
    Missing volume is treated as zero.
    """
    if df.empty:
        return []

    column = price_column if price_column in df.columns else "price"
    if column not in df.columns:
        raise MarketDataError(f"Frame has no '{price_column}' or 'price' column")

    frame = df.sort_index()
    volumes = frame["volume"] if "volume" in frame.columns else pd.Series(0.0, index=frame.index)

    return [
        PricePoint(timestamp=ts.to_pydatetime(), price=float(price), volume=float(volume))
        for ts, price, volume in zip(frame.index, frame[column], volumes)
    ]


def series_to_frame(series: Sequence[PricePoint]) -> pd.DataFrame:
    """Inverse of :func:`series_from_frame`, indexed by timestamp."""
    df = pd.DataFrame(
        [(p.timestamp, p.price, p.volume) for p in series],
        columns=["date", "price", "volume"],
    )
    df.set_index("date", inplace=True)
    return df


class MarketDataSource(ABC):
    """Supplies a materialised price series."""

    name: str = "base"

    @abstractmethod
    def fetch_series(self, request: SeriesRequest) -> List[PricePoint]:
        """Return an ascending series or raise MarketDataError."""


class InMemoryMarketDataSource(MarketDataSource):
    """Serves a series already held in memory, trimmed to the requested window."""

    name = "memory"

    def __init__(self, series: Sequence[PricePoint], name: Optional[str] = None):
        self._series = list(series)
        if name:
            self.name = name

    def fetch_series(self, request: SeriesRequest) -> List[PricePoint]:
        if not self._series:
            raise MarketDataError(f"Source '{self.name}' holds no data")
        return self._series[-request.days:] if request.days > 0 else list(self._series)


class SyntheticMarketDataSource(MarketDataSource):
    """
    Seeded random-walk generator used as the last-resort source.

    Daily moves are uniform in +/-6%, with an occasional trend shock that
    decays by 5% per bar. Prices stay within the configured clamp.
    """

    name = "synthetic"

    def __init__(
        self,
        seed: int = 42,
        start_price: float = constants.SYNTHETIC_START_PRICE,
        min_price: float = constants.SYNTHETIC_MIN_PRICE,
        max_price: float = constants.SYNTHETIC_MAX_PRICE,
    ):
        self.seed = seed
        self.start_price = start_price
        self.min_price = min_price
        self.max_price = max_price

    def fetch_series(self, request: SeriesRequest) -> List[PricePoint]:
        if request.days <= 0:
            raise MarketDataError("Synthetic series needs a positive number of days")

        rng = np.random.default_rng(self.seed)
        end = request.end or datetime.now(timezone.utc).replace(
            hour=0, minute=0, second=0, microsecond=0
        )
        start = end - timedelta(days=request.days)

        price = self.start_price
        trend = 1.0
        series = []
        for i in range(request.days):
            if rng.random() > 0.98:
                trend = 1 + (rng.random() * 0.5 - 0.25)

            daily_change = (rng.random() - 0.5) * 0.12
            price = price * (1 + daily_change) * trend
            price = max(self.min_price, min(self.max_price, price))
            trend = 1 + (trend - 1) * 0.95

            series.append(
                PricePoint(
                    timestamp=start + timedelta(days=i),
                    price=float(price),
                    volume=float(rng.random() * 1_000_000_000 + 200_000_000),
                )
            )

        logger.info(f"Generated {len(series)} synthetic bars (seed={self.seed})")
        return series


class FallbackMarketDataSource(MarketDataSource):
    """Tries each source in order and returns the first non-empty series."""

    name = "fallback"

    def __init__(self, sources: Sequence[MarketDataSource]):
        if not sources:
            raise ValueError("FallbackMarketDataSource needs at least one source")
        self.sources = list(sources)
        self.last_source: Optional[str] = None

    def fetch_series(self, request: SeriesRequest) -> List[PricePoint]:
        errors = []

        for source in self.sources:
            try:
                series = source.fetch_series(request)
            except CoinSignalError as e:
                logger.warning(f"Source '{source.name}' failed: {e.message}")
                errors.append(f"{source.name}: {e.message}")
                continue

            if not series:
                logger.warning(f"Source '{source.name}' returned an empty series")
                errors.append(f"{source.name}: empty series")
                continue

            self.last_source = source.name
            logger.info(f"Loaded {len(series)} bars from '{source.name}'")
            return series

        self.last_source = None
        raise MarketDataError("All market data sources failed: " + "; ".join(errors))


class ResultSink(ABC):
    """Receives finished reports; only host services publish to sinks."""

    @abstractmethod
    def publish_backtest(self, report: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def publish_signals(self, signals: List[Dict[str, Any]]) -> None:
        ...


class InMemoryResultSink(ResultSink):
    """Keeps everything it receives; handy for hosts and tests."""

    def __init__(self):
        self.backtests: List[Dict[str, Any]] = []
        self.signal_batches: List[List[Dict[str, Any]]] = []

    def publish_backtest(self, report: Dict[str, Any]) -> None:
        self.backtests.append(report)

    def publish_signals(self, signals: List[Dict[str, Any]]) -> None:
        self.signal_batches.append(signals)
