"""
Technical indicator library

Pure functions over an ascending list of prices. None of them raise on short
input: RSI falls back to a neutral 50, every other indicator returns None.
"""

import logging
import math
from typing import Dict, Iterable, List, Optional, Sequence

from coinsignal.core import constants
from coinsignal.core.exceptions import InsufficientDataError

from .models import BollingerBands, IndicatorSnapshot, MACDResult, VolatilityStats

logger = logging.getLogger(__name__)

NEUTRAL_RSI = 50.0


def rsi(prices: Sequence[float], period: int = 14) -> float:
    """Average gain / average loss over the trailing ``period`` changes.

    Gains and losses are summed over the window and divided by ``period``
    (simple averages, not Wilder smoothing across the whole series).
    """
    if len(prices) < period + 1:
        return NEUTRAL_RSI

    window = prices[-period - 1:]
    gains = 0.0
    losses = 0.0
    for prev, cur in zip(window, window[1:]):
        change = cur - prev
        if change > 0:
            gains += change
        else:
            losses -= change

    avg_gain = gains / period
    avg_loss = losses / period

    if avg_loss == 0:
        # Flat window carries no momentum either way
        return 100.0 if avg_gain > 0 else NEUTRAL_RSI

    rs = avg_gain / avg_loss
    return 100 - (100 / (1 + rs))


def sma(prices: Sequence[float], period: int) -> Optional[float]:
    if period <= 0 or len(prices) < period:
        return None
    return sum(prices[-period:]) / period


def ema(prices: Sequence[float], period: int) -> Optional[float]:
    """EMA seeded with the SMA of the first ``period`` values."""
    if period <= 0 or len(prices) < period:
        return None

    multiplier = 2 / (period + 1)
    value = sum(prices[:period]) / period
    for price in prices[period:]:
        value = (price - value) * multiplier + value
    return value


def macd(prices: Sequence[float]) -> Optional[MACDResult]:
    """MACD line from EMA12/EMA26.

    The signal line is the 9-period EMA of the trailing nine raw prices,
    not of the MACD series.
    """
    ema12 = ema(prices, 12)
    ema26 = ema(prices, 26)
    if ema12 is None or ema26 is None:
        return None

    line = ema12 - ema26
    signal = ema(prices[-9:], 9)
    if signal is None:
        signal = line
    return MACDResult(macd=line, signal=signal, histogram=line - signal)


def _population_std(values: Sequence[float]) -> float:
    # Identical values have exactly zero spread; summation error must not invent one
    if max(values) == min(values):
        return 0.0
    mean = sum(values) / len(values)
    return math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))


def bollinger_bands(
    prices: Sequence[float], period: int = 20, k: float = 2.0
) -> Optional[BollingerBands]:
    middle = sma(prices, period)
    if middle is None:
        return None

    std = _population_std(prices[-period:])
    return BollingerBands(upper=middle + k * std, middle=middle, lower=middle - k * std)


def _simple_returns(window: Sequence[float]) -> List[float]:
    return [(cur - prev) / prev for prev, cur in zip(window, window[1:])]


def volatility(prices: Sequence[float], period: int = 7) -> Optional[float]:
    """Population std of simple returns inside the trailing window, in percent."""
    window = prices[-period:]
    if len(window) < 2:
        return None
    return _population_std(_simple_returns(window)) * 100


def volatility_profile(
    prices: Sequence[float], periods: Iterable[int] = constants.VOLATILITY_PERIODS
) -> Dict[str, VolatilityStats]:
    """Volatility and mean daily return per lookback, keyed ``"7d"``, ``"30d"``, ...

    A lookback longer than the series uses whatever prices exist; periods
    with fewer than two prices are left out.
    """
    profile: Dict[str, VolatilityStats] = {}
    for period in periods:
        window = prices[-period:]
        if len(window) < 2:
            continue
        returns = _simple_returns(window)
        profile[f"{period}d"] = VolatilityStats(
            volatility=_population_std(returns) * 100,
            avg_return=sum(returns) / len(returns) * 100,
        )
    return profile


def momentum(prices: Sequence[float], period: int = constants.MOMENTUM_PERIOD) -> Optional[float]:
    """Percent change from the first to the last of the trailing ``period`` prices."""
    if period < 2 or len(prices) < period:
        return None
    first = prices[-period]
    return (prices[-1] - first) / first * 100


def volume_change(
    volumes: Sequence[float], period: int = constants.VOLUME_AVG_PERIOD
) -> Optional[float]:
    """Latest volume against the mean of the trailing ``period`` volumes, in percent."""
    window = volumes[-period:]
    if not window:
        return None
    average = sum(window) / len(window)
    if average <= 0:
        return None
    return (window[-1] - average) / average * 100


class IndicatorCalculator:
    """Builds the snapshot the signal scorer consumes."""

    def calculate_all(self, series) -> IndicatorSnapshot:
        """Compute every indicator against the full series.

        Args:
            series: ascending PricePoints

        Returns:
            IndicatorSnapshot for the latest bar
        """
        if not series:
            raise InsufficientDataError("Cannot build an indicator snapshot from an empty series")

        prices: List[float] = [p.price for p in series]
        if len(prices) < 200:
            logger.debug(f"Only {len(prices)} bars; MA200 unavailable")

        return IndicatorSnapshot(
            price=prices[-1],
            rsi=rsi(prices),
            macd=macd(prices),
            ma50=sma(prices, 50),
            ma200=sma(prices, 200),
            bollinger=bollinger_bands(prices),
            volatility_7d=volatility(prices, 7),
            volatility_profile=volatility_profile(prices),
            momentum=momentum(prices),
            volume_change=volume_change([p.volume for p in series]),
            data_count=len(prices),
        )


indicator_calculator = IndicatorCalculator()
