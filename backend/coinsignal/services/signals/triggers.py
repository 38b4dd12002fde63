"""
Signal scoring engine

Evaluates independent rules against an IndicatorSnapshot. Each rule fires
at most one Signal; rules are not mutually exclusive.
"""

import logging
import math
from datetime import datetime
from typing import List, Optional, Sequence

from coinsignal.core import constants
from coinsignal.core.exceptions import InvalidConfigError

from .models import IndicatorSnapshot, Signal, SignalStrength, SignalType

logger = logging.getLogger(__name__)

MACD_STRONG_HISTOGRAM = 0.00001


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_confidence(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


class SignalScoringEngine:
    """Rule battery plus a capped history of recent signals."""

    def __init__(self, history_limit: int = constants.SIGNAL_HISTORY_LIMIT):
        self.history_limit = history_limit
        self._history: List[Signal] = []

    @property
    def history(self) -> List[Signal]:
        """Most recent first."""
        return list(self._history)

    def clear_history(self) -> None:
        self._history = []

    def evaluate_all(
        self,
        ind: IndicatorSnapshot,
        leading_score: float = constants.DEFAULT_LEADING_SCORE,
        leading_factors: Sequence[str] = (),
        timestamp: Optional[datetime] = None,
    ) -> List[Signal]:
        """Evaluate every rule against the snapshot

        Args:
            ind: indicator snapshot of the latest bar
            leading_score: external advisory score in [0, 100]
            leading_factors: advisory factor strings, most important first
            timestamp: stamped on every emitted signal (defaults to now)

        Returns:
            fired signals in rule order
        """
        if not 0 <= leading_score <= 100:
            raise InvalidConfigError(f"Leading score must be within [0, 100], got {leading_score}")

        ts = timestamp or datetime.now()
        factors = list(leading_factors)

        candidates = [
            self._leading_gate(ind, leading_score, factors),
            self._rsi_oversold(ind),
            self._rsi_overbought(ind),
            self._macd_bullish(ind),
            self._macd_bearish(ind),
            self._bollinger_lower(ind),
            self._bollinger_upper(ind),
            self._golden_cross(ind),
            self._death_cross(ind),
            self._high_volatility(ind),
            self._bullish_confluence(ind, leading_score),
            self._bearish_confluence(ind, leading_score),
        ]

        signals = []
        for signal in candidates:
            if signal is None:
                continue
            signal.confidence = clamp_confidence(signal.confidence)
            signal.timestamp = ts
            signals.append(signal)

        self._history = (signals + self._history)[: self.history_limit]
        logger.info(f"Generated {len(signals)} active signals")
        return signals

    @staticmethod
    def rank_active(signals: Sequence[Signal]) -> List[Signal]:
        """Display order: highest confidence first, rule order breaks ties."""
        return sorted(signals, key=lambda s: s.confidence, reverse=True)

    # ============================================================
    # Advisory gate
    # ============================================================

    def _leading_gate(self, ind: IndicatorSnapshot, score: float, factors: List[str]) -> Optional[Signal]:
        """Leading score >= 75 buys, <= 25 sells; confidence grows with distance."""
        score_text = f"{score:g}"
        if score >= 75:
            return Signal(
                type=SignalType.BUY, strength=SignalStrength.HIGH,
                title="Strong Leading Indicators",
                description=(
                    f"Leading score at {score_text}/100. Multiple bullish catalysts aligned. "
                    "High-probability setup forming."
                ),
                factors=[f"Leading Score: {score_text}"] + factors[:3],
                confidence=min(95, 70 + (score - 75)),
                rule="leading_gate",
                values={"leading_score": score},
            )
        if score <= 25:
            return Signal(
                type=SignalType.SELL, strength=SignalStrength.HIGH,
                title="Strong Bearish Leading Indicators",
                description=(
                    f"Leading score at {score_text}/100. Multiple bearish factors present. "
                    "High risk environment."
                ),
                factors=[f"Leading Score: {score_text}"] + factors[:3],
                confidence=min(95, 70 + (25 - score)),
                rule="leading_gate",
                values={"leading_score": score},
            )
        return None

    # ============================================================
    # RSI
    # ============================================================

    def _rsi_oversold(self, ind: IndicatorSnapshot) -> Optional[Signal]:
        rsi = ind.rsi
        if rsi >= 35:
            return None
        return Signal(
            type=SignalType.BUY,
            strength=SignalStrength.HIGH if rsi < 25 else SignalStrength.MEDIUM,
            title="RSI Oversold Signal",
            description=f"RSI at {rsi:.2f} indicates oversold conditions. Potential bounce incoming.",
            factors=["RSI < 35", "Oversold Territory", "Mean Reversion Setup"],
            confidence=round_half_up((35 - rsi) / 35 * 100),
            rule="rsi_oversold",
            values={"rsi": rsi},
        )

    def _rsi_overbought(self, ind: IndicatorSnapshot) -> Optional[Signal]:
        rsi = ind.rsi
        if rsi <= 70:
            return None
        return Signal(
            type=SignalType.SELL,
            strength=SignalStrength.HIGH if rsi > 80 else SignalStrength.MEDIUM,
            title="RSI Overbought Signal",
            description=f"RSI at {rsi:.2f} indicates overbought conditions. Consider taking profits.",
            factors=["RSI > 70", "Overbought Territory", "Reversal Risk"],
            confidence=round_half_up((rsi - 70) / 30 * 100),
            rule="rsi_overbought",
            values={"rsi": rsi},
        )

    # ============================================================
    # MACD
    # ============================================================

    def _macd_bullish(self, ind: IndicatorSnapshot) -> Optional[Signal]:
        macd = ind.macd
        if not macd or not (macd.histogram > 0 and macd.macd > macd.signal):
            return None
        return Signal(
            type=SignalType.BUY,
            strength=SignalStrength.HIGH if macd.histogram > MACD_STRONG_HISTOGRAM else SignalStrength.MEDIUM,
            title="MACD Bullish Crossover",
            description="MACD line crossed above signal line, indicating bullish momentum.",
            factors=["MACD > Signal", "Positive Histogram", "Momentum Shift"],
            confidence=75,
            rule="macd_bullish",
            values={"histogram": macd.histogram},
        )

    def _macd_bearish(self, ind: IndicatorSnapshot) -> Optional[Signal]:
        macd = ind.macd
        if not macd or not (macd.histogram < 0 and macd.macd < macd.signal):
            return None
        return Signal(
            type=SignalType.SELL,
            strength=SignalStrength.HIGH if macd.histogram < -MACD_STRONG_HISTOGRAM else SignalStrength.MEDIUM,
            title="MACD Bearish Crossover",
            description="MACD line crossed below signal line, indicating bearish momentum.",
            factors=["MACD < Signal", "Negative Histogram", "Momentum Weakening"],
            confidence=70,
            rule="macd_bearish",
            values={"histogram": macd.histogram},
        )

    # ============================================================
    # Bollinger Bands
    # ============================================================

    def _bollinger_lower(self, ind: IndicatorSnapshot) -> Optional[Signal]:
        bb = ind.bollinger
        if not bb or ind.price > bb.lower * 1.02:
            return None
        return Signal(
            type=SignalType.BUY,
            strength=SignalStrength.HIGH if ind.price < bb.lower else SignalStrength.MEDIUM,
            title="Bollinger Band Lower Touch",
            description=f"Price at ${ind.price:.5f} is touching the lower band. Statistical reversion expected.",
            factors=["Price at Lower BB", "High Probability Bounce", "2σ Deviation"],
            confidence=78,
            rule="bollinger_lower",
            values={"price": ind.price, "lower": bb.lower},
        )

    def _bollinger_upper(self, ind: IndicatorSnapshot) -> Optional[Signal]:
        bb = ind.bollinger
        if not bb or ind.price < bb.upper * 0.98:
            return None
        return Signal(
            type=SignalType.SELL,
            strength=SignalStrength.HIGH if ind.price > bb.upper else SignalStrength.MEDIUM,
            title="Bollinger Band Upper Touch",
            description=f"Price at ${ind.price:.5f} is touching the upper band. Potential pullback.",
            factors=["Price at Upper BB", "Overextended", "Profit Taking Zone"],
            confidence=72,
            rule="bollinger_upper",
            values={"price": ind.price, "upper": bb.upper},
        )

    # ============================================================
    # Moving average crosses
    # ============================================================

    def _golden_cross(self, ind: IndicatorSnapshot) -> Optional[Signal]:
        ma50, ma200 = ind.ma50, ind.ma200
        if not ma50 or not ma200:
            return None
        if not (ma50 > ma200 and ind.price > ma50):
            return None
        if abs(ma50 - ma200) / ma200 >= constants.CROSS_PROXIMITY:
            return None
        return Signal(
            type=SignalType.BUY, strength=SignalStrength.HIGH,
            title="Golden Cross Formation",
            description="MA50 crossed above MA200 with price confirming. Strong long-term bullish signal.",
            factors=["MA50 > MA200", "Price Above MA50", "Trend Confirmation"],
            confidence=82,
            rule="golden_cross",
            values={"ma50": ma50, "ma200": ma200},
        )

    def _death_cross(self, ind: IndicatorSnapshot) -> Optional[Signal]:
        ma50, ma200 = ind.ma50, ind.ma200
        if not ma50 or not ma200:
            return None
        if not (ma50 < ma200 and ind.price < ma50):
            return None
        if abs(ma50 - ma200) / ma200 >= constants.CROSS_PROXIMITY:
            return None
        return Signal(
            type=SignalType.SELL, strength=SignalStrength.HIGH,
            title="Death Cross Formation",
            description="MA50 crossed below MA200 with price confirming. Strong long-term bearish signal.",
            factors=["MA50 < MA200", "Price Below MA50", "Trend Reversal"],
            confidence=80,
            rule="death_cross",
            values={"ma50": ma50, "ma200": ma200},
        )

    # ============================================================
    # Volatility
    # ============================================================

    def _high_volatility(self, ind: IndicatorSnapshot) -> Optional[Signal]:
        vol = ind.volatility_7d
        if vol is None or vol <= constants.HIGH_VOLATILITY_PCT:
            return None
        return Signal(
            type=SignalType.NEUTRAL, strength=SignalStrength.MEDIUM,
            title="High Volatility Window",
            description=f"7-day volatility at {vol:.2f}%. Ideal conditions for swing trading.",
            factors=["High Volatility", "Large Price Swings", "Active Trading Window"],
            confidence=65,
            rule="high_volatility",
            values={"volatility_7d": vol},
        )

    # ============================================================
    # Confluence
    # ============================================================

    @staticmethod
    def _count_votes(ind: IndicatorSnapshot, leading_score: float):
        bullish = 0
        bearish = 0

        if ind.rsi < 40:
            bullish += 1
        if ind.rsi > 65:
            bearish += 1
        if ind.macd and ind.macd.histogram > 0:
            bullish += 1
        if ind.macd and ind.macd.histogram < 0:
            bearish += 1
        if ind.bollinger and ind.price < ind.bollinger.middle:
            bullish += 1
        if ind.bollinger and ind.price > ind.bollinger.middle:
            bearish += 1
        if leading_score > 60:
            bullish += 1
        if leading_score < 40:
            bearish += 1

        return bullish, bearish

    @staticmethod
    def _confluence_strength(count: int) -> SignalStrength:
        if count >= 4:
            return SignalStrength.HIGH
        if count >= 3:
            return SignalStrength.MEDIUM
        return SignalStrength.LOW

    def _bullish_confluence(self, ind: IndicatorSnapshot, leading_score: float) -> Optional[Signal]:
        count, _ = self._count_votes(ind, leading_score)
        if count < 2:
            return None

        factors = ["Multi-Indicator Confluence", f"{count} Bullish Signals"]
        if leading_score > 60:
            factors.append(f"Leading Score: {leading_score:g}")
        factors.append("High Probability Setup")

        leading_note = " with strong leading signals" if leading_score > 60 else ""
        return Signal(
            type=SignalType.BUY,
            strength=self._confluence_strength(count),
            title="Multiple Bullish Indicators",
            description=(
                f"{count} bullish indicators aligned{leading_note}. "
                f"{'Very strong' if count >= 4 else 'Strong'} buy setup."
            ),
            factors=factors,
            confidence=min(95, 55 + count * 8),
            rule="bullish_confluence",
            values={"bullish_count": count},
        )

    def _bearish_confluence(self, ind: IndicatorSnapshot, leading_score: float) -> Optional[Signal]:
        _, count = self._count_votes(ind, leading_score)
        if count < 2:
            return None

        factors = ["Multi-Indicator Confluence", f"{count} Bearish Signals"]
        if leading_score < 40:
            factors.append(f"Leading Score: {leading_score:g}")
        factors.append("High Probability Setup")

        leading_note = " with weak leading signals" if leading_score < 40 else ""
        return Signal(
            type=SignalType.SELL,
            strength=self._confluence_strength(count),
            title="Multiple Bearish Indicators",
            description=f"{count} bearish indicators aligned{leading_note}. Consider exit or short.",
            factors=factors,
            confidence=min(95, 55 + count * 8),
            rule="bearish_confluence",
            values={"bearish_count": count},
        )

