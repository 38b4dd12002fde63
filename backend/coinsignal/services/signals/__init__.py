"""
Signal scoring service

Indicator snapshot of the latest bar scored by independent rules into
ranked, confidence-scored signals.
"""

from .models import (
    BollingerBands,
    IndicatorSnapshot,
    MACDResult,
    Signal,
    SignalStrength,
    SignalType,
    TradeTargets,
    VolatilityStats,
)
from .indicators import IndicatorCalculator, indicator_calculator
from .triggers import SignalScoringEngine
from .scanner import ScanResult, SignalScanner
from .targets import calculate_targets

__all__ = [
    "BollingerBands",
    "IndicatorSnapshot",
    "MACDResult",
    "Signal",
    "SignalStrength",
    "SignalType",
    "TradeTargets",
    "VolatilityStats",
    "IndicatorCalculator",
    "indicator_calculator",
    "SignalScoringEngine",
    "ScanResult",
    "SignalScanner",
    "calculate_targets",
]
