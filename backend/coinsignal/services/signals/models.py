"""
Signal data models

Indicator snapshot consumed by the scorer and the Signal records it emits.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class SignalType(str, Enum):
    """Signal direction"""
    BUY = "buy"
    SELL = "sell"
    NEUTRAL = "neutral"


class SignalStrength(str, Enum):
    """Signal strength tier"""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


@dataclass(frozen=True)
class MACDResult:
    macd: float
    signal: float
    histogram: float


@dataclass(frozen=True)
class BollingerBands:
    upper: float
    middle: float
    lower: float

    @property
    def width(self) -> float:
        return self.upper - self.lower


@dataclass(frozen=True)
class VolatilityStats:
    """Spread and mean of daily returns over one lookback, both in percent."""
    volatility: float
    avg_return: float

    def to_dict(self) -> dict:
        return {"volatility": round(self.volatility, 4), "avg_return": round(self.avg_return, 4)}


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Latest market state; unavailable indicators are None."""
    price: float
    rsi: float = 50.0
    macd: Optional[MACDResult] = None
    ma50: Optional[float] = None
    ma200: Optional[float] = None
    bollinger: Optional[BollingerBands] = None
    volatility_7d: Optional[float] = None
    volatility_profile: Dict[str, VolatilityStats] = field(default_factory=dict)
    momentum: Optional[float] = None
    volume_change: Optional[float] = None
    data_count: int = 0

    @property
    def volatility_30d(self) -> Optional[float]:
        stats = self.volatility_profile.get("30d")
        return stats.volatility if stats else None

    @property
    def volatility_90d(self) -> Optional[float]:
        stats = self.volatility_profile.get("90d")
        return stats.volatility if stats else None

    def to_dict(self) -> dict:
        return {
            "price": self.price,
            "rsi": round(self.rsi, 2),
            "macd": {
                "macd": self.macd.macd,
                "signal": self.macd.signal,
                "histogram": self.macd.histogram,
            } if self.macd else None,
            "ma50": self.ma50,
            "ma200": self.ma200,
            "bollinger": {
                "upper": self.bollinger.upper,
                "middle": self.bollinger.middle,
                "lower": self.bollinger.lower,
            } if self.bollinger else None,
            "volatility_7d": round(self.volatility_7d, 4) if self.volatility_7d is not None else None,
            "volatility": {label: stats.to_dict() for label, stats in self.volatility_profile.items()},
            "momentum": round(self.momentum, 4) if self.momentum is not None else None,
            "volume_change": round(self.volume_change, 4) if self.volume_change is not None else None,
            "data_count": self.data_count,
        }


@dataclass
class Signal:
    """One fired scoring rule"""
    type: SignalType
    strength: SignalStrength
    title: str
    description: str
    confidence: int
    rule: str
    factors: List[str] = field(default_factory=list)
    values: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "strength": self.strength.value,
            "title": self.title,
            "description": self.description,
            "factors": list(self.factors),
            "confidence": self.confidence,
            "rule": self.rule,
            "values": dict(self.values),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class TradeTargets:
    """Exit levels and money at risk for a planned entry."""
    entry_price: float
    target_exit: float
    stop_loss_price: float
    potential_profit: float
    potential_loss: float
    risk_reward: float

    def to_dict(self) -> dict:
        return {
            "entry_price": self.entry_price,
            "target_exit": self.target_exit,
            "stop_loss_price": self.stop_loss_price,
            "potential_profit": self.potential_profit,
            "potential_loss": self.potential_loss,
            "risk_reward": self.risk_reward,
        }
