"""
Strategy parameters and trading records
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict

from coinsignal.core.exceptions import InvalidConfigError


@dataclass(frozen=True)
class StrategyParams:
    """Exit thresholds for one named strategy."""
    name: str
    target_pct: float
    stop_loss_pct: float
    min_hold_days: float
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "target_pct": self.target_pct,
            "stop_loss_pct": self.stop_loss_pct,
            "min_hold_days": self.min_hold_days,
            "description": self.description,
        }


STRATEGY_CATALOG: Dict[str, StrategyParams] = {
    "moderate": StrategyParams("moderate", 7.5, 3, 2, "5-10% swing target"),
    "frequent": StrategyParams("frequent", 2.5, 1.5, 0.5, "2-3% quick target"),
    "aggressive": StrategyParams("aggressive", 1.5, 1, 0.25, "1-2% scalp target"),
    "conservative": StrategyParams("conservative", 12.5, 5, 5, "10-15% position target"),
}


def get_strategy_params(strategy_type: str) -> StrategyParams:
    """Look up a catalog entry, rejecting unknown identifiers."""
    try:
        return STRATEGY_CATALOG[strategy_type]
    except KeyError:
        raise InvalidConfigError(
            f"Unknown strategy type '{strategy_type}'. "
            f"Expected one of: {', '.join(STRATEGY_CATALOG)}"
        ) from None


@dataclass
class Position:
    """The single open long position."""
    entry_price: float
    entry_date: datetime
    coins_held: float
    invested_amount: float
    target_price: float
    stop_loss_price: float

    def market_value(self, price: float) -> float:
        return self.coins_held * price

    def return_pct(self, price: float) -> float:
        return (price - self.entry_price) / self.entry_price * 100

    def hold_days(self, current_date: datetime) -> float:
        return (current_date - self.entry_date).total_seconds() / 86400


@dataclass(frozen=True)
class Trade:
    """A closed round trip."""
    entry_date: datetime
    exit_date: datetime
    entry_price: float
    exit_price: float
    invested_amount: float
    profit: float
    profit_pct: float
    hold_days: float
    exit_reason: str

    @property
    def is_winner(self) -> bool:
        return self.profit > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_date": self.entry_date.isoformat(),
            "exit_date": self.exit_date.isoformat(),
            "entry_price": self.entry_price,
            "exit_price": self.exit_price,
            "invested_amount": self.invested_amount,
            "profit": self.profit,
            "profit_pct": self.profit_pct,
            "hold_days": self.hold_days,
            "exit_reason": self.exit_reason,
        }


@dataclass(frozen=True)
class PortfolioSnapshot:
    date: datetime
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date.isoformat(), "value": self.value}
