"""
Entry / exit calculator

Target and stop prices for a planned entry, with the money gained or lost
at each and the reward-to-risk ratio.
"""

from coinsignal.core.exceptions import InvalidConfigError

from .models import TradeTargets


def calculate_targets(
    entry_price: float,
    target_pct: float,
    stop_pct: float,
    position_size: float,
) -> TradeTargets:
    """Exit levels for a long entry.

    Args:
        entry_price: planned entry price
        target_pct: take-profit distance above entry, in percent
        stop_pct: stop-loss distance below entry, in percent
        position_size: amount invested, in quote currency

    Returns:
        TradeTargets; ``risk_reward`` is ``target_pct / stop_pct`` to two decimals
    """
    for label, value in (
        ("Entry price", entry_price),
        ("Target percent", target_pct),
        ("Stop-loss percent", stop_pct),
        ("Position size", position_size),
    ):
        if not value > 0:
            raise InvalidConfigError(f"{label} must be positive, got {value}")
    if stop_pct >= 100:
        raise InvalidConfigError(f"Stop-loss percent must be below 100, got {stop_pct}")

    return TradeTargets(
        entry_price=entry_price,
        target_exit=entry_price * (1 + target_pct / 100),
        stop_loss_price=entry_price * (1 - stop_pct / 100),
        potential_profit=position_size * target_pct / 100,
        potential_loss=position_size * stop_pct / 100,
        risk_reward=round(target_pct / stop_pct, 2),
    )
