"""Shared FastAPI dependencies."""

from functools import lru_cache

from coinsignal.config import settings
from coinsignal.services.market_data import (
    FallbackMarketDataSource,
    MarketDataSource,
    SyntheticMarketDataSource,
)
from coinsignal.services.signals import SignalScoringEngine


@lru_cache
def get_market_data_source() -> MarketDataSource:
    """Default source chain; hosts with live feeds override this dependency."""
    return FallbackMarketDataSource([
        SyntheticMarketDataSource(
            seed=settings.synthetic_seed,
            start_price=settings.synthetic_start_price,
        ),
    ])


@lru_cache
def get_signal_scorer() -> SignalScoringEngine:
    return SignalScoringEngine(history_limit=settings.signal_history_limit)
