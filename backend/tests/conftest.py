"""Shared test fixtures."""

from datetime import datetime, timedelta

import pytest

from coinsignal.services.market_data import PricePoint, SeriesRequest, SyntheticMarketDataSource

START = datetime(2024, 1, 1)


def build_series(prices, start=START, step=timedelta(days=1)):
    return [
        PricePoint(timestamp=start + step * i, price=price, volume=1_000_000.0)
        for i, price in enumerate(prices)
    ]


def dip_prefix():
    """51 bars sliding 0.001 per day from 2.0; bar 50 (1.95) is an entry bar."""
    return [2.0 - 0.001 * i for i in range(51)]


@pytest.fixture
def make_series():
    return build_series


@pytest.fixture
def dip_then(make_series):
    """Entry at 1.95 on the first simulated bar, followed by the given prices."""
    def _build(after):
        return make_series(dip_prefix() + list(after))
    return _build


@pytest.fixture
def synthetic_series():
    source = SyntheticMarketDataSource(seed=7)
    return source.fetch_series(SeriesRequest(days=400, end=datetime(2025, 1, 1)))
