"""Simulation and scoring constants.

Values the engine and scorer share; runtime overrides live in ``coinsignal.config``.
"""

# ── Simulation ──
WARMUP_BARS = 50
FEE_RATE = 0.001  # 0.1% per side
POSITION_FRACTION = 0.95  # share of cash committed on entry
TIME_STOP_MULTIPLIER = 5  # time stop after 5 x min hold days

# ── Entry / exit thresholds ──
ENTRY_RSI_MAX = 40
ENTRY_LOWER_BAND_FACTOR = 1.05
ENTRY_MA50_FACTOR = 0.98
ENTRY_MIN_STRENGTH = 2
EXIT_RSI_OVERBOUGHT = 70
EXIT_RSI_MIN_RETURN_PCT = 2
TIME_STOP_MAX_RETURN_PCT = -2

# ── Statistics ──
TRADING_DAYS_PER_YEAR = 252

# ── Signal scoring ──
SIGNAL_HISTORY_LIMIT = 20
DEFAULT_LEADING_SCORE = 50
HIGH_VOLATILITY_PCT = 8
CROSS_PROXIMITY = 0.05

# ── Market context ──
VOLATILITY_PERIODS = (7, 30, 90)
MOMENTUM_PERIOD = 10
VOLUME_AVG_PERIOD = 30

# ── Synthetic market data ──
SYNTHETIC_START_PRICE = 0.05
SYNTHETIC_MIN_PRICE = 0.01
SYNTHETIC_MAX_PRICE = 0.8
DAYS_PER_YEAR = 365
