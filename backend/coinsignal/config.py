from functools import lru_cache
from typing import List, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from coinsignal.core import constants


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "coinsignal"
    app_env: str = "development"
    debug: bool = True

    # Logging
    log_level: Optional[str] = None  # defaults to DEBUG outside production
    engine_log_level: Optional[str] = None

    # CORS
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Simulation
    warmup_bars: int = constants.WARMUP_BARS
    fee_rate: float = constants.FEE_RATE
    position_fraction: float = constants.POSITION_FRACTION
    default_initial_capital: float = 1000.0
    default_period_years: int = 1
    default_strategy: str = "moderate"

    # Signal scoring
    signal_history_limit: int = constants.SIGNAL_HISTORY_LIMIT
    default_leading_score: float = constants.DEFAULT_LEADING_SCORE

    # Market data
    synthetic_seed: int = 42
    synthetic_start_price: float = constants.SYNTHETIC_START_PRICE

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @model_validator(mode="after")
    def _validate_simulation(self) -> "Settings":
        """Reject simulation parameters the engine cannot honour."""
        if not 0 <= self.fee_rate < 1:
            raise ValueError("FEE_RATE must be in [0, 1).")
        if not 0 < self.position_fraction <= 1:
            raise ValueError("POSITION_FRACTION must be in (0, 1].")
        if self.warmup_bars < 1:
            raise ValueError("WARMUP_BARS must be at least 1.")
        if self.signal_history_limit < 1:
            raise ValueError("SIGNAL_HISTORY_LIMIT must be at least 1.")
        return self

    @model_validator(mode="after")
    def _validate_production(self) -> "Settings":
        """Reject insecure defaults when running in production."""
        if not self.is_production:
            return self
        if self.debug:
            raise ValueError("DEBUG must be False in production.")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
