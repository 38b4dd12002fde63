"""Application-wide exception hierarchy."""

from typing import Dict


class CoinSignalError(Exception):
    """Base exception for all CoinSignal errors."""

    def __init__(self, message: str = "", code: str = ""):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self) -> Dict[str, str]:
        """Structured payload handed to display collaborators."""
        return {"error": self.code, "detail": self.message}


class InsufficientDataError(CoinSignalError):
    """Price series too short for the requested computation."""

    def __init__(self, message: str = "Insufficient price data", code: str = "INSUFFICIENT_DATA"):
        super().__init__(message, code)


class InvalidConfigError(CoinSignalError):
    """Unknown strategy, non-positive capital or out-of-range advisory input."""

    def __init__(self, message: str = "Invalid configuration", code: str = "INVALID_CONFIG"):
        super().__init__(message, code)


class MarketDataError(CoinSignalError):
    """Price retrieval failed in every configured source."""

    def __init__(self, message: str = "Market data error", code: str = "MARKET_DATA_ERROR"):
        super().__init__(message, code)
