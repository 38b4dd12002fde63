from coinsignal.api.routes import backtest, signals

__all__ = ["backtest", "signals"]
