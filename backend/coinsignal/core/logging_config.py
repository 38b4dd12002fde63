"""Structured logging configuration.

Backtest and scan logs can attach run context (strategy, data source, bar
count) with ``extra={"context": {...}}``; the JSON formatter emits it as a
``context`` object so runs can be filtered per strategy.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional


class JSONFormatter(logging.Formatter):
    """One JSON object per line, tagged with the app name."""

    def __init__(self, app_name: str = "coinsignal"):
        super().__init__()
        self.app_name = app_name

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "app": self.app_name,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            log_entry["context"] = context
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False, default=str)


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
    app_name: str = "coinsignal",
    engine_level: Optional[str] = None,
) -> None:
    """Configure application-wide logging.

    Args:
        json_output: Use JSON formatter (production).
        level: Root log level.
        app_name: Tag written into every JSON record.
        engine_level: Separate level for the backtesting package, whose
            per-trade logs are noisy on multi-year comparisons.
    """
    root = logging.getLogger()
    root.setLevel(level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)

    if json_output:
        handler.setFormatter(JSONFormatter(app_name))
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)-5s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    root.addHandler(handler)

    if engine_level:
        logging.getLogger("coinsignal.services.backtesting").setLevel(engine_level)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
