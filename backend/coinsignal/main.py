import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from coinsignal.api.routes import backtest, signals
from coinsignal.config import settings
from coinsignal.core.exceptions import (
    CoinSignalError,
    InsufficientDataError,
    InvalidConfigError,
    MarketDataError,
)
from coinsignal.core.logging_config import configure_logging

configure_logging(
    json_output=settings.is_production,
    level=settings.log_level or ("INFO" if settings.is_production else "DEBUG"),
    app_name=settings.app_name,
    engine_level=settings.engine_log_level,
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title=settings.app_name,
    description="Crypto strategy backtesting and signal scoring",
    version="0.1.0",
    debug=settings.debug,
)


# ── Global exception handlers ──


def _status_for(exc: CoinSignalError) -> int:
    if isinstance(exc, (InsufficientDataError, InvalidConfigError)):
        return 422
    if isinstance(exc, MarketDataError):
        return 502
    return 500


@app.exception_handler(CoinSignalError)
async def coinsignal_error_handler(request: Request, exc: CoinSignalError):
    logger.error("CoinSignalError [%s]: %s", exc.code, exc.message)
    return JSONResponse(status_code=_status_for(exc), content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "INTERNAL_ERROR", "detail": "An unexpected error occurred."},
    )


# ── CORS Middleware ──

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Accept"],
)

# ── Routers ──

app.include_router(backtest.router, prefix="/api/v1/backtest", tags=["Backtesting"])
app.include_router(signals.router, prefix="/api/v1/signals", tags=["Signals"])


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
