"""
Signal scoring API

Scores the latest market state and serves the recent-signal history.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from coinsignal.api.deps import get_market_data_source, get_signal_scorer
from coinsignal.config import settings
from coinsignal.core.constants import DAYS_PER_YEAR
from coinsignal.services.market_data import MarketDataSource
from coinsignal.services.backtesting.strategy import get_strategy_params
from coinsignal.services.signals import SignalScanner, SignalScoringEngine, calculate_targets

logger = logging.getLogger(__name__)
router = APIRouter()


class ScanRequest(BaseModel):
    """Scan request"""
    leading_score: float = Field(default=settings.default_leading_score, ge=0, le=100)
    leading_factors: List[str] = Field(default_factory=list)
    days: int = Field(default=DAYS_PER_YEAR, ge=1, le=3650)


@router.post("/scan")
async def scan_signals(
    request: ScanRequest,
    source: MarketDataSource = Depends(get_market_data_source),
    scorer: SignalScoringEngine = Depends(get_signal_scorer),
):
    """Score the latest bar; failures come back as an error payload"""
    scanner = SignalScanner(source, scorer=scorer, days=request.days)
    result = scanner.scan(request.leading_score, request.leading_factors)

    if not result.ok:
        status_code = 502 if result.error["error"] == "MARKET_DATA_ERROR" else 422
        return JSONResponse(status_code=status_code, content=result.to_dict())
    return result.to_dict()


@router.get("/history")
async def get_signal_history(
    limit: int = Query(default=20, ge=1, le=100),
    scorer: SignalScoringEngine = Depends(get_signal_scorer),
) -> Dict[str, Any]:
    """Recent signals, newest first"""
    history = scorer.history[:limit]
    return {
        "count": len(history),
        "signals": [s.to_dict() for s in history],
    }


class TargetsRequest(BaseModel):
    """Entry / exit calculator input; missing percents come from the strategy"""
    entry_price: float = Field(gt=0)
    position_size: float = Field(gt=0)
    target_pct: Optional[float] = Field(default=None, gt=0)
    stop_loss_pct: Optional[float] = Field(default=None, gt=0, lt=100)
    strategy_type: str = settings.default_strategy


@router.post("/targets")
async def calculate_trade_targets(request: TargetsRequest) -> Dict[str, Any]:
    """Target exit, stop-loss price, profit / loss and risk-reward for an entry"""
    target_pct = request.target_pct
    stop_loss_pct = request.stop_loss_pct
    if target_pct is None or stop_loss_pct is None:
        params = get_strategy_params(request.strategy_type)
        target_pct = params.target_pct if target_pct is None else target_pct
        stop_loss_pct = params.stop_loss_pct if stop_loss_pct is None else stop_loss_pct

    targets = calculate_targets(request.entry_price, target_pct, stop_loss_pct, request.position_size)
    return targets.to_dict()
