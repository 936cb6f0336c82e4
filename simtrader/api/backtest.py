"""Backtest API endpoint — run a synthetic strategy simulation.

POST /api/backtest — accepts a BacktestRequest, returns a BacktestResult.
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends

from simtrader.api.deps import get_backtest_engine, get_current_user
from simtrader.backtesting.engine import BacktestEngine
from simtrader.backtesting.schemas import BacktestRequest, BacktestResult
from simtrader.common.config import get_settings

router = APIRouter()


@router.post("", response_model=BacktestResult)
async def run_backtest_endpoint(
    request: BacktestRequest,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user),
    engine: BacktestEngine = Depends(get_backtest_engine),
) -> BacktestResult:
    """Run one backtest for the authenticated caller.

    An omitted ``tradingPairs`` uses the configured default pairs.
    Validation, lookup and auth failures are raised as SimTrader
    errors and rendered by the handlers in main.py. The completion
    notice is delivered after the response has been sent.

    Args:
        request: Backtest parameters.
        background_tasks: Post-response work queue.
        user_id: Authenticated caller; receives the completion notice.
        engine: Engine wired to the registry and notification sink.

    Returns:
        BacktestResult with summary metrics and a trade sample.
    """
    if "trading_pairs" not in request.model_fields_set:
        defaults = get_settings().backtest_default_trading_pairs
        request = request.model_copy(update={"trading_pairs": tuple(defaults)})

    result = await engine.run(request, user_id=user_id, notify=False)
    background_tasks.add_task(engine.notify, user_id, result)
    return result
