"""Report assembly: result payload, trade sampling, completion notice.

Usage:
    from simtrader.backtesting.report import assemble_result, build_completion_notice

    result = assemble_result(profile, request, final_capital, metrics, trades)
    notice = build_completion_notice(user_id, result)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

from simtrader.backtesting.schemas import (
    AlgorithmProfile,
    BacktestMetrics,
    BacktestPeriod,
    BacktestRequest,
    BacktestResult,
    SimulatedTrade,
)

MAX_SAMPLE_TRADES = 10


@dataclass(frozen=True)
class CompletionNotice:
    """Notification record announcing a finished backtest."""

    user_id: str
    title: str
    message: str
    type: str = "system"
    metadata: dict = field(default_factory=dict)


def sample_trades(
    trades: Sequence[SimulatedTrade],
    limit: int = MAX_SAMPLE_TRADES,
) -> list[SimulatedTrade]:
    """Pick at most ``limit`` trades evenly spaced over the whole sequence.

    When sampling is needed, the first and last trades are always included.

    Args:
        trades: The full trade sequence.
        limit: Maximum number of trades to return.

    Returns:
        The sampled trades, in sequence order.
    """
    if limit <= 0:
        return []
    if len(trades) <= limit:
        return list(trades)

    positions = np.rint(np.linspace(0, len(trades) - 1, num=limit)).astype(int)
    return [trades[i] for i in positions]


def assemble_result(
    profile: AlgorithmProfile,
    request: BacktestRequest,
    final_capital: float,
    metrics: BacktestMetrics,
    trades: Sequence[SimulatedTrade],
    max_sample_trades: int = MAX_SAMPLE_TRADES,
) -> BacktestResult:
    """Package the metrics and a trade sample into the caller-facing result.

    Args:
        profile: Strategy profile the run used.
        request: The originating request.
        final_capital: Balance after the last trade.
        metrics: Full-precision statistics from compute_metrics().
        trades: The full trade sequence (sampled here).
        max_sample_trades: Upper bound on ``sample_trades`` length.

    Returns:
        An immutable BacktestResult.
    """
    return BacktestResult(
        algorithm_id=profile.algorithm_id,
        algorithm_name=profile.name,
        period=BacktestPeriod(
            start=request.start_date,
            end=request.end_date,
            days=request.days,
        ),
        initial_capital=request.initial_capital,
        final_capital=final_capital,
        total_return=final_capital - request.initial_capital,
        roi_percent=round(metrics.roi * 100, 2),
        total_trades=metrics.total_trades,
        winning_trades=metrics.winning_trades,
        losing_trades=metrics.losing_trades,
        win_rate=round(metrics.win_rate * 100, 2),
        avg_profit_per_trade=round(metrics.avg_profit_per_trade, 2),
        max_drawdown=round(metrics.max_drawdown * 100, 2),
        sharpe_ratio=round(metrics.sharpe_ratio, 2),
        sample_trades=sample_trades(trades, max_sample_trades),
        metrics=metrics,
    )


def build_completion_notice(user_id: str, result: BacktestResult) -> CompletionNotice:
    """Build the in-app notification for a finished backtest."""
    return CompletionNotice(
        user_id=user_id,
        title="Backtest Completed",
        message=(
            f"{result.algorithm_name} backtest finished. "
            f"ROI: {result.roi_percent:.2f}%, Win Rate: {result.win_rate:.2f}%"
        ),
        metadata={"algorithm_id": result.algorithm_id},
    )
