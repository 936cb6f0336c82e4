"""Metrics calculator for backtest runs.

Reduces the trade sequence and capital trace of one simulation into:
- ROI, total profit
- Win rate and average profit per trade
- Maximum drawdown
- Annualized Sharpe ratio (drawdown-based risk proxy)

Undefined statistics are reported as a sentinel instead of raising.

Usage:
    from simtrader.backtesting.metrics import compute_metrics

    metrics = compute_metrics(initial_capital, final_capital, trades, trace)
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from simtrader.backtesting.schemas import BacktestMetrics, CapitalPoint, SimulatedTrade
from simtrader.common.exceptions import DegenerateMetricError
from simtrader.common.logging import get_logger
from simtrader.common.metrics import BACKTEST_DEGENERATE_METRICS_TOTAL

logger = get_logger("BACKTEST")

TRADING_DAYS_PER_YEAR = 252

# Reported when the Sharpe ratio is undefined (zero drawdown)
SHARPE_SENTINEL = 0.0

_EPSILON = 1e-12


def compute_metrics(
    initial_capital: float,
    final_capital: float,
    trades: Sequence[SimulatedTrade],
    trace: Sequence[CapitalPoint],
) -> BacktestMetrics:
    """Compute all summary statistics for one run.

    Args:
        initial_capital: Starting balance (> 0).
        final_capital: Balance after the last trade.
        trades: The full, unsampled trade sequence.
        trace: The capital trace, one point per trade.

    Returns:
        BacktestMetrics with unrounded values.
    """
    total_trades = len(trades)
    winning_trades = sum(1 for t in trades if t.won)
    losing_trades = total_trades - winning_trades
    total_profit = sum(t.profit for t in trades)

    roi = _compute_roi(initial_capital, final_capital)
    max_drawdown = _compute_max_drawdown(trace)

    degenerate: list[str] = []
    try:
        sharpe = annualized_sharpe(roi, max_drawdown)
    except DegenerateMetricError as exc:
        logger.warning(
            "Sharpe ratio undefined, reporting sentinel",
            extra={"data": {**exc.context, "sentinel": SHARPE_SENTINEL}},
        )
        BACKTEST_DEGENERATE_METRICS_TOTAL.labels(metric="sharpe_ratio").inc()
        degenerate.append("sharpe_ratio")
        sharpe = SHARPE_SENTINEL

    return BacktestMetrics(
        total_trades=total_trades,
        winning_trades=winning_trades,
        losing_trades=losing_trades,
        total_profit=total_profit,
        roi=roi,
        win_rate=_compute_win_rate(winning_trades, losing_trades),
        avg_profit_per_trade=total_profit / total_trades if total_trades > 0 else 0.0,
        max_drawdown=max_drawdown,
        sharpe_ratio=sharpe,
        degenerate_metrics=tuple(degenerate),
    )


def _compute_roi(initial_capital: float, final_capital: float) -> float:
    """Return on investment as a fraction (0.085 for 8.5%)."""
    if initial_capital <= 0:
        return 0.0
    return (final_capital - initial_capital) / initial_capital


def _compute_win_rate(winning_trades: int, losing_trades: int) -> float:
    """Fraction of trades that won, 0.0 when there were none."""
    total = winning_trades + losing_trades
    return winning_trades / total if total > 0 else 0.0


def _compute_max_drawdown(trace: Sequence[CapitalPoint]) -> float:
    """Largest peak-to-current decline across the trace, as a fraction."""
    if not trace:
        return 0.0
    return max(point.drawdown for point in trace)


def annualized_sharpe(roi: float, max_drawdown: float) -> float:
    """Risk-adjusted return using sqrt(max drawdown) as the risk proxy.

    Sharpe = roi / sqrt(max_drawdown) * sqrt(252)

    Raises:
        DegenerateMetricError: If max_drawdown is zero, where the ratio
            has no finite value.
    """
    if max_drawdown < _EPSILON:
        raise DegenerateMetricError(
            "Sharpe ratio is undefined when max drawdown is zero",
            context={"roi": roi, "max_drawdown": max_drawdown},
        )
    return roi / math.sqrt(max_drawdown) * math.sqrt(TRADING_DAYS_PER_YEAR)
