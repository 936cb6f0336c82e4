"""Backtesting engine: synthetic trade simulation for one strategy profile.

simulate() is the synchronous core: it draws the trade sequence, runs it
through the capital tracker and reduces it to metrics. No I/O happens
inside it, and its random source is local to the call.

BacktestEngine wraps the core with its two collaborators: a profile
resolver (before simulation) and a notifier (after, best-effort).

Usage:
    from simtrader.backtesting.engine import BacktestEngine, simulate

    run = simulate(request, profile)
    engine = BacktestEngine(resolver, notifier)
    result = await engine.run(request, user_id="user-123")

    # Off the response path: run without notifying, deliver later
    result = await engine.run(request, user_id="user-123", notify=False)
    background_tasks.add_task(engine.notify, "user-123", result)
"""

from __future__ import annotations

import math
import random
import time
from dataclasses import dataclass

from simtrader.backtesting.generator import AVG_TRADES_PER_DAY, generate_trade_draws
from simtrader.backtesting.metrics import compute_metrics
from simtrader.backtesting.notifications import Notifier, dispatch_best_effort
from simtrader.backtesting.registry import ProfileResolver
from simtrader.backtesting.report import (
    MAX_SAMPLE_TRADES,
    assemble_result,
    build_completion_notice,
)
from simtrader.backtesting.schemas import (
    AlgorithmProfile,
    BacktestMetrics,
    BacktestRequest,
    BacktestResult,
    CapitalPoint,
    SimulatedTrade,
)
from simtrader.backtesting.tracker import CapitalTracker
from simtrader.common.exceptions import (
    InvalidRequestError,
    SimTraderError,
    SimulationOverflowError,
    UnauthenticatedError,
)
from simtrader.common.logging import get_logger
from simtrader.common.metrics import (
    BACKTEST_DURATION_SECONDS,
    BACKTEST_RUNS_TOTAL,
    BACKTEST_TRADES_SIMULATED_TOTAL,
)

logger = get_logger("BACKTEST")

# Ten years
MAX_BACKTEST_DAYS = 3660

_FLOAT_METRICS = (
    "total_profit",
    "roi",
    "win_rate",
    "avg_profit_per_trade",
    "max_drawdown",
    "sharpe_ratio",
)


@dataclass(frozen=True)
class SimulationRun:
    """Everything one simulation produced, before sampling."""

    trades: list[SimulatedTrade]
    trace: list[CapitalPoint]
    final_capital: float
    metrics: BacktestMetrics


def simulate(
    request: BacktestRequest,
    profile: AlgorithmProfile,
    trades_per_day: int = AVG_TRADES_PER_DAY,
) -> SimulationRun:
    """Run the trade simulation for one request.

    Args:
        request: Window, capital, pairs and optional seed.
        profile: Strategy baseline statistics.
        trades_per_day: Average trades per simulated day.

    Returns:
        SimulationRun with the full trade list, capital trace and metrics.

    Raises:
        SimulationOverflowError: If capital or any metric leaves the
            finite range.
    """
    # Seeded runs are reproducible; unseeded runs draw from OS entropy
    rng = random.Random(request.seed)
    tracker = CapitalTracker(request.initial_capital)

    draws = generate_trade_draws(
        start_date=request.start_date,
        end_date=request.end_date,
        win_rate=profile.win_rate,
        base_return=profile.roi,
        trading_pairs=request.trading_pairs,
        rng=rng,
        trades_per_day=trades_per_day,
    )
    for draw in draws:
        tracker.record(draw)

    trades = tracker.trades
    trace = tracker.trace
    metrics = compute_metrics(request.initial_capital, tracker.capital, trades, trace)

    non_finite = [name for name in _FLOAT_METRICS if not math.isfinite(getattr(metrics, name))]
    if non_finite:
        raise SimulationOverflowError(
            "Backtest metrics left the finite range",
            context={"metrics": non_finite, "algorithm_id": profile.algorithm_id},
        )

    return SimulationRun(
        trades=trades,
        trace=trace,
        final_capital=tracker.capital,
        metrics=metrics,
    )


class BacktestEngine:
    """Resolve → simulate → report → notify, for one request at a time.

    Holds no per-run state, so one instance can serve concurrent requests.

    Args:
        resolver: Algorithm registry lookup.
        notifier: Completion notice sink, or None to skip notifications.
        trades_per_day: Average trades per simulated day.
        max_sample_trades: Upper bound on the trade sample in results.
        max_days: Longest window a request may ask for.
        notification_timeout: Seconds to wait on the notifier.
    """

    def __init__(
        self,
        resolver: ProfileResolver,
        notifier: Notifier | None = None,
        *,
        trades_per_day: int = AVG_TRADES_PER_DAY,
        max_sample_trades: int = MAX_SAMPLE_TRADES,
        max_days: int = MAX_BACKTEST_DAYS,
        notification_timeout: float | None = None,
    ) -> None:
        self.resolver = resolver
        self.notifier = notifier
        self.trades_per_day = trades_per_day
        self.max_sample_trades = max_sample_trades
        self.max_days = max_days
        self.notification_timeout = notification_timeout

    async def run(
        self,
        request: BacktestRequest,
        user_id: str,
        *,
        notify: bool = True,
    ) -> BacktestResult:
        """Run a complete backtest on behalf of ``user_id``.

        Args:
            request: Backtest parameters.
            user_id: Caller identity; receives the completion notice.
            notify: Deliver the completion notice before returning. Pass
                False when the caller schedules notify() itself.

        Raises:
            UnauthenticatedError: If no identity is supplied.
            InvalidRequestError: If the window is too long or the algorithm
                identifier is malformed.
            NotFoundError: If the algorithm is not in the registry.
            SimulationOverflowError: If compounding leaves the float range.
        """
        if not user_id:
            raise UnauthenticatedError("A caller identity is required to run a backtest")

        logger.info(
            "Running backtest",
            extra={
                "data": {
                    "algorithm_id": request.algorithm_id,
                    "start_date": str(request.start_date),
                    "end_date": str(request.end_date),
                    "seeded": request.seed is not None,
                }
            },
        )

        try:
            if request.days > self.max_days:
                raise InvalidRequestError(
                    f"Backtest window is {request.days} days; at most {self.max_days} allowed",
                    context={"days": request.days, "max_days": self.max_days},
                )
            profile = await self.resolver.get_profile(request.algorithm_id)

            start_time = time.monotonic()
            sim = simulate(request, profile, trades_per_day=self.trades_per_day)
            BACKTEST_DURATION_SECONDS.observe(time.monotonic() - start_time)
        except SimTraderError as exc:
            BACKTEST_RUNS_TOTAL.labels(outcome=exc.kind).inc()
            raise

        BACKTEST_TRADES_SIMULATED_TOTAL.inc(len(sim.trades))

        result = assemble_result(
            profile,
            request,
            sim.final_capital,
            sim.metrics,
            sim.trades,
            max_sample_trades=self.max_sample_trades,
        )
        BACKTEST_RUNS_TOTAL.labels(outcome="completed").inc()

        logger.info(
            "Backtest completed",
            extra={
                "data": {
                    "algorithm_id": result.algorithm_id,
                    "total_trades": result.total_trades,
                    "win_rate": result.win_rate,
                    "roi_percent": result.roi_percent,
                    "max_drawdown": result.max_drawdown,
                }
            },
        )

        if notify:
            await self.notify(user_id, result)
        return result

    async def notify(self, user_id: str, result: BacktestResult) -> bool:
        """Deliver the completion notice for ``result``; never raises."""
        return await dispatch_best_effort(
            self.notifier,
            build_completion_notice(user_id, result),
            timeout=self.notification_timeout,
        )
