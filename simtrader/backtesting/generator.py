"""Synthetic trade generator.

Draws one independent win/loss outcome per trade under the strategy's
baseline win probability, spaced evenly across the requested window.
Draws carry a return *fraction*; turning that into money against the
running balance is the capital tracker's job.

Usage:
    from simtrader.backtesting.generator import generate_trade_draws

    rng = random.Random(42)
    for draw in generate_trade_draws(start, end, 0.6, 0.05, ("BTC", "ETH"), rng):
        ...
"""

from __future__ import annotations

import random
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, time

from simtrader.backtesting.schemas import DEFAULT_TRADING_PAIRS

AVG_TRADES_PER_DAY = 3

# A win returns the baseline rate plus up to this much on top
WIN_RETURN_SPREAD = 0.05

# A loss gives back at most this fraction of current capital
MAX_LOSS_FRACTION = 0.03


@dataclass(frozen=True, slots=True)
class TradeDraw:
    """Random outcome for one trade, before it is applied to capital."""

    trade_number: int
    timestamp: datetime
    pair: str
    won: bool
    return_fraction: float


def total_trades_for(start_date: date, end_date: date, trades_per_day: int = AVG_TRADES_PER_DAY) -> int:
    """Number of trades a window produces: whole days times trades per day."""
    days = (end_date - start_date).days
    return max(days, 0) * trades_per_day


def generate_trade_draws(
    start_date: date,
    end_date: date,
    win_rate: float,
    base_return: float,
    trading_pairs: Sequence[str],
    rng: random.Random,
    trades_per_day: int = AVG_TRADES_PER_DAY,
) -> Iterator[TradeDraw]:
    """Yield synthetic trade draws for the window, in order.

    For each trade the RNG is consumed in a fixed order (outcome, return
    size, pair) so a seeded ``rng`` always produces the same sequence.

    Args:
        start_date: First day of the window.
        end_date: Last day of the window (>= start_date).
        win_rate: Probability that a trade wins, in [0, 1].
        base_return: Minimum return fraction of a winning trade.
        trading_pairs: Symbols to pick from uniformly. Empty → defaults.
        rng: Request-local random source.
        trades_per_day: Average trades per simulated day.

    Yields:
        TradeDraw objects, numbered from 1.
    """
    total = total_trades_for(start_date, end_date, trades_per_day)
    if total == 0:
        return

    pairs = tuple(trading_pairs) or DEFAULT_TRADING_PAIRS
    start_ts = datetime.combine(start_date, time.min, tzinfo=UTC)
    span = datetime.combine(end_date, time.min, tzinfo=UTC) - start_ts

    for index in range(total):
        won = rng.random() < win_rate
        if won:
            fraction = rng.uniform(base_return, base_return + WIN_RETURN_SPREAD)
        else:
            fraction = -rng.uniform(0.0, MAX_LOSS_FRACTION)
        pair = rng.choice(pairs)

        yield TradeDraw(
            trade_number=index + 1,
            timestamp=start_ts + span * (index / total),
            pair=pair,
            won=won,
            return_fraction=fraction,
        )
