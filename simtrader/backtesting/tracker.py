"""In-memory capital tracker for backtest simulation.

Applies each trade draw's signed return to the running balance (returns
compound trade over trade), tracks the running peak, and records the
drawdown after every trade. Drawdown is path dependent, so draws must
be fed in generation order.

Usage:
    tracker = CapitalTracker(initial_capital=10_000)
    for draw in draws:
        trade = tracker.record(draw)
    tracker.capital, tracker.max_drawdown, tracker.trace
"""

from __future__ import annotations

import math

from simtrader.backtesting.generator import TradeDraw
from simtrader.backtesting.schemas import CapitalPoint, SimulatedTrade
from simtrader.common.exceptions import InvalidRequestError, SimulationOverflowError


class CapitalTracker:
    """Running capital, peak and drawdown over one simulation.

    Attributes:
        initial_capital: Starting balance.
        capital: Current balance.
    """

    def __init__(self, initial_capital: float) -> None:
        if initial_capital <= 0:
            raise InvalidRequestError(
                "initial_capital must be positive",
                context={"initial_capital": initial_capital},
            )
        self.initial_capital = initial_capital
        self.capital = initial_capital

        self._peak = initial_capital
        self._max_drawdown = 0.0
        self._total_profit = 0.0
        self._winning_trades = 0
        self._losing_trades = 0
        self._trades: list[SimulatedTrade] = []
        self._trace: list[CapitalPoint] = []

    @property
    def peak(self) -> float:
        """Highest balance seen so far."""
        return self._peak

    @property
    def max_drawdown(self) -> float:
        """Largest drawdown fraction recorded so far."""
        return self._max_drawdown

    @property
    def total_profit(self) -> float:
        return self._total_profit

    @property
    def winning_trades(self) -> int:
        return self._winning_trades

    @property
    def losing_trades(self) -> int:
        return self._losing_trades

    @property
    def trades(self) -> list[SimulatedTrade]:
        """Every trade recorded, in order."""
        return list(self._trades)

    @property
    def trace(self) -> list[CapitalPoint]:
        """One CapitalPoint per trade, in order."""
        return list(self._trace)

    def record(self, draw: TradeDraw) -> SimulatedTrade:
        """Apply one draw to the balance and return the resulting trade.

        Args:
            draw: Next trade draw from the generator.

        Returns:
            The SimulatedTrade with its profit and post-trade balance.

        Raises:
            SimulationOverflowError: If the new balance would be non-finite
                or not positive. The tracker is left unchanged.
        """
        expected = len(self._trades) + 1
        if draw.trade_number != expected:
            msg = f"Trade {draw.trade_number} recorded out of order (expected {expected})"
            raise ValueError(msg)

        profit = self.capital * draw.return_fraction
        capital_after = self.capital + profit
        if not (math.isfinite(capital_after) and capital_after > 0):
            raise SimulationOverflowError(
                "Capital left the finite positive range; shorten the window or lower the return",
                context={
                    "trade_number": draw.trade_number,
                    "capital": self.capital,
                    "return_fraction": draw.return_fraction,
                },
            )
        self.capital = capital_after
        self._total_profit += profit

        if draw.won:
            self._winning_trades += 1
        else:
            self._losing_trades += 1

        if self.capital > self._peak:
            self._peak = self.capital
        drawdown = (self._peak - self.capital) / self._peak if self._peak > 0 else 0.0
        drawdown = min(max(drawdown, 0.0), 1.0)
        self._max_drawdown = max(self._max_drawdown, drawdown)

        trade = SimulatedTrade(
            trade_number=draw.trade_number,
            date=draw.timestamp,
            pair=draw.pair,
            action="buy" if draw.won else "sell",
            won=draw.won,
            profit=profit,
            capital_after=self.capital,
        )
        self._trades.append(trade)
        self._trace.append(
            CapitalPoint(
                trade_number=draw.trade_number,
                capital=self.capital,
                peak=self._peak,
                drawdown=drawdown,
            )
        )
        return trade
