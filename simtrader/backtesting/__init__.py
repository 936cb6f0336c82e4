"""Backtesting module — synthetic simulation of trading strategy profiles.

Generates a stochastic trade sequence from a strategy's baseline win rate
and return, tracks capital and drawdown along the path, and reports ROI,
win rate, drawdown and Sharpe ratio without any real market data.
"""

from __future__ import annotations
