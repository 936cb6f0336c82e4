"""Pydantic schemas for backtest requests, trades and results.

Monetary values are plain floats in capital units. Percentage-style
fields on BacktestResult are rendered to two decimals; the unrounded
figures live on BacktestMetrics.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from simtrader.common.exceptions import InvalidRequestError

DEFAULT_TRADING_PAIRS: tuple[str, ...] = ("BTC", "ETH")

TradeAction = Literal["buy", "sell"]

# ─── Request ───


class BacktestRequest(BaseModel):
    """One backtest invocation. Accepts wire (camelCase) or snake_case names."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    algorithm_id: str = Field(alias="algorithmId", min_length=1)
    start_date: date = Field(alias="startDate")
    end_date: date = Field(alias="endDate")
    initial_capital: float = Field(alias="initialCapital", gt=0, allow_inf_nan=False)
    trading_pairs: tuple[str, ...] = Field(default=DEFAULT_TRADING_PAIRS, alias="tradingPairs")
    seed: int | None = None

    @field_validator("algorithm_id")
    @classmethod
    def strip_algorithm_id(cls, v: str) -> str:
        """Reject identifiers that are blank once whitespace is removed."""
        v = v.strip()
        if not v:
            msg = "algorithm_id must not be blank"
            raise ValueError(msg)
        return v

    @field_validator("trading_pairs", mode="before")
    @classmethod
    def normalize_pairs(cls, v: Any) -> tuple[str, ...]:
        """Drop blanks and duplicates (first occurrence wins); empty → defaults."""
        if v is None:
            return DEFAULT_TRADING_PAIRS
        if isinstance(v, str):
            v = [v]
        pairs: list[str] = []
        for symbol in v:
            symbol = str(symbol).strip()
            if symbol and symbol not in pairs:
                pairs.append(symbol)
        return tuple(pairs) if pairs else DEFAULT_TRADING_PAIRS

    @model_validator(mode="after")
    def validate_date_range(self) -> BacktestRequest:
        """Ensure end_date >= start_date."""
        if self.end_date < self.start_date:
            msg = f"end_date ({self.end_date}) must be >= start_date ({self.start_date})"
            raise ValueError(msg)
        return self

    @property
    def days(self) -> int:
        """Whole days between start and end."""
        return (self.end_date - self.start_date).days


def parse_backtest_request(payload: Mapping[str, Any]) -> BacktestRequest:
    """Build a BacktestRequest from a raw mapping.

    Raises:
        InvalidRequestError: If any field is missing or violates a constraint.
    """
    try:
        return BacktestRequest.model_validate(dict(payload))
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'request'}: {err['msg']}"
            for err in exc.errors()
        )
        raise InvalidRequestError(
            f"Invalid backtest request: {problems}",
            context={"error_count": exc.error_count()},
        ) from exc


# ─── Algorithm Profile ───


class AlgorithmProfile(BaseModel):
    """Read-only snapshot of a strategy's baseline statistics."""

    model_config = ConfigDict(frozen=True)

    algorithm_id: str
    name: str
    win_rate: float = Field(ge=0.0, le=1.0)
    # A winning trade returns at least this fraction; -1 would wipe out capital
    roi: float = Field(gt=-1.0, allow_inf_nan=False)
    risk_level: int | None = None


# ─── Simulated Trade ───


class SimulatedTrade(BaseModel):
    """A single synthetic trade."""

    model_config = ConfigDict(frozen=True)

    trade_number: int = Field(ge=1)
    date: datetime
    pair: str
    action: TradeAction
    won: bool
    profit: float
    capital_after: float


# ─── Capital Trace ───


@dataclass(frozen=True, slots=True)
class CapitalPoint:
    """Capital state immediately after one trade."""

    trade_number: int
    capital: float
    peak: float
    drawdown: float


# ─── Metrics ───


class BacktestMetrics(BaseModel):
    """Full-precision summary statistics for one run."""

    model_config = ConfigDict(frozen=True)

    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    total_profit: float = 0.0
    roi: float = 0.0
    win_rate: float = 0.0
    avg_profit_per_trade: float = 0.0
    max_drawdown: float = 0.0
    sharpe_ratio: float = 0.0
    degenerate_metrics: tuple[str, ...] = ()


# ─── Result ───


class BacktestPeriod(BaseModel):
    """Simulated window."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date
    days: int


class BacktestResult(BaseModel):
    """Complete result of a backtest run, as returned to the caller."""

    model_config = ConfigDict(frozen=True)

    algorithm_id: str
    algorithm_name: str
    period: BacktestPeriod
    initial_capital: float
    final_capital: float
    total_return: float
    roi_percent: float
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    avg_profit_per_trade: float
    max_drawdown: float
    sharpe_ratio: float
    sample_trades: list[SimulatedTrade] = []
    # Unrounded figures for in-process callers; never serialized
    metrics: BacktestMetrics | None = Field(default=None, exclude=True)
