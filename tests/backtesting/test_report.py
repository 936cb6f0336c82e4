"""Tests for report assembly — rounding, trade sampling, completion notice."""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from simtrader.backtesting.report import (
    MAX_SAMPLE_TRADES,
    assemble_result,
    build_completion_notice,
    sample_trades,
)
from simtrader.backtesting.schemas import BacktestMetrics, SimulatedTrade


def _trades(n: int) -> list[SimulatedTrade]:
    return [
        SimulatedTrade(
            trade_number=i,
            date=datetime(2024, 1, 1, tzinfo=UTC),
            pair="BTC",
            action="buy",
            won=True,
            profit=1.0,
            capital_after=100.0 + i,
        )
        for i in range(1, n + 1)
    ]


class TestSampleTrades:
    """Tests for sample_trades()."""

    def test_short_sequence_returned_whole(self):
        trades = _trades(4)
        assert sample_trades(trades) == trades

    def test_exactly_limit(self):
        trades = _trades(MAX_SAMPLE_TRADES)
        assert sample_trades(trades) == trades

    def test_long_sequence_capped(self):
        sample = sample_trades(_trades(30))
        assert len(sample) == MAX_SAMPLE_TRADES

    def test_sample_spans_whole_run(self):
        sample = sample_trades(_trades(30))
        numbers = [t.trade_number for t in sample]
        assert numbers[0] == 1
        assert numbers[-1] == 30
        assert numbers == sorted(set(numbers))

    def test_custom_limit(self):
        assert [t.trade_number for t in sample_trades(_trades(5), limit=2)] == [1, 5]

    def test_zero_limit(self):
        assert sample_trades(_trades(5), limit=0) == []

    def test_empty(self):
        assert sample_trades([]) == []


class TestAssembleResult:
    """Tests for assemble_result()."""

    def _metrics(self) -> BacktestMetrics:
        return BacktestMetrics(
            total_trades=30,
            winning_trades=18,
            losing_trades=12,
            total_profit=1234.5678,
            roi=0.1234567,
            win_rate=0.6,
            avg_profit_per_trade=41.152259,
            max_drawdown=0.045678,
            sharpe_ratio=9.16999,
        )

    def test_rounding_and_units(self, sample_profile, ten_day_request):
        result = assemble_result(
            sample_profile, ten_day_request, 11_234.5678, self._metrics(), _trades(30)
        )
        assert result.algorithm_id == "momentum-alpha"
        assert result.algorithm_name == "Momentum Alpha"
        assert result.period.start == date(2024, 1, 1)
        assert result.period.end == date(2024, 1, 11)
        assert result.period.days == 10
        assert result.initial_capital == 10_000
        assert result.total_return == pytest.approx(1_234.5678)
        assert result.roi_percent == 12.35
        assert result.win_rate == 60.0
        assert result.avg_profit_per_trade == 41.15
        assert result.max_drawdown == 4.57
        assert result.sharpe_ratio == 9.17
        assert len(result.sample_trades) == 10

    def test_keeps_unrounded_metrics(self, sample_profile, ten_day_request):
        metrics = self._metrics()
        result = assemble_result(sample_profile, ten_day_request, 11_234.5678, metrics, [])
        assert result.metrics == metrics

    def test_custom_sample_size(self, sample_profile, ten_day_request):
        result = assemble_result(
            sample_profile,
            ten_day_request,
            11_234.5678,
            self._metrics(),
            _trades(30),
            max_sample_trades=3,
        )
        assert [t.trade_number for t in result.sample_trades] == [1, 15, 30]


class TestBuildCompletionNotice:
    """Tests for build_completion_notice()."""

    def test_notice_contents(self, sample_profile, ten_day_request):
        result = assemble_result(
            sample_profile,
            ten_day_request,
            10_850.0,
            BacktestMetrics(roi=0.085, win_rate=0.6),
            [],
        )
        notice = build_completion_notice("user-123", result)

        assert notice.user_id == "user-123"
        assert notice.title == "Backtest Completed"
        assert notice.message == "Momentum Alpha backtest finished. ROI: 8.50%, Win Rate: 60.00%"
        assert notice.type == "system"
        assert notice.metadata == {"algorithm_id": "momentum-alpha"}
