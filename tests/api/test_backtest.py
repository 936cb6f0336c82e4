"""Tests for POST /api/backtest."""

from __future__ import annotations

import math

import pytest
from sqlalchemy import select

from simtrader.common.models import AlgorithmModel, NotificationModel

pytestmark = pytest.mark.asyncio


class TestRunBacktest:
    """Tests for the backtest endpoint."""

    async def test_runs_backtest(self, client, auth_headers, backtest_payload):
        response = await client.post("/api/backtest", json=backtest_payload, headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["algorithm_id"] == "momentum-alpha"
        assert data["algorithm_name"] == "Momentum Alpha"
        assert data["period"] == {"start": "2024-01-01", "end": "2024-01-11", "days": 10}
        assert data["initial_capital"] == 10000
        assert data["total_trades"] == 30
        assert data["winning_trades"] + data["losing_trades"] == 30
        assert len(data["sample_trades"]) == 10
        assert "metrics" not in data

    async def test_result_fields(self, client, auth_headers, backtest_payload):
        response = await client.post("/api/backtest", json=backtest_payload, headers=auth_headers)
        data = response.json()

        for key in (
            "final_capital",
            "total_return",
            "roi_percent",
            "win_rate",
            "avg_profit_per_trade",
            "max_drawdown",
            "sharpe_ratio",
        ):
            assert isinstance(data[key], int | float), key

        trade = data["sample_trades"][0]
        assert trade["trade_number"] == 1
        assert trade["pair"] in {"BTC", "ETH"}
        assert trade["action"] in {"buy", "sell"}
        assert trade["date"].startswith("2024-01-01T00:00:00")

    async def test_seeded_request_is_reproducible(self, client, auth_headers, backtest_payload):
        first = await client.post("/api/backtest", json=backtest_payload, headers=auth_headers)
        second = await client.post("/api/backtest", json=backtest_payload, headers=auth_headers)
        assert first.json() == second.json()

    async def test_custom_trading_pairs(self, client, auth_headers, backtest_payload):
        backtest_payload["tradingPairs"] = ["SOL"]
        response = await client.post("/api/backtest", json=backtest_payload, headers=auth_headers)
        assert {t["pair"] for t in response.json()["sample_trades"]} == {"SOL"}

    async def test_same_day_window(self, client, auth_headers, backtest_payload):
        backtest_payload["endDate"] = "2024-01-01"
        response = await client.post("/api/backtest", json=backtest_payload, headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total_trades"] == 0
        assert data["sample_trades"] == []
        assert data["final_capital"] == 10000
        assert data["sharpe_ratio"] == 0.0

    async def test_registry_defaults_applied(self, client, auth_headers, backtest_payload):
        backtest_payload["algorithmId"] = "mean-revert"
        response = await client.post("/api/backtest", json=backtest_payload, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["algorithm_name"] == "Mean Reversion"

    async def test_writes_completion_notification(
        self, client, seeded_db, auth_headers, backtest_payload
    ):
        response = await client.post("/api/backtest", json=backtest_payload, headers=auth_headers)
        data = response.json()

        rows = (await seeded_db.execute(select(NotificationModel))).scalars().all()
        assert len(rows) == 1
        assert rows[0].user_id == "test-user-001"
        assert rows[0].title == "Backtest Completed"
        assert rows[0].message == (
            f"Momentum Alpha backtest finished. "
            f"ROI: {data['roi_percent']:.2f}%, Win Rate: {data['win_rate']:.2f}%"
        )
        assert rows[0].extra_data == {"algorithm_id": "momentum-alpha"}


class TestBacktestErrors:
    """Error mapping for the backtest endpoint."""

    async def test_missing_auth_returns_401(self, client, backtest_payload):
        response = await client.post("/api/backtest", json=backtest_payload)
        assert response.status_code == 401
        assert response.json()["kind"] == "unauthenticated"

    async def test_bad_token_returns_401(self, client, backtest_payload):
        response = await client.post(
            "/api/backtest",
            json=backtest_payload,
            headers={"Authorization": "Bearer not-a-real-token"},
        )
        assert response.status_code == 401

    async def test_non_bearer_scheme_returns_401(self, client, backtest_payload):
        response = await client.post(
            "/api/backtest",
            json=backtest_payload,
            headers={"Authorization": "Basic dXNlcjpwYXNz"},
        )
        assert response.status_code == 401

    async def test_unknown_algorithm_returns_404(
        self, client, seeded_db, auth_headers, backtest_payload
    ):
        backtest_payload["algorithmId"] = "does-not-exist"
        response = await client.post("/api/backtest", json=backtest_payload, headers=auth_headers)

        assert response.status_code == 404
        body = response.json()
        assert body["kind"] == "not_found"
        assert body["message"] == "Algorithm not found"

        rows = (await seeded_db.execute(select(NotificationModel))).scalars().all()
        assert rows == []

    async def test_zero_capital_returns_422(self, client, auth_headers, backtest_payload):
        backtest_payload["initialCapital"] = 0
        response = await client.post("/api/backtest", json=backtest_payload, headers=auth_headers)

        assert response.status_code == 422
        body = response.json()
        assert body["kind"] == "invalid_request"
        assert "initialCapital" in body["message"]

    async def test_reversed_dates_returns_422(self, client, auth_headers, backtest_payload):
        backtest_payload["startDate"] = "2024-02-01"
        response = await client.post("/api/backtest", json=backtest_payload, headers=auth_headers)
        assert response.status_code == 422
        assert response.json()["kind"] == "invalid_request"

    async def test_missing_field_returns_422(self, client, auth_headers, backtest_payload):
        del backtest_payload["algorithmId"]
        response = await client.post("/api/backtest", json=backtest_payload, headers=auth_headers)
        assert response.status_code == 422

    async def test_malformed_algorithm_id_returns_422(
        self, client, auth_headers, backtest_payload
    ):
        backtest_payload["algorithmId"] = "bad id!"
        response = await client.post("/api/backtest", json=backtest_payload, headers=auth_headers)
        assert response.status_code == 422
        assert response.json()["message"] == "algorithm_id contains invalid characters"


class TestBacktestBounds:
    """Runs that would leave the finite range are rejected, never serialized."""

    async def test_window_longer_than_limit_returns_422(
        self, client, seeded_db, auth_headers, backtest_payload
    ):
        backtest_payload["startDate"] = "2000-01-01"
        backtest_payload["endDate"] = "2024-01-01"
        response = await client.post("/api/backtest", json=backtest_payload, headers=auth_headers)

        assert response.status_code == 422
        body = response.json()
        assert body["kind"] == "invalid_request"
        assert "at most 3660" in body["message"]

        rows = (await seeded_db.execute(select(NotificationModel))).scalars().all()
        assert rows == []

    async def test_longest_allowed_window_is_finite(self, client, auth_headers, backtest_payload):
        backtest_payload["startDate"] = "2014-01-01"
        backtest_payload["endDate"] = "2024-01-06"
        response = await client.post("/api/backtest", json=backtest_payload, headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["period"]["days"] == 3657
        for key in ("final_capital", "total_return", "roi_percent", "sharpe_ratio"):
            assert isinstance(data[key], float), key
            assert math.isfinite(data[key]), key

    async def test_overflowing_profile_returns_422(
        self, client, seeded_db, auth_headers, backtest_payload
    ):
        seeded_db.add(AlgorithmModel(id="rocket", name="Rocket", win_rate=1.0, roi=5.0))
        await seeded_db.commit()

        backtest_payload["algorithmId"] = "rocket"
        backtest_payload["endDate"] = "2024-12-31"
        response = await client.post("/api/backtest", json=backtest_payload, headers=auth_headers)

        assert response.status_code == 422
        assert response.json()["kind"] == "simulation_overflow"
        assert "nan" not in response.text.lower()
