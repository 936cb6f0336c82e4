"""Prometheus metrics definitions for SimTrader.

All metric objects are centralized here as module-level singletons.
Import what you need from anywhere in the codebase:

    from simtrader.common.metrics import BACKTEST_RUNS_TOTAL

The /metrics endpoint is mounted in simtrader/main.py via
prometheus_client.make_asgi_app().
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Info

# ─── App Info ───

APP_INFO = Info("app", "Application metadata")

# ─── HTTP Metrics ───

HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "path_template", "status_code"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    labelnames=["method", "path_template"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "HTTP requests currently in progress",
    labelnames=["method"],
)

# ─── Business Metrics: Backtesting ───

BACKTEST_RUNS_TOTAL = Counter(
    "backtest_runs_total",
    "Backtest runs by outcome",
    labelnames=["outcome"],
)

BACKTEST_DURATION_SECONDS = Histogram(
    "backtest_duration_seconds",
    "Wall-clock duration of the simulation core",
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

BACKTEST_TRADES_SIMULATED_TOTAL = Counter(
    "backtest_trades_simulated_total",
    "Synthetic trades generated across all backtests",
)

BACKTEST_DEGENERATE_METRICS_TOTAL = Counter(
    "backtest_degenerate_metrics_total",
    "Statistics reported as a sentinel because they were undefined",
    labelnames=["metric"],
)

BACKTEST_NOTIFICATIONS_TOTAL = Counter(
    "backtest_notifications_total",
    "Completion notification dispatch outcomes",
    labelnames=["outcome"],
)


def set_app_info(version: str, environment: str) -> None:
    """Set the app_info metric values. Called once at startup."""
    APP_INFO.info({"version": version, "environment": environment})
