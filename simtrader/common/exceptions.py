"""Custom exceptions for SimTrader.

All modules should raise these exceptions instead of generic ones.
Each class carries a machine-readable ``kind``; the FastAPI exception
handlers in main.py turn them into structured JSON error responses.
"""

from __future__ import annotations


class SimTraderError(Exception):
    """Base exception for all SimTrader errors.

    Args:
        message: Human-readable error description.
        context: Optional dict of structured data for logging/debugging.
    """

    kind: str = "error"

    def __init__(self, message: str, context: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            # Filter out anything that looks like a secret
            safe_context = {
                k: "[REDACTED]" if _is_secret_key(k) else v for k, v in self.context.items()
            }
            return f"{super().__str__()} | context={safe_context}"
        return super().__str__()


class UnauthenticatedError(SimTraderError):
    """Caller credential is missing, malformed, tampered with, or expired."""

    kind = "unauthenticated"


class InvalidRequestError(SimTraderError):
    """Request is missing a field, has non-positive capital, or a bad date range."""

    kind = "invalid_request"


class NotFoundError(SimTraderError):
    """The requested algorithm does not exist in the registry."""

    kind = "not_found"


class SimulationOverflowError(SimTraderError):
    """Compounded capital left the finite, positive range during a run."""

    kind = "simulation_overflow"


class DegenerateMetricError(SimTraderError):
    """A derived statistic is mathematically undefined for this run."""

    kind = "degenerate_metric"


class NotificationDispatchError(SimTraderError):
    """Best-effort completion notification could not be delivered."""

    kind = "notification_dispatch_failed"


def _is_secret_key(key: str) -> bool:
    """Check if a dict key name suggests it contains secret data."""
    secret_words = {"key", "secret", "password", "token", "private", "pem", "credential"}
    key_lower = key.lower()
    return any(word in key_lower for word in secret_words)
