"""FastAPI dependencies: caller identity and a wired backtest engine."""

from __future__ import annotations

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from simtrader.backtesting.engine import BacktestEngine
from simtrader.backtesting.notifications import DatabaseNotifier, Notifier
from simtrader.backtesting.registry import DatabaseProfileResolver
from simtrader.common.config import get_settings
from simtrader.common.database import get_db, get_session_factory
from simtrader.common.exceptions import UnauthenticatedError
from simtrader.common.logging import get_logger
from simtrader.common.tokens import verify_access_token

logger = get_logger("AUTH")


async def get_current_user(authorization: str | None = Header(default=None)) -> str:
    """Return the user id carried by the request's bearer token.

    Args:
        authorization: Raw ``Authorization`` header value.

    Returns:
        The authenticated user id.

    Raises:
        UnauthenticatedError: If the header is missing, not a bearer
            credential, or the token does not verify (handled as 401).
    """
    if not authorization:
        raise UnauthenticatedError("Missing authorization header")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthenticatedError("Authorization header must be a bearer token")

    try:
        return verify_access_token(token.strip())
    except UnauthenticatedError:
        logger.warning("Rejected access token", extra={"data": {"scheme": scheme}})
        raise


def get_profile_resolver(db: AsyncSession = Depends(get_db)) -> DatabaseProfileResolver:
    """Registry lookup bound to the request's session."""
    return DatabaseProfileResolver(db)


def get_notifier() -> Notifier:
    """Notification sink with its own sessions; usable after the response."""
    return DatabaseNotifier(get_session_factory())


def get_backtest_engine(
    resolver: DatabaseProfileResolver = Depends(get_profile_resolver),
    notifier: Notifier = Depends(get_notifier),
) -> BacktestEngine:
    """Engine wired to the database registry and notification table."""
    settings = get_settings()
    return BacktestEngine(
        resolver=resolver,
        notifier=notifier,
        trades_per_day=settings.backtest_trades_per_day,
        max_sample_trades=settings.backtest_max_sample_trades,
        max_days=settings.backtest_max_days,
        notification_timeout=settings.notification_timeout_seconds,
    )
