"""Completion notification delivery.

Notifications are best-effort: a failure is logged and counted but never
fails the backtest that produced it, and is not retried.

Usage:
    from simtrader.backtesting.notifications import DatabaseNotifier, dispatch_best_effort

    notifier = DatabaseNotifier(session_factory)
    delivered = await dispatch_best_effort(notifier, notice, timeout=5.0)
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from simtrader.backtesting.report import CompletionNotice
from simtrader.common.exceptions import NotificationDispatchError
from simtrader.common.logging import get_logger
from simtrader.common.metrics import BACKTEST_NOTIFICATIONS_TOTAL
from simtrader.common.models import NotificationModel

logger = get_logger("NOTIFY")

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class Notifier(Protocol):
    """Sink for completion notices."""

    async def send(self, notice: CompletionNotice) -> None: ...


class DatabaseNotifier:
    """Insert notices into the ``notifications`` table.

    Each send() opens its own session, so a notice can be delivered after
    the request that produced it has finished.

    Args:
        session_factory: Callable returning an async session context,
            e.g. an ``async_sessionmaker``.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self.session_factory = session_factory

    async def send(self, notice: CompletionNotice) -> None:
        async with self.session_factory() as session:
            session.add(
                NotificationModel(
                    user_id=notice.user_id,
                    title=notice.title,
                    message=notice.message,
                    type=notice.type,
                    extra_data=notice.metadata,
                )
            )
            try:
                await session.commit()
            except Exception:
                await session.rollback()
                raise


async def dispatch_best_effort(
    notifier: Notifier | None,
    notice: CompletionNotice,
    timeout: float | None = None,
) -> bool:
    """Send a notice, swallowing and logging any failure.

    Args:
        notifier: Destination sink. ``None`` skips delivery.
        notice: The notice to send.
        timeout: Seconds to wait for the sink before giving up.

    Returns:
        True if the sink accepted the notice, False otherwise.
    """
    if notifier is None:
        BACKTEST_NOTIFICATIONS_TOTAL.labels(outcome="skipped").inc()
        return False

    try:
        await asyncio.wait_for(notifier.send(notice), timeout=timeout)
    except Exception as exc:
        error = NotificationDispatchError(
            "Completion notification dispatch failed",
            context={
                "user_id": notice.user_id,
                "title": notice.title,
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )
        logger.error(error.message, extra={"data": {"kind": error.kind, **error.context}})
        BACKTEST_NOTIFICATIONS_TOTAL.labels(outcome="failed").inc()
        return False

    logger.info(
        "Completion notification sent",
        extra={"data": {"user_id": notice.user_id, "title": notice.title}},
    )
    BACKTEST_NOTIFICATIONS_TOTAL.labels(outcome="sent").inc()
    return True
