"""Algorithm profile resolvers.

The registry itself belongs to the wider platform; the engine only needs
a read-only lookup by identifier. Two resolvers are provided:

- StaticProfileResolver: in-memory mapping (tests, local runs)
- DatabaseProfileResolver: reads the ``algorithms`` table via SQLAlchemy

Usage:
    resolver = DatabaseProfileResolver(db)
    profile = await resolver.get_profile("momentum-v2")
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from simtrader.backtesting.schemas import AlgorithmProfile
from simtrader.common.exceptions import InvalidRequestError, NotFoundError
from simtrader.common.logging import get_logger
from simtrader.common.models import AlgorithmModel

logger = get_logger("REGISTRY")

# Registry rows may leave the baseline statistics empty
DEFAULT_WIN_RATE = 0.6
DEFAULT_ROI = 0.05

# Lowest base return a profile may carry
MIN_ROI = -0.99

MAX_ALGORITHM_ID_LENGTH = 128
_ALGORITHM_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.:-]+$")


class ProfileResolver(Protocol):
    """Anything that can turn an algorithm identifier into a profile."""

    async def get_profile(self, algorithm_id: str) -> AlgorithmProfile: ...


def validate_algorithm_id(algorithm_id: str | None) -> str:
    """Check an identifier is well-formed before it reaches the registry.

    Args:
        algorithm_id: Raw identifier from the caller.

    Returns:
        The identifier with surrounding whitespace removed.

    Raises:
        InvalidRequestError: If empty, too long, or has unexpected characters.
    """
    cleaned = (algorithm_id or "").strip()
    if not cleaned:
        raise InvalidRequestError("algorithm_id is required")
    if len(cleaned) > MAX_ALGORITHM_ID_LENGTH:
        raise InvalidRequestError(
            f"algorithm_id must be at most {MAX_ALGORITHM_ID_LENGTH} characters",
            context={"length": len(cleaned)},
        )
    if not _ALGORITHM_ID_PATTERN.match(cleaned):
        raise InvalidRequestError(
            "algorithm_id contains invalid characters",
            context={"algorithm_id": cleaned[:32]},
        )
    return cleaned


def _finite_or_default(model: AlgorithmModel, column: str, default: float) -> float:
    value = getattr(model, column)
    if value is None:
        return default
    if not math.isfinite(value):
        logger.warning(
            f"Registry {column} is not finite, using default",
            extra={"data": {"algorithm_id": model.id, column: str(value), "used": default}},
        )
        return default
    return value


def algorithm_to_profile(model: AlgorithmModel) -> AlgorithmProfile:
    """Convert an AlgorithmModel row into an AlgorithmProfile snapshot.

    Missing or non-finite win rate / ROI fall back to DEFAULT_WIN_RATE /
    DEFAULT_ROI. A win rate outside [0, 1] and an ROI below MIN_ROI are
    clamped and logged.
    """
    win_rate = _finite_or_default(model, "win_rate", DEFAULT_WIN_RATE)
    roi = _finite_or_default(model, "roi", DEFAULT_ROI)

    if roi < MIN_ROI:
        logger.warning(
            "Registry ROI below floor, clamping",
            extra={"data": {"algorithm_id": model.id, "roi": roi, "used": MIN_ROI}},
        )
        roi = MIN_ROI

    if not 0.0 <= win_rate <= 1.0:
        clamped = min(max(win_rate, 0.0), 1.0)
        logger.warning(
            "Registry win rate out of range, clamping",
            extra={"data": {"algorithm_id": model.id, "win_rate": win_rate, "used": clamped}},
        )
        win_rate = clamped

    return AlgorithmProfile(
        algorithm_id=model.id,
        name=model.name,
        win_rate=win_rate,
        roi=roi,
        risk_level=model.risk_level,
    )


class StaticProfileResolver:
    """Resolve profiles from an in-memory collection."""

    def __init__(self, profiles: Iterable[AlgorithmProfile] = ()) -> None:
        self._profiles = {p.algorithm_id: p for p in profiles}

    async def get_profile(self, algorithm_id: str) -> AlgorithmProfile:
        algorithm_id = validate_algorithm_id(algorithm_id)
        profile = self._profiles.get(algorithm_id)
        if profile is None:
            raise NotFoundError("Algorithm not found", context={"algorithm_id": algorithm_id})
        return profile

    async def list_profiles(self) -> list[AlgorithmProfile]:
        return sorted(self._profiles.values(), key=lambda p: p.name)


class DatabaseProfileResolver:
    """Resolve profiles from the ``algorithms`` table.

    Args:
        db: Async session; the resolver never writes or commits.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_profile(self, algorithm_id: str) -> AlgorithmProfile:
        algorithm_id = validate_algorithm_id(algorithm_id)
        result = await self.db.execute(
            select(AlgorithmModel).where(AlgorithmModel.id == algorithm_id)
        )
        model = result.scalar_one_or_none()
        if model is None:
            logger.info(
                "Algorithm lookup missed",
                extra={"data": {"algorithm_id": algorithm_id}},
            )
            raise NotFoundError("Algorithm not found", context={"algorithm_id": algorithm_id})
        return algorithm_to_profile(model)

    async def list_profiles(self) -> list[AlgorithmProfile]:
        """All registry profiles ordered by name."""
        result = await self.db.execute(select(AlgorithmModel).order_by(AlgorithmModel.name))
        return [algorithm_to_profile(m) for m in result.scalars().all()]
