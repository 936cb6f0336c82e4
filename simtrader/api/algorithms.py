"""Algorithm registry listing — the strategies a backtest can target.

GET /api/algorithms — returns every registry profile, ordered by name.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from simtrader.api.deps import get_current_user, get_profile_resolver
from simtrader.backtesting.registry import DatabaseProfileResolver
from simtrader.backtesting.schemas import AlgorithmProfile

router = APIRouter()


@router.get("", response_model=list[AlgorithmProfile])
async def list_algorithms(
    resolver: DatabaseProfileResolver = Depends(get_profile_resolver),
    _user: str = Depends(get_current_user),
) -> list[AlgorithmProfile]:
    """List the profiles available for backtesting."""
    return await resolver.list_profiles()
