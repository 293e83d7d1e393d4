from __future__ import annotations

from datetime import datetime  # noqa: TCH003
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, HTTPException, Query, status

from flavorwheel.core.schemas.usage import UsageStats
from flavorwheel.dependencies import get_usage_telemetry, require_admin

if TYPE_CHECKING:
    from flavorwheel.core.schemas.auth import AuthUser
    from flavorwheel.core.services.usage_service import UsageTelemetry

router = APIRouter()


@router.get("/usage-stats", response_model=UsageStats)
async def get_usage_stats(
    days: int = Query(default=30, ge=1, le=365),
    start: datetime | None = None,
    end: datetime | None = None,
    admin: AuthUser = Depends(require_admin),
    telemetry: UsageTelemetry = Depends(get_usage_telemetry),
):
    """Classifier usage and estimated cost.

    Defaults to the last ``days`` days; pass both ``start`` and ``end`` for an
    explicit window (end exclusive).
    """
    if (start is None) != (end is None):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="start and end must be given together")
    try:
        if start is not None and end is not None:
            return await telemetry.summarize(start, end)
        return await telemetry.summarize_recent(days)
    except ValueError as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err
