from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from pydantic import ValidationError

from flavorwheel.api.v1.schemas.wheels import WheelRequest
from flavorwheel.background import refresh_stale_wheel
from flavorwheel.core.models.wheel import ScopeType, WheelScope
from flavorwheel.core.schemas.wheel import WheelResult
from flavorwheel.dependencies import get_current_user, get_services

if TYPE_CHECKING:
    from flavorwheel.core.container import PipelineServices
    from flavorwheel.core.schemas.auth import AuthUser

router = APIRouter()


@router.post("/generate", response_model=WheelResult)
async def generate_wheel(
    payload: WheelRequest,
    background_tasks: BackgroundTasks,
    current_user: AuthUser = Depends(get_current_user),
    services: PipelineServices = Depends(get_services),
):
    """Return the wheel for a scope, serving the cached copy when there is one.

    A cached wheel that predates newer descriptors is returned with
    ``stale = true`` and rebuilt in the background.
    """
    if payload.scope_type is ScopeType.TEAM:
        if payload.team_id is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="team_id is required for team scope")
        teams = await services.descriptor_repo.list_team_ids_for_user(current_user.id)
        if payload.team_id not in teams:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a member of this team")

    try:
        scope = WheelScope(
            scope_type=payload.scope_type,
            # Personal wheels are always the caller's own
            user_id=current_user.id if payload.scope_type is ScopeType.PERSONAL else None,
            team_id=payload.team_id if payload.scope_type is ScopeType.TEAM else None,
            tasting_ids=payload.tasting_ids if payload.scope_type is ScopeType.COMPARATIVE else [],
            window_start=payload.window_start,
            window_end=payload.window_end,
        )
    except ValidationError as err:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=err.errors()[0]["msg"],
        ) from err

    result = await services.wheels.get_or_generate_wheel(
        payload.wheel_type, scope, force_regenerate=payload.force_regenerate
    )
    if result.stale:
        background_tasks.add_task(
            refresh_stale_wheel,
            services.wheels,
            wheel_type=payload.wheel_type,
            scope=scope,
        )
    return result
