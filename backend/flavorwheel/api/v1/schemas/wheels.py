from __future__ import annotations

from datetime import datetime  # noqa: TCH003
from uuid import UUID  # noqa: TCH003

from pydantic import Field

from flavorwheel.core.models.base import AppBaseModel
from flavorwheel.core.models.wheel import ScopeType, WheelType  # noqa: TCH001


class WheelRequest(AppBaseModel):
    wheel_type: WheelType = WheelType.COMBINED
    scope_type: ScopeType = ScopeType.PERSONAL
    team_id: UUID | None = None
    tasting_ids: list[UUID] = Field(default_factory=list, max_length=50)
    window_start: datetime | None = None
    window_end: datetime | None = None
    force_regenerate: bool = False
