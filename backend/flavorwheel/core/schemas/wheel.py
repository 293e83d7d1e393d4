from __future__ import annotations

from datetime import datetime  # noqa: TCH003
from uuid import UUID  # noqa: TCH003

from flavorwheel.core.models.base import AppBaseModel
from flavorwheel.core.models.wheel import ScopeType, WheelNode, WheelType  # noqa: TCH001


class WheelResult(AppBaseModel):
    """Wheel handed back to callers.

    ``stale`` is set when descriptors were recorded in the scope after the
    cached tree was generated; the tree is still valid to serve.
    """

    wheel_id: UUID
    wheel_type: WheelType
    scope_type: ScopeType
    scope_id: str
    tree: WheelNode
    cached: bool
    stale: bool = False
    generated_at: datetime
    descriptor_count: int
    unique_descriptors: int
