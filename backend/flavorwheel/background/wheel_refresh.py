from __future__ import annotations

from typing import TYPE_CHECKING

from flavorwheel.core.errors import PipelineError
from flavorwheel.utils.logging import get_logger

if TYPE_CHECKING:
    from flavorwheel.core.models.wheel import WheelScope, WheelType
    from flavorwheel.core.services.wheel_service import FlavorWheelAggregator

logger = get_logger(__name__)


async def refresh_stale_wheel(
    wheels: FlavorWheelAggregator,
    *,
    wheel_type: WheelType,
    scope: WheelScope,
) -> None:
    """Background job that rebuilds a wheel served as stale.

    Failures are logged; the stale wheel stays in the cache and the next
    request schedules another attempt.
    """
    cache_key = scope.cache_key(wheel_type)
    logger.info("Refreshing stale wheel %s", cache_key)
    try:
        result = await wheels.regenerate(wheel_type, scope)
    except PipelineError as err:
        logger.error("Failed to refresh wheel %s: %s", cache_key, err)
        return
    logger.info(
        "Refreshed wheel %s",
        cache_key,
        extra={"descriptor_count": result.descriptor_count},
    )
