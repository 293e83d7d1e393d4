from __future__ import annotations

from datetime import datetime  # noqa: TCH003

from flavorwheel.core.models.base import AppBaseModel


class UsageStats(AppBaseModel):
    """Aggregated classifier usage over a time window.

    ``success_rate`` is a whole percentage (0-100).
    """

    period_start: datetime
    period_end: datetime
    total_requests: int = 0
    total_tokens: int = 0
    estimated_cost: float = 0.0
    estimated_cost_display: str = "$0.0000"
    avg_processing_time_ms: int = 0
    tokens_per_request: int = 0
    success_rate: int = 0
