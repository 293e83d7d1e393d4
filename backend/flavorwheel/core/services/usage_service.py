from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from flavorwheel.core.models.base import as_utc
from flavorwheel.core.schemas.usage import UsageStats
from flavorwheel.utils.logging import get_logger

if TYPE_CHECKING:
    from flavorwheel.config import Settings
    from flavorwheel.core.models.usage import UsageLogEntry
    from flavorwheel.core.repositories.usage_log_repository import UsageLogRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class CostModel:
    """Token pricing with an assumed input/output split of total tokens."""

    input_per_mtok: float
    output_per_mtok: float
    input_share: float = 0.6

    @classmethod
    def from_settings(cls, settings: Settings) -> CostModel:
        return cls(
            input_per_mtok=settings.cost_input_per_mtok,
            output_per_mtok=settings.cost_output_per_mtok,
            input_share=settings.cost_input_share,
        )

    def estimate(self, total_tokens: int) -> float:
        output_share = 1.0 - self.input_share
        return (
            total_tokens * self.input_share * self.input_per_mtok / 1_000_000
            + total_tokens * output_share * self.output_per_mtok / 1_000_000
        )


class UsageTelemetry:
    """Append-only record of classifier calls and the cost report built on it."""

    def __init__(self, repo: UsageLogRepository, cost_model: CostModel) -> None:
        self._repo = repo
        self._cost_model = cost_model

    async def record(self, entry: UsageLogEntry) -> None:
        logger.debug(
            "Recording classifier call",
            extra={
                "operation": entry.operation.value,
                "tokens_used": entry.tokens_used,
                "processing_time_ms": entry.processing_time_ms,
                "successful": entry.extraction_successful,
            },
        )
        await self._repo.append(entry)

    async def summarize(self, window_start: datetime, window_end: datetime) -> UsageStats:
        """Aggregate entries with ``window_start <= created_at < window_end``."""
        window_start = as_utc(window_start)
        window_end = as_utc(window_end)
        if window_start >= window_end:
            raise ValueError("window_start must be before window_end")

        entries = await self._repo.list_between(window_start, window_end)
        total_requests = len(entries)
        if total_requests == 0:
            return UsageStats(period_start=window_start, period_end=window_end)

        total_tokens = sum(e.tokens_used for e in entries)
        total_time = sum(e.processing_time_ms for e in entries)
        successful = sum(1 for e in entries if e.extraction_successful)
        cost = self._cost_model.estimate(total_tokens)

        return UsageStats(
            period_start=window_start,
            period_end=window_end,
            total_requests=total_requests,
            total_tokens=total_tokens,
            estimated_cost=cost,
            estimated_cost_display=f"${cost:.4f}",
            avg_processing_time_ms=round(total_time / total_requests),
            tokens_per_request=round(total_tokens / total_requests),
            success_rate=round(successful / total_requests * 100),
        )

    async def summarize_recent(self, days: int = 30, *, now: datetime | None = None) -> UsageStats:
        end = now or datetime.now(UTC)
        return await self.summarize(end - timedelta(days=days), end)
