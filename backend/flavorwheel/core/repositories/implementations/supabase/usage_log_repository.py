from __future__ import annotations

from typing import TYPE_CHECKING, Any

from flavorwheel.core.models.usage import UsageLogEntry
from flavorwheel.core.repositories.usage_log_repository import UsageLogRepository

from .base import SupabaseRepository

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime


class SupabaseUsageLogRepository(SupabaseRepository, UsageLogRepository):
    """Supabase implementation over ``ai_extraction_logs``."""

    TABLE_NAME = "ai_extraction_logs"
    COLUMNS = (
        "id,operation,user_id,model_used,tokens_used,processing_time_ms,"
        "descriptors_extracted,extraction_successful,error_message,created_at"
    )

    async def append(self, entry: UsageLogEntry) -> None:
        row = entry.model_dump(mode="json")
        await self._run(lambda: self._client.table(self.TABLE_NAME).insert(row).execute())

    async def list_between(self, start: datetime, end: datetime) -> Sequence[UsageLogEntry]:
        def _query(lo: int, hi: int):
            return (
                self._client.table(self.TABLE_NAME)
                .select(self.COLUMNS)
                .gte("created_at", start.isoformat())
                .lt("created_at", end.isoformat())
                .order("created_at")
                .range(lo, hi)
            )

        rows = await self._fetch_all(_query)
        return [self._row_to_entry(r) for r in rows]

    @staticmethod
    def _row_to_entry(row: dict[str, Any]) -> UsageLogEntry:
        normalized = dict(row)
        # Older rows predate these columns
        normalized["operation"] = normalized.get("operation") or "extraction"
        normalized["tokens_used"] = normalized.get("tokens_used") or 0
        normalized["processing_time_ms"] = normalized.get("processing_time_ms") or 0
        normalized["extraction_successful"] = bool(normalized.get("extraction_successful", True))
        return UsageLogEntry.model_validate(normalized)
