from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID

from flavorwheel.core.models.descriptor import DescriptorRecord, DescriptorSource
from flavorwheel.core.models.wheel import ScopeType
from flavorwheel.core.repositories.descriptor_repository import DescriptorRepository

from .base import SupabaseRepository

if TYPE_CHECKING:
    from collections.abc import Sequence

    from flavorwheel.core.models.descriptor import DescriptorType
    from flavorwheel.core.models.wheel import WheelScope


class SupabaseDescriptorRepository(SupabaseRepository, DescriptorRepository):
    """Supabase implementation over the ``flavor_descriptors`` table.

    Column names follow the existing table (``descriptor_text``,
    ``confidence_score``, ``ai_extracted``), so rows are mapped explicitly.
    """

    TABLE_NAME = "flavor_descriptors"
    TEAM_TABLE = "team_members"
    CONFLICT_COLUMNS = "source_type,source_id,descriptor_text,descriptor_type"

    async def save_many(self, records: Sequence[DescriptorRecord]) -> int:
        if not records:
            return 0
        rows = [self._record_to_row(r) for r in records]
        resp = await self._run(
            lambda: self._client.table(self.TABLE_NAME)
            .upsert(rows, on_conflict=self.CONFLICT_COLUMNS, ignore_duplicates=True)
            .execute()
        )
        return len(resp.data or [])

    async def list_for_scope(
        self,
        scope: WheelScope,
        types: Sequence[DescriptorType],
    ) -> Sequence[DescriptorRecord]:
        owner_ids: list[str] | None = None
        if scope.scope_type is ScopeType.TEAM:
            members = await self.list_team_member_ids(scope.team_id)
            if not members:
                return []
            owner_ids = [str(m) for m in members]

        def _query(start: int, end: int):
            q = self._client.table(self.TABLE_NAME).select("*").in_(
                "descriptor_type", [t.value for t in types]
            )
            if scope.scope_type is ScopeType.PERSONAL:
                q = q.eq("user_id", str(scope.user_id))
            elif scope.scope_type is ScopeType.UNIVERSAL:
                q = q.eq("is_private", False)
            elif scope.scope_type is ScopeType.COMPARATIVE:
                q = q.in_("tasting_id", [str(t) for t in scope.tasting_ids])
            elif owner_ids is not None:
                q = q.in_("user_id", owner_ids)
            if scope.window_start is not None:
                q = q.gte("created_at", scope.window_start.isoformat())
            if scope.window_end is not None:
                q = q.lt("created_at", scope.window_end.isoformat())
            return q.order("created_at").order("id").range(start, end)

        rows = await self._fetch_all(_query)
        return [self._row_to_record(r) for r in rows]

    async def list_team_member_ids(self, team_id: UUID) -> Sequence[UUID]:
        resp = await self._run(
            lambda: self._client.table(self.TEAM_TABLE)
            .select("user_id")
            .eq("team_id", str(team_id))
            .execute()
        )
        return [UUID(str(r["user_id"])) for r in resp.data or []]

    async def list_team_ids_for_user(self, user_id: UUID) -> Sequence[UUID]:
        resp = await self._run(
            lambda: self._client.table(self.TEAM_TABLE)
            .select("team_id")
            .eq("user_id", str(user_id))
            .execute()
        )
        return [UUID(str(r["team_id"])) for r in resp.data or []]

    @staticmethod
    def _record_to_row(record: DescriptorRecord) -> dict[str, Any]:
        data = record.model_dump(mode="json")
        return {
            "id": data["id"],
            "user_id": data["user_id"],
            "source_type": data["source_type"],
            "source_id": data["source_id"],
            "tasting_id": data["tasting_id"],
            "descriptor_text": data["text"],
            "descriptor_type": data["type"],
            "category": data["category"],
            "subcategory": data["subcategory"],
            "confidence_score": data["confidence"],
            "intensity": data["intensity"],
            "ai_extracted": record.source is DescriptorSource.AI,
            "predefined_category_id": data["predefined_category_id"],
            "extraction_model": data["extraction_model"],
            "item_name": data["item_name"],
            "item_category": data["item_category"],
            "is_private": data["is_private"],
            "created_at": data["created_at"],
        }

    @staticmethod
    def _row_to_record(row: dict[str, Any]) -> DescriptorRecord:
        return DescriptorRecord.model_validate(
            {
                "id": row["id"],
                "user_id": row["user_id"],
                "source_type": row["source_type"],
                "source_id": row["source_id"],
                "tasting_id": row.get("tasting_id"),
                "text": row["descriptor_text"],
                "type": row["descriptor_type"],
                "category": row.get("category") or "Uncategorized",
                "subcategory": row.get("subcategory"),
                "confidence": row.get("confidence_score") if row.get("confidence_score") is not None else 1.0,
                "intensity": row.get("intensity"),
                "source": DescriptorSource.AI if row.get("ai_extracted") else DescriptorSource.KEYWORD,
                "predefined_category_id": row.get("predefined_category_id"),
                "extraction_model": row.get("extraction_model"),
                "item_name": row.get("item_name"),
                "item_category": row.get("item_category"),
                "is_private": bool(row.get("is_private", False)),
                "created_at": row["created_at"],
            }
        )
