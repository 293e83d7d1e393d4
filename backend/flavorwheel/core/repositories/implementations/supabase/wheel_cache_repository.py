from __future__ import annotations

from typing import TYPE_CHECKING, Any

from flavorwheel.core.models.wheel import WheelCacheEntry
from flavorwheel.core.repositories.wheel_cache_repository import WheelCacheRepository

from .base import SupabaseRepository

if TYPE_CHECKING:
    from collections.abc import Sequence


class SupabaseWheelCacheRepository(SupabaseRepository, WheelCacheRepository):
    """Supabase implementation over ``flavor_wheels`` and ``wheel_scope_versions``."""

    TABLE_NAME = "flavor_wheels"
    VERSIONS_TABLE = "wheel_scope_versions"

    async def get(self, cache_key: str) -> WheelCacheEntry | None:
        resp = await self._run(
            lambda: self._client.table(self.TABLE_NAME)
            .select("*")
            .eq("cache_key", cache_key)
            .limit(1)
            .execute()
        )
        items = resp.data or []
        if not items:
            return None
        return self._row_to_entry(items[0])

    async def put(self, entry: WheelCacheEntry) -> WheelCacheEntry:
        row = self._entry_to_row(entry)
        resp = await self._run(
            lambda: self._client.table(self.TABLE_NAME)
            .upsert(row, on_conflict="cache_key")
            .execute()
        )
        stored = self._first(resp.data)
        return self._row_to_entry(stored) if stored else entry

    async def get_scope_versions(self, keys: Sequence[str]) -> dict[str, int]:
        if not keys:
            return {}
        resp = await self._run(
            lambda: self._client.table(self.VERSIONS_TABLE)
            .select("scope_key,version")
            .in_("scope_key", list(keys))
            .execute()
        )
        versions = {k: 0 for k in keys}
        for row in resp.data or []:
            versions[row["scope_key"]] = int(row.get("version") or 0)
        return versions

    async def bump_scope_versions(self, keys: Sequence[str]) -> None:
        if not keys:
            return
        await self._run(
            lambda: self._client.rpc(
                "bump_wheel_scope_versions",
                params={"p_scope_keys": sorted(set(keys))},
            ).execute()
        )

    @staticmethod
    def _entry_to_row(entry: WheelCacheEntry) -> dict[str, Any]:
        data = entry.model_dump(mode="json")
        return {
            "id": data["id"],
            "cache_key": data["cache_key"],
            "wheel_type": data["wheel_type"],
            "scope_type": data["scope_type"],
            "scope_id": data["scope_id"],
            "window_key": data["window_key"],
            "wheel_data": data["tree"],
            "descriptor_count": data["descriptor_count"],
            "unique_descriptors": data["unique_descriptors"],
            "scope_version": data["scope_version"],
            "generated_at": data["generated_at"],
        }

    @staticmethod
    def _row_to_entry(row: dict[str, Any]) -> WheelCacheEntry:
        return WheelCacheEntry.model_validate(
            {
                "id": row["id"],
                "cache_key": row["cache_key"],
                "wheel_type": row["wheel_type"],
                "scope_type": row["scope_type"],
                "scope_id": row["scope_id"],
                "window_key": row.get("window_key") or "*..*",
                "tree": row["wheel_data"],
                "descriptor_count": row.get("descriptor_count") or 0,
                "unique_descriptors": row.get("unique_descriptors") or 0,
                "scope_version": row.get("scope_version") or 0,
                "generated_at": row["generated_at"],
            }
        )
