from __future__ import annotations

from typing import TYPE_CHECKING, Any

from flavorwheel.core.errors import PersistenceError
from flavorwheel.core.models.taxonomy import PredefinedCategory, Taxonomy
from flavorwheel.core.repositories.taxonomy_repository import TaxonomyRepository
from flavorwheel.utils.logging import get_logger

from .base import SupabaseRepository

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = get_logger(__name__)


class SupabaseTaxonomyRepository(SupabaseRepository, TaxonomyRepository):
    """Supabase implementation over ``category_taxonomies``.

    ``normalized_name`` carries a unique index. Inserts go through an upsert
    that ignores duplicates, so a lost race returns no row instead of a
    unique-violation error, and the winner's row is read back.
    """

    TABLE_NAME = "category_taxonomies"
    PREDEFINED_TABLE = "predefined_flavor_categories"

    async def get_by_normalized_name(self, normalized_name: str) -> Taxonomy | None:
        resp = await self._run(
            lambda: self._client.table(self.TABLE_NAME)
            .select("*")
            .eq("normalized_name", normalized_name)
            .limit(1)
            .execute()
        )
        items = resp.data or []
        if not items:
            return None
        return self._row_to_taxonomy(items[0])

    async def insert_if_absent(self, taxonomy: Taxonomy) -> tuple[Taxonomy, bool]:
        row = self._taxonomy_to_row(taxonomy)
        resp = await self._run(
            lambda: self._client.table(self.TABLE_NAME)
            .upsert(row, on_conflict="normalized_name", ignore_duplicates=True)
            .execute()
        )
        inserted = self._first(resp.data)
        if inserted:
            return self._row_to_taxonomy(inserted), True

        logger.info("Taxonomy %s already created by another request", taxonomy.normalized_name)
        existing = await self.get_by_normalized_name(taxonomy.normalized_name)
        if existing is None:
            # Row vanished between the conflict and the read; retention is external
            raise PersistenceError(f"taxonomy {taxonomy.normalized_name!r} conflicted but could not be read")
        return existing, False

    async def increment_usage(self, normalized_name: str) -> Taxonomy | None:
        resp = await self._run(
            lambda: self._client.rpc(
                "increment_taxonomy_usage",
                params={"p_normalized_name": normalized_name},
            ).execute()
        )
        row = self._first(resp.data)
        if not row:
            return None
        return self._row_to_taxonomy(row)

    async def list_popular(self, *, limit: int = 20) -> Sequence[Taxonomy]:
        resp = await self._run(
            lambda: self._client.table(self.TABLE_NAME)
            .select("*")
            .order("usage_count", desc=True)
            .order("normalized_name")
            .limit(limit)
            .execute()
        )
        return [self._row_to_taxonomy(r) for r in resp.data or []]

    async def list_predefined_categories(self) -> Sequence[PredefinedCategory]:
        resp = await self._run(
            lambda: self._client.table(self.PREDEFINED_TABLE)
            .select("id,name,kind,display_order,color_hex")
            .eq("is_active", True)
            .order("display_order")
            .execute()
        )
        return [PredefinedCategory.model_validate(r) for r in resp.data or []]

    @staticmethod
    def _taxonomy_to_row(taxonomy: Taxonomy) -> dict[str, Any]:
        data = taxonomy.model_dump(mode="json")
        return {
            "id": data["id"],
            "normalized_name": data["normalized_name"],
            "category_name": data["display_name"],
            "taxonomy_data": data["data"],
            "usage_count": data["usage_count"],
            "first_used_by": data["first_used_by"],
            "created_at": data["created_at"],
            "updated_at": data["updated_at"] or data["created_at"],
        }

    @staticmethod
    def _row_to_taxonomy(row: dict[str, Any]) -> Taxonomy:
        return Taxonomy.model_validate(
            {
                "id": row["id"],
                "normalized_name": row["normalized_name"],
                "display_name": row.get("category_name") or row["normalized_name"],
                "data": row.get("taxonomy_data") or {},
                "usage_count": row.get("usage_count") or 0,
                "first_used_by": row.get("first_used_by"),
                "created_at": row["created_at"],
                "updated_at": row.get("updated_at"),
            }
        )
