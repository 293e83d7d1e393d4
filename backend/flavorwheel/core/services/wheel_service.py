from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING
from uuid import uuid4

from flavorwheel.core.models.base import utcnow
from flavorwheel.core.models.wheel import (
    UNIVERSAL_VERSION_KEY,
    WheelCacheEntry,
    WheelNode,
    personal_version_key,
    tasting_version_key,
    team_version_key,
)
from flavorwheel.core.schemas.wheel import WheelResult
from flavorwheel.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from flavorwheel.core.models.descriptor import DescriptorRecord
    from flavorwheel.core.models.wheel import WheelScope, WheelType
    from flavorwheel.core.repositories.descriptor_repository import DescriptorRepository
    from flavorwheel.core.repositories.wheel_cache_repository import WheelCacheRepository

logger = get_logger(__name__)

OTHER_SUBCATEGORY = "Other"


def _sort_key(node: WheelNode) -> tuple[int, str]:
    return (-node.value, node.name)


def _averages(records: Sequence[DescriptorRecord]) -> tuple[float | None, float | None]:
    if not records:
        return None, None
    confidence = round(sum(r.confidence for r in records) / len(records), 3)
    intensities = [r.intensity for r in records if r.intensity is not None]
    intensity = round(sum(intensities) / len(intensities), 3) if intensities else None
    return confidence, intensity


def _node(name: str, depth: int, records: Sequence[DescriptorRecord], children: list[WheelNode]) -> WheelNode:
    confidence, intensity = _averages(records)
    children.sort(key=_sort_key)
    return WheelNode(
        name=name,
        value=sum(c.value for c in children) if children else len(records),
        depth=depth,
        descriptors=[] if children else [r.id for r in records],
        children=children,
        avg_confidence=confidence,
        avg_intensity=intensity,
    )


def build_tree(records: Sequence[DescriptorRecord], root_name: str) -> WheelNode:
    """Group descriptors into root -> category -> subcategory -> text.

    Missing subcategories fall under ``Other``. Every node's ``value`` is the
    number of descriptors beneath it, and siblings are ordered by value
    descending then name ascending, so the same input always yields the same
    tree.
    """
    grouped: dict[str, dict[str, dict[str, list[DescriptorRecord]]]] = defaultdict(
        lambda: defaultdict(lambda: defaultdict(list))
    )
    for record in records:
        grouped[record.category][record.subcategory or OTHER_SUBCATEGORY][record.text].append(record)

    categories: list[WheelNode] = []
    for category, subcategories in grouped.items():
        sub_nodes: list[WheelNode] = []
        category_records: list[DescriptorRecord] = []
        for subcategory, texts in subcategories.items():
            leaves = [_node(text, 3, leaf_records, []) for text, leaf_records in texts.items()]
            sub_records = [r for leaf_records in texts.values() for r in leaf_records]
            category_records.extend(sub_records)
            sub_nodes.append(_node(subcategory, 2, sub_records, leaves))
        categories.append(_node(category, 1, category_records, sub_nodes))

    return _node(root_name, 0, records, categories)


class FlavorWheelAggregator:
    """Builds flavor wheels for a scope and caches them per scope signature.

    Cached wheels carry the scope version they were built at. A wheel whose
    scope has seen descriptor writes since is still served, flagged as stale,
    and callers decide whether to regenerate.
    """

    def __init__(self, descriptor_repo: DescriptorRepository, cache_repo: WheelCacheRepository) -> None:
        self._descriptors = descriptor_repo
        self._cache = cache_repo

    async def get_or_generate_wheel(
        self,
        wheel_type: WheelType,
        scope: WheelScope,
        *,
        force_regenerate: bool = False,
    ) -> WheelResult:
        cache_key = scope.cache_key(wheel_type)
        # Read the version before the descriptors so concurrent writes mark this build stale
        versions = await self._cache.get_scope_versions(scope.version_keys)
        current_version = sum(versions.values())

        existing = await self._cache.get(cache_key)
        if existing is not None and not force_regenerate:
            stale = existing.scope_version < current_version
            logger.debug("Wheel cache hit for %s", cache_key, extra={"stale": stale})
            return self._to_result(existing, cached=True, stale=stale)

        records = await self._descriptors.list_for_scope(scope, wheel_type.descriptor_types)
        tree = build_tree(records, wheel_type.value)
        entry = WheelCacheEntry(
            id=existing.id if existing is not None else uuid4(),
            cache_key=cache_key,
            wheel_type=wheel_type,
            scope_type=scope.scope_type,
            scope_id=scope.scope_id,
            window_key=scope.window_key,
            tree=tree,
            descriptor_count=len(records),
            unique_descriptors=len({r.text for r in records}),
            scope_version=current_version,
            generated_at=utcnow(),
        )
        stored = await self._cache.put(entry)
        logger.info(
            "Generated %s wheel for %s scope",
            wheel_type.value,
            scope.scope_type.value,
            extra={"cache_key": cache_key, "descriptor_count": entry.descriptor_count},
        )
        return self._to_result(stored, cached=False, stale=False)

    async def regenerate(self, wheel_type: WheelType, scope: WheelScope) -> WheelResult:
        return await self.get_or_generate_wheel(wheel_type, scope, force_regenerate=True)

    async def mark_written(self, records: Sequence[DescriptorRecord]) -> list[str]:
        """Bump every scope version the written descriptors are visible to.

        Returns the keys that were bumped.
        """
        keys: set[str] = set()
        owners = set()
        for record in records:
            owners.add(record.user_id)
            keys.add(personal_version_key(record.user_id))
            if not record.is_private:
                keys.add(UNIVERSAL_VERSION_KEY)
            if record.tasting_id is not None:
                keys.add(tasting_version_key(record.tasting_id))
        for owner in owners:
            for team_id in await self._descriptors.list_team_ids_for_user(owner):
                keys.add(team_version_key(team_id))
        if keys:
            await self._cache.bump_scope_versions(sorted(keys))
        return sorted(keys)

    @staticmethod
    def _to_result(entry: WheelCacheEntry, *, cached: bool, stale: bool) -> WheelResult:
        return WheelResult(
            wheel_id=entry.id,
            wheel_type=entry.wheel_type,
            scope_type=entry.scope_type,
            scope_id=entry.scope_id,
            tree=entry.tree,
            cached=cached,
            stale=stale,
            generated_at=entry.generated_at,
            descriptor_count=entry.descriptor_count,
            unique_descriptors=entry.unique_descriptors,
        )
