from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from flavorwheel.core.models.wheel import WheelCacheEntry


class WheelCacheRepository(ABC):
    """Abstract repository for generated wheels and scope-version counters."""

    @abstractmethod
    async def get(self, cache_key: str) -> WheelCacheEntry | None:  # pragma: no cover
        """Fetch the cached wheel for a key or return None."""

    @abstractmethod
    async def put(self, entry: WheelCacheEntry) -> WheelCacheEntry:  # pragma: no cover
        """Store a wheel, overwriting any previous entry with the same key."""

    @abstractmethod
    async def get_scope_versions(self, keys: Sequence[str]) -> dict[str, int]:  # pragma: no cover
        """Return the current counter for each key; missing keys read as 0."""

    @abstractmethod
    async def bump_scope_versions(self, keys: Sequence[str]) -> None:  # pragma: no cover
        """Atomically increment each key's counter, creating it at 1 if absent."""
