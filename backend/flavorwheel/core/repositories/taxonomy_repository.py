from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from flavorwheel.core.models.taxonomy import PredefinedCategory, Taxonomy


class TaxonomyRepository(ABC):
    """Abstract repository for cached category taxonomies.

    Storage must enforce uniqueness of ``normalized_name`` and offer an atomic
    usage counter increment.
    """

    @abstractmethod
    async def get_by_normalized_name(self, normalized_name: str) -> Taxonomy | None:  # pragma: no cover
        """Fetch a taxonomy by its normalized name or return None."""

    @abstractmethod
    async def insert_if_absent(self, taxonomy: Taxonomy) -> tuple[Taxonomy, bool]:  # pragma: no cover
        """Insert unless a row with the same ``normalized_name`` exists.

        Returns ``(row, True)`` when this call inserted, or ``(existing_row,
        False)`` when another writer got there first. Conflicts are reported
        through the flag, never raised.
        """

    @abstractmethod
    async def increment_usage(self, normalized_name: str) -> Taxonomy | None:  # pragma: no cover
        """Atomically add one to ``usage_count`` and touch ``updated_at``.

        Returns the updated row, or None if it does not exist.
        """

    @abstractmethod
    async def list_popular(self, *, limit: int = 20) -> Sequence[Taxonomy]:  # pragma: no cover
        """Return taxonomies ordered by usage count descending."""

    @abstractmethod
    async def list_predefined_categories(self) -> Sequence[PredefinedCategory]:  # pragma: no cover
        """Return curated categories ordered by display order."""
