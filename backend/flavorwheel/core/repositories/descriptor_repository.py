from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from flavorwheel.core.models.descriptor import DescriptorRecord, DescriptorType
    from flavorwheel.core.models.wheel import WheelScope


class DescriptorRepository(ABC):
    """Abstract repository for persisted descriptors and team membership lookups."""

    @abstractmethod
    async def save_many(self, records: Sequence[DescriptorRecord]) -> int:  # pragma: no cover - interface only
        """Insert descriptors, skipping rows that already exist for the same
        ``(source_type, source_id, text, type)``. Return the number inserted."""

    @abstractmethod
    async def list_for_scope(
        self,
        scope: WheelScope,
        types: Sequence[DescriptorType],
    ) -> Sequence[DescriptorRecord]:  # pragma: no cover
        """Return every descriptor of the given types visible under ``scope``.

        Results are ordered by ``created_at`` then ``id``.
        """

    @abstractmethod
    async def list_team_member_ids(self, team_id: UUID) -> Sequence[UUID]:  # pragma: no cover
        """Return the user ids belonging to a team."""

    @abstractmethod
    async def list_team_ids_for_user(self, user_id: UUID) -> Sequence[UUID]:  # pragma: no cover
        """Return the teams a user belongs to."""
