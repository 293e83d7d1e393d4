from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from flavorwheel.core.models.usage import UsageLogEntry


class UsageLogRepository(ABC):
    """Append-only store of classifier calls."""

    @abstractmethod
    async def append(self, entry: UsageLogEntry) -> None:  # pragma: no cover
        """Persist one log entry."""

    @abstractmethod
    async def list_between(self, start: datetime, end: datetime) -> Sequence[UsageLogEntry]:  # pragma: no cover
        """Return entries with ``start <= created_at < end``."""
