from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from postgrest.exceptions import APIError

from flavorwheel.core.errors import PersistenceError
from flavorwheel.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from supabase import Client

logger = get_logger(__name__)


class SupabaseRepository:
    """Shared plumbing for PostgREST-backed repositories.

    The Supabase client is synchronous, so every call is pushed to a worker
    thread. PostgREST errors surface as ``PersistenceError``.
    """

    TABLE_NAME: str = ""

    def __init__(self, client: Client, *, page_size: int = 1000) -> None:
        self._client: Client = client
        self._page_size = page_size

    async def _run(self, func: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(func)
        except APIError as err:
            logger.error(
                "Supabase request failed on %s: %s",
                self.TABLE_NAME or "rpc",
                err.message,
                extra={"code": err.code, "table": self.TABLE_NAME},
            )
            raise PersistenceError(f"{self.TABLE_NAME or 'rpc'}: {err.message}") from err

    async def _fetch_all(self, build_query: Callable[[int, int], Any]) -> list[dict[str, Any]]:
        """Page through a query with ``range`` until a short page comes back."""
        rows: list[dict[str, Any]] = []
        offset = 0
        while True:
            resp = await self._run(lambda start=offset: build_query(start, start + self._page_size - 1).execute())
            page: list[dict[str, Any]] = resp.data or []
            rows.extend(page)
            if len(page) < self._page_size:
                break
            offset += self._page_size
        return rows

    @staticmethod
    def _first(data: Any) -> dict[str, Any]:
        if isinstance(data, list) and data:
            return data[0]
        if isinstance(data, dict):
            return data
        return {}
