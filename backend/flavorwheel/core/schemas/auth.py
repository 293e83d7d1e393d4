from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TCH003

from flavorwheel.core.models.base import AppBaseModel

if TYPE_CHECKING:
    from collections.abc import Iterable


class AuthUser(AppBaseModel):
    """Authenticated user extracted from Supabase JWT."""

    id: UUID
    email: str
    role: str | None = None

    def is_admin(self, admin_emails: Iterable[str]) -> bool:
        """Admins are configured by email; matching ignores case and padding."""
        admins = {e.strip().lower() for e in admin_emails if e.strip()}
        return bool(self.email) and self.email.strip().lower() in admins
