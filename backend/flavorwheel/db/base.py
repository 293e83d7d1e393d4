from __future__ import annotations

from typing import TYPE_CHECKING

from supabase import Client, create_client
from supabase.lib.client_options import ClientOptions

from flavorwheel.utils.logging import get_logger

if TYPE_CHECKING:
    from flavorwheel.config import Settings

logger = get_logger(__name__)


def _server_options(settings: Settings) -> ClientOptions:
    # Server-side clients never hold a browser session
    return ClientOptions(
        auto_refresh_token=False,
        persist_session=False,
        postgrest_client_timeout=settings.supabase_timeout_seconds,
    )


def create_supabase_admin_client(settings: Settings) -> Client:
    """Create the service-role client the repositories share.

    Descriptors, taxonomies, wheels and usage logs are written on behalf of
    many users, so storage runs with elevated privileges. The service
    container owns the instance.
    """
    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise RuntimeError("supabase_url and supabase_service_role_key are required for admin client")
    logger.debug("Initializing Supabase admin client", extra={"url": settings.supabase_url})
    return create_client(settings.supabase_url, settings.supabase_service_role_key, options=_server_options(settings))


def create_auth_client(settings: Settings) -> Client:
    """Create an anon-key client used only to validate caller JWTs."""
    if not settings.supabase_url or not settings.supabase_anon_key:
        raise RuntimeError("supabase_url and supabase_anon_key are required for token validation")
    return create_client(settings.supabase_url, settings.supabase_anon_key, options=_server_options(settings))
