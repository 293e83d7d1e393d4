from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from flavorwheel.core.schemas.auth import AuthUser
from flavorwheel.db.base import create_auth_client
from flavorwheel.utils.logging import get_logger

if TYPE_CHECKING:
    from flavorwheel.core.container import PipelineServices
    from flavorwheel.core.services.descriptor_service import DescriptorRecordingService
    from flavorwheel.core.services.taxonomy_service import TaxonomyService
    from flavorwheel.core.services.usage_service import UsageTelemetry
    from flavorwheel.core.services.wheel_service import FlavorWheelAggregator

logger = get_logger(__name__)

# Use auto_error=False to handle missing tokens gracefully
http_bearer = HTTPBearer(auto_error=False)


def get_services(request: Request) -> PipelineServices:
    """Return the service container built by the application lifespan."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up",
        )
    return services


def get_recording_service(services: PipelineServices = Depends(get_services)) -> DescriptorRecordingService:
    return services.recording


def get_taxonomy_service(services: PipelineServices = Depends(get_services)) -> TaxonomyService:
    return services.taxonomies


def get_wheel_service(services: PipelineServices = Depends(get_services)) -> FlavorWheelAggregator:
    return services.wheels


def get_usage_telemetry(services: PipelineServices = Depends(get_services)) -> UsageTelemetry:
    return services.telemetry


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(http_bearer),
    services: PipelineServices = Depends(get_services),
) -> AuthUser:
    """Validate JWT via Supabase and return authenticated user."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    jwt = credentials.credentials
    if not jwt or len(jwt.split(".")) != 3:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token format",
            headers={"WWW-Authenticate": "Bearer"},
        )
    supabase = create_auth_client(services.settings)
    try:
        resp = await asyncio.to_thread(lambda: supabase.auth.get_user(jwt))
    except Exception as err:
        error_msg = str(err).lower()
        logger.warning(
            "JWT validation failed",
            extra={
                "error_type": type(err).__name__,
                "error_summary": error_msg[:100] if error_msg else "Unknown error",
            },
        )
        detail = "Token is invalid or expired" if "invalid" in error_msg or "expired" in error_msg else "Authentication failed"
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        ) from err
    user = getattr(resp, "user", None)
    user_id = getattr(user, "id", None) if user else None
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user data",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return AuthUser(
        id=user_id,
        email=getattr(user, "email", None) or "",
        role=getattr(user, "role", None),
    )


def require_admin(
    current_user: AuthUser = Depends(get_current_user),
    services: PipelineServices = Depends(get_services),
) -> AuthUser:
    """Allow only users whose email is listed in ``APP_ADMIN_EMAILS``."""
    if not current_user.is_admin(services.settings.admin_emails):
        logger.warning("Non-admin access to admin endpoint", extra={"user_id": str(current_user.id)})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user
