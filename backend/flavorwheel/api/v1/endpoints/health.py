from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from flavorwheel.core.errors import PersistenceError
from flavorwheel.dependencies import get_services

if TYPE_CHECKING:
    from flavorwheel.core.container import PipelineServices

router = APIRouter()


@router.get("/")
async def health_check():
    """Health check endpoint."""
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={
            "status": "healthy",
            "service": "flavorwheel-api",
            "version": "0.1.0",
        },
    )


@router.get("/ready")
async def readiness_check(services: PipelineServices = Depends(get_services)):
    """Readiness check endpoint."""
    db_status = "connected"
    try:
        await services.taxonomy_repo.list_predefined_categories()
    except PersistenceError as e:
        db_status = f"error: {e}"

    return JSONResponse(
        status_code=status.HTTP_200_OK if db_status == "connected" else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if db_status == "connected" else "degraded",
            "database": db_status,
            "classifier": "available" if services.runner is not None else "keyword_fallback",
            "api_prefix": services.settings.api_prefix,
        },
    )
