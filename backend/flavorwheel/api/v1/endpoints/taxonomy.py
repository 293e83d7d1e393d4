from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, HTTPException, Query, status

from flavorwheel.api.v1.schemas.taxonomy import TaxonomyRequest, TaxonomyResponse
from flavorwheel.core.models.taxonomy import Taxonomy
from flavorwheel.dependencies import get_current_user, get_taxonomy_service

if TYPE_CHECKING:
    from flavorwheel.core.schemas.auth import AuthUser
    from flavorwheel.core.services.taxonomy_service import TaxonomyService


router = APIRouter()


@router.post("", response_model=TaxonomyResponse)
async def get_or_create_taxonomy(
    payload: TaxonomyRequest,
    current_user: AuthUser = Depends(get_current_user),
    service: TaxonomyService = Depends(get_taxonomy_service),
) -> TaxonomyResponse:
    """Return the cached taxonomy for a category, generating it on first use.

    ``status == "not_available"`` means the taxonomy could not be produced
    right now; callers continue without one.
    """
    try:
        outcome = await service.get_or_create_taxonomy(payload.category_name, user_id=current_user.id)
    except ValueError as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err
    return TaxonomyResponse(
        status=outcome.status,
        cached=outcome.cached,
        taxonomy=outcome.taxonomy,
        reason=outcome.reason,
    )


@router.get("/popular", response_model=list[Taxonomy])
async def list_popular_taxonomies(
    limit: int = Query(default=20, ge=1, le=100),
    current_user: AuthUser = Depends(get_current_user),
    service: TaxonomyService = Depends(get_taxonomy_service),
):
    return list(await service.list_popular(limit=limit))
