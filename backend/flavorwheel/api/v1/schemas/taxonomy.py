from __future__ import annotations

from pydantic import Field

from flavorwheel.core.models.base import AppBaseModel
from flavorwheel.core.models.taxonomy import Taxonomy  # noqa: TCH001
from flavorwheel.core.schemas.taxonomy import TaxonomyStatus  # noqa: TCH001


class TaxonomyRequest(AppBaseModel):
    category_name: str = Field(min_length=1, max_length=200, description="Tasting category, e.g. 'Mezcal'")


class TaxonomyResponse(AppBaseModel):
    status: TaxonomyStatus
    cached: bool
    taxonomy: Taxonomy | None = None
    reason: str | None = None
