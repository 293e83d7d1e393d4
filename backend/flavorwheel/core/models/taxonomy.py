from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import Field, field_validator

from .base import AppBaseModel, TimestampedModel


def normalize_category_name(name: str) -> str:
    """Fold case and whitespace so "  Red  Wine" and "red wine" share one key."""
    return " ".join(name.split()).casefold()


class TaxonomyData(AppBaseModel):
    """Category tree and reference lists generated for a tasting category.

    ``categories`` maps a category to its subcategories, and each subcategory
    to example descriptor keywords.
    """

    base_template: str | None = None
    aroma_categories: list[str] = Field(default_factory=list)
    flavor_categories: list[str] = Field(default_factory=list)
    typical_descriptors: list[str] = Field(default_factory=list)
    texture_notes: list[str] = Field(default_factory=list)
    categories: dict[str, dict[str, list[str]]] = Field(default_factory=dict)
    ai_model: str | None = None
    generated_at: datetime | None = None


class Taxonomy(TimestampedModel):
    """Cached taxonomy row, unique per normalized category name."""

    id: UUID = Field(default_factory=uuid4)
    normalized_name: str = Field(min_length=1, max_length=200)
    display_name: str = Field(min_length=1, max_length=200)
    data: TaxonomyData = Field(default_factory=TaxonomyData)
    usage_count: int = Field(default=1, ge=0)
    first_used_by: UUID | None = None

    @field_validator("normalized_name")
    @classmethod
    def validate_normalized(cls, v: str) -> str:
        if v != normalize_category_name(v):
            raise ValueError("normalized_name must be case and whitespace folded")
        return v


class CategoryKind(str, Enum):
    FLAVOR = "flavor"
    METAPHOR = "metaphor"


class PredefinedCategory(AppBaseModel):
    """Curated top-level category that extracted categories are mapped onto."""

    id: UUID
    name: str
    kind: CategoryKind = CategoryKind.FLAVOR
    display_order: int = 0
    color_hex: str | None = None
