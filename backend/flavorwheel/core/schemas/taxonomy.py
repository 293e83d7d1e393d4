from __future__ import annotations

from enum import Enum

from pydantic import ConfigDict, Field, field_validator

from flavorwheel.core.models.base import AppBaseModel
from flavorwheel.core.models.taxonomy import Taxonomy  # noqa: TCH001


class TaxonomyStatus(str, Enum):
    CACHED = "cached"
    CREATED = "created"
    NOT_AVAILABLE = "not_available"


class TaxonomyOutcome(AppBaseModel):
    """Result of get-or-create.

    ``not_available`` means no taxonomy could be produced because the
    classifier is missing or unreachable. It is a degraded-capability signal,
    not an error, and callers are expected to branch on it.
    """

    status: TaxonomyStatus
    taxonomy: Taxonomy | None = None
    reason: str | None = None

    @property
    def cached(self) -> bool:
        return self.status is TaxonomyStatus.CACHED

    @property
    def available(self) -> bool:
        return self.status is not TaxonomyStatus.NOT_AVAILABLE


class GeneratedTaxonomy(AppBaseModel):
    """Validated taxonomy JSON returned by the language model."""

    model_config = ConfigDict(extra="ignore")

    base_template: str | None = Field(default=None, alias="baseTemplate")
    aroma_categories: list[str] = Field(default_factory=list, alias="aromaCategories")
    flavor_categories: list[str] = Field(default_factory=list, alias="flavorCategories")
    typical_descriptors: list[str] = Field(default_factory=list, alias="typicalDescriptors")
    texture_notes: list[str] = Field(default_factory=list, alias="textureNotes")
    categories: dict[str, dict[str, list[str]]] = Field(default_factory=dict)

    @field_validator("aroma_categories", "flavor_categories", "typical_descriptors", "texture_notes")
    @classmethod
    def strip_entries(cls, v: list[str]) -> list[str]:
        cleaned: list[str] = []
        for item in v:
            item = item.strip()
            if item and item not in cleaned:
                cleaned.append(item)
        return cleaned

    @field_validator("categories")
    @classmethod
    def normalize_keywords(cls, v: dict[str, dict[str, list[str]]]) -> dict[str, dict[str, list[str]]]:
        tree: dict[str, dict[str, list[str]]] = {}
        for category, subcategories in v.items():
            if not category.strip():
                continue
            tree[category.strip()] = {
                sub.strip(): [k.strip().lower() for k in keywords if k.strip()]
                for sub, keywords in subcategories.items()
                if sub.strip()
            }
        return tree
