from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import ConfigDict, Field, field_validator

from .base import AppBaseModel, utcnow

UNCATEGORIZED = "Uncategorized"


class DescriptorType(str, Enum):
    """Sense a descriptor belongs to."""

    AROMA = "aroma"
    FLAVOR = "flavor"
    TEXTURE = "texture"
    METAPHOR = "metaphor"


class DescriptorSource(str, Enum):
    """How a descriptor was produced."""

    AI = "ai"
    KEYWORD = "keyword"


class SourceType(str, Enum):
    """Kind of tasting record the note text came from."""

    QUICK_TASTING = "quick_tasting"
    QUICK_REVIEW = "quick_review"
    PROSE_REVIEW = "prose_review"


def normalize_text(value: str) -> str:
    """Lowercase, trim and collapse inner whitespace."""
    return " ".join(value.split()).lower()


class Descriptor(AppBaseModel):
    """A single normalized flavor/aroma term extracted from note text.

    Immutable once built. Text is stored lowercase and trimmed; an empty
    category is replaced with ``Uncategorized``.
    """

    model_config = ConfigDict(frozen=True)

    text: str = Field(min_length=1, max_length=100)
    type: DescriptorType
    category: str = Field(default=UNCATEGORIZED, max_length=100)
    subcategory: str | None = Field(default=None, max_length=100)
    confidence: float = Field(ge=0.0, le=1.0)
    source: DescriptorSource
    predefined_category_id: UUID | None = None
    intensity: int | None = Field(default=None, ge=1, le=5)

    @field_validator("text", mode="before")
    @classmethod
    def normalize_descriptor_text(cls, v: str) -> str:
        return normalize_text(v) if isinstance(v, str) else v

    @field_validator("category", mode="before")
    @classmethod
    def default_category(cls, v: str | None) -> str:
        if v is None or (isinstance(v, str) and not v.strip()):
            return UNCATEGORIZED
        return v.strip() if isinstance(v, str) else v

    @field_validator("subcategory", mode="before")
    @classmethod
    def blank_subcategory_to_none(cls, v: str | None) -> str | None:
        if isinstance(v, str):
            stripped = v.strip()
            return stripped or None
        return v


class DescriptorRecord(AppBaseModel):
    """Descriptor persisted against a tasting item.

    Rows are unique on ``(source_type, source_id, text, type)`` and are never
    rewritten; they go away only when the owning tasting item is deleted.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    source_type: SourceType
    source_id: UUID
    tasting_id: UUID | None = None

    text: str
    type: DescriptorType
    category: str = UNCATEGORIZED
    subcategory: str | None = None
    confidence: float = Field(ge=0.0, le=1.0)
    intensity: int | None = None
    source: DescriptorSource
    predefined_category_id: UUID | None = None
    extraction_model: str | None = None

    item_name: str | None = None
    item_category: str | None = None
    is_private: bool = False

    created_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_descriptor(
        cls,
        descriptor: Descriptor,
        *,
        user_id: UUID,
        source_type: SourceType,
        source_id: UUID,
        tasting_id: UUID | None = None,
        item_name: str | None = None,
        item_category: str | None = None,
        is_private: bool = False,
        extraction_model: str | None = None,
    ) -> DescriptorRecord:
        return cls(
            user_id=user_id,
            source_type=source_type,
            source_id=source_id,
            tasting_id=tasting_id,
            text=descriptor.text,
            type=descriptor.type,
            category=descriptor.category,
            subcategory=descriptor.subcategory,
            confidence=descriptor.confidence,
            intensity=descriptor.intensity,
            source=descriptor.source,
            predefined_category_id=descriptor.predefined_category_id,
            extraction_model=extraction_model if descriptor.source is DescriptorSource.AI else None,
            item_name=item_name,
            item_category=item_category,
            is_private=is_private,
        )
