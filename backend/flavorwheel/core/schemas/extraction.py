from __future__ import annotations

from enum import Enum

from pydantic import ConfigDict, Field, field_validator

from flavorwheel.core.models.base import AppBaseModel
from flavorwheel.core.models.descriptor import Descriptor, DescriptorType  # noqa: TCH001


class ExtractionMethod(str, Enum):
    AI = "ai"
    KEYWORD = "keyword"


class ExtractionResult(AppBaseModel):
    """Outcome of a single extraction request."""

    descriptors: list[Descriptor] = Field(default_factory=list)
    tokens_used: int = Field(default=0, ge=0)
    processing_time_ms: int = Field(default=0, ge=0)
    method: ExtractionMethod = ExtractionMethod.KEYWORD
    model_used: str | None = None


class StructuredNotes(AppBaseModel):
    """Per-sense note fields from a structured review form."""

    aroma_notes: str | None = Field(default=None, max_length=5000)
    flavor_notes: str | None = Field(default=None, max_length=5000)
    texture_notes: str | None = Field(default=None, max_length=5000)
    other_notes: str | None = Field(default=None, max_length=5000)

    def fields_by_type(self) -> list[tuple[DescriptorType | None, str]]:
        """Non-empty fields paired with the descriptor type they imply."""
        pairs = [
            (DescriptorType.AROMA, self.aroma_notes),
            (DescriptorType.FLAVOR, self.flavor_notes),
            (DescriptorType.TEXTURE, self.texture_notes),
            (None, self.other_notes),
        ]
        return [(t, text.strip()) for t, text in pairs if text and text.strip()]

    def combined_text(self) -> str:
        return ". ".join(text for _, text in self.fields_by_type())


class ClassifierDescriptor(AppBaseModel):
    """Loose shape of one descriptor as returned by the language model.

    Unknown keys are ignored and confidence may be out of range; the
    extraction service clamps and normalizes before building ``Descriptor``.
    """

    model_config = ConfigDict(extra="ignore")

    text: str
    type: DescriptorType
    category: str | None = None
    subcategory: str | None = None
    confidence: float = 0.8

    @field_validator("type", mode="before")
    @classmethod
    def lowercase_type(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("confidence", mode="before")
    @classmethod
    def missing_confidence(cls, v):
        return 0.8 if v is None else v


class RecordedExtraction(AppBaseModel):
    """Extraction result together with how many descriptors were newly stored."""

    extraction: ExtractionResult
    saved_count: int = Field(default=0, ge=0)
    bumped_scopes: list[str] = Field(default_factory=list)
