from __future__ import annotations

from uuid import UUID  # noqa: TCH003

from pydantic import Field, model_validator

from flavorwheel.core.models.base import AppBaseModel
from flavorwheel.core.models.descriptor import Descriptor, SourceType  # noqa: TCH001
from flavorwheel.core.schemas.extraction import ExtractionMethod, StructuredNotes  # noqa: TCH001


class ExtractDescriptorsRequest(AppBaseModel):
    source_type: SourceType = Field(description="Kind of tasting record the notes belong to")
    source_id: UUID = Field(description="Tasting item the descriptors are recorded against")
    tasting_id: UUID | None = Field(default=None, description="Tasting session, if any")
    note_text: str | None = Field(default=None, max_length=5000, description="Free-text tasting notes")
    structured_notes: StructuredNotes | None = None
    item_name: str | None = Field(default=None, max_length=255)
    item_category: str | None = Field(default=None, max_length=200, description="e.g. coffee, wine, mezcal")
    is_private: bool = False

    @model_validator(mode="after")
    def validate_one_source(self) -> ExtractDescriptorsRequest:
        if (self.note_text is None) == (self.structured_notes is None):
            raise ValueError("Provide exactly one of note_text or structured_notes")
        return self


class ExtractDescriptorsResponse(AppBaseModel):
    descriptors: list[Descriptor]
    method: ExtractionMethod
    tokens_used: int
    processing_time_ms: int
    saved_count: int
