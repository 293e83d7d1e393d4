from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import ConfigDict, Field

from .base import AppBaseModel, utcnow


class UsageOperation(str, Enum):
    EXTRACTION = "extraction"
    TAXONOMY = "taxonomy"


class UsageLogEntry(AppBaseModel):
    """One physical classifier call. Append-only."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    operation: UsageOperation = UsageOperation.EXTRACTION
    user_id: UUID | None = None
    model_used: str | None = None
    tokens_used: int = Field(default=0, ge=0)
    processing_time_ms: int = Field(default=0, ge=0)
    descriptors_extracted: int | None = Field(default=None, ge=0)
    extraction_successful: bool
    error_message: str | None = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utcnow)
