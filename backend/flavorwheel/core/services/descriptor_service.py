from __future__ import annotations

from typing import TYPE_CHECKING

from flavorwheel.core.models.descriptor import DescriptorRecord
from flavorwheel.core.schemas.extraction import RecordedExtraction
from flavorwheel.utils.logging import get_logger

if TYPE_CHECKING:
    from uuid import UUID

    from flavorwheel.core.models.descriptor import SourceType
    from flavorwheel.core.repositories.descriptor_repository import DescriptorRepository
    from flavorwheel.core.schemas.extraction import StructuredNotes
    from flavorwheel.core.services.extraction_service import DescriptorExtractionService
    from flavorwheel.core.services.taxonomy_service import TaxonomyService
    from flavorwheel.core.services.wheel_service import FlavorWheelAggregator

logger = get_logger(__name__)


class DescriptorRecordingService:
    """Extracts descriptors for a tasting item and stores them.

    Stored descriptors are immutable; recording the same item twice keeps the
    first rows. Successful writes mark every wheel scope that can see them as
    stale.
    """

    def __init__(
        self,
        *,
        extraction: DescriptorExtractionService,
        taxonomies: TaxonomyService,
        descriptors: DescriptorRepository,
        wheels: FlavorWheelAggregator,
    ) -> None:
        self._extraction = extraction
        self._taxonomies = taxonomies
        self._descriptors = descriptors
        self._wheels = wheels

    async def extract_and_record(
        self,
        *,
        user_id: UUID,
        source_type: SourceType,
        source_id: UUID,
        note_text: str | None = None,
        structured_notes: StructuredNotes | None = None,
        tasting_id: UUID | None = None,
        item_name: str | None = None,
        item_category: str | None = None,
        is_private: bool = False,
    ) -> RecordedExtraction:
        if note_text is None and structured_notes is None:
            raise ValueError("either note_text or structured_notes is required")

        taxonomy = await self._taxonomies.lookup(item_category)
        if structured_notes is not None:
            result = await self._extraction.extract_structured(
                structured_notes, taxonomy, category=item_category, user_id=user_id
            )
        else:
            result = await self._extraction.extract(note_text, taxonomy, category=item_category, user_id=user_id)

        if not result.descriptors:
            return RecordedExtraction(extraction=result)

        records = [
            DescriptorRecord.from_descriptor(
                descriptor,
                user_id=user_id,
                source_type=source_type,
                source_id=source_id,
                tasting_id=tasting_id,
                item_name=item_name,
                item_category=item_category,
                is_private=is_private,
                extraction_model=result.model_used,
            )
            for descriptor in result.descriptors
        ]
        saved = await self._descriptors.save_many(records)
        bumped: list[str] = []
        if saved:
            bumped = await self._wheels.mark_written(records)
        logger.info(
            "Recorded %d of %d descriptor(s) for %s %s",
            saved,
            len(records),
            source_type.value,
            source_id,
            extra={"method": result.method.value, "tokens_used": result.tokens_used},
        )
        return RecordedExtraction(extraction=result, saved_count=saved, bumped_scopes=bumped)
