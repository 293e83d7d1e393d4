from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, HTTPException, status

from flavorwheel.api.v1.schemas.descriptors import ExtractDescriptorsRequest, ExtractDescriptorsResponse
from flavorwheel.dependencies import get_current_user, get_recording_service

if TYPE_CHECKING:
    from flavorwheel.core.schemas.auth import AuthUser
    from flavorwheel.core.services.descriptor_service import DescriptorRecordingService

router = APIRouter()


@router.post("/extract", response_model=ExtractDescriptorsResponse)
async def extract_descriptors(
    payload: ExtractDescriptorsRequest,
    current_user: AuthUser = Depends(get_current_user),
    service: DescriptorRecordingService = Depends(get_recording_service),
):
    try:
        recorded = await service.extract_and_record(
            user_id=current_user.id,
            source_type=payload.source_type,
            source_id=payload.source_id,
            note_text=payload.note_text,
            structured_notes=payload.structured_notes,
            tasting_id=payload.tasting_id,
            item_name=payload.item_name,
            item_category=payload.item_category,
            is_private=payload.is_private,
        )
    except ValueError as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err

    result = recorded.extraction
    return ExtractDescriptorsResponse(
        descriptors=result.descriptors,
        method=result.method,
        tokens_used=result.tokens_used,
        processing_time_ms=result.processing_time_ms,
        saved_count=recorded.saved_count,
    )
