from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

from flavorwheel.core.repositories.implementations.supabase.descriptor_repository import (
    SupabaseDescriptorRepository,
)
from flavorwheel.core.repositories.implementations.supabase.taxonomy_repository import (
    SupabaseTaxonomyRepository,
)
from flavorwheel.core.repositories.implementations.supabase.usage_log_repository import (
    SupabaseUsageLogRepository,
)
from flavorwheel.core.repositories.implementations.supabase.wheel_cache_repository import (
    SupabaseWheelCacheRepository,
)
from flavorwheel.core.services.classifier import ClassifierRunner, OpenAITextClassifier
from flavorwheel.core.services.descriptor_service import DescriptorRecordingService
from flavorwheel.core.services.extraction_service import DescriptorExtractionService
from flavorwheel.core.services.keyword_extractor import KeywordFallbackExtractor
from flavorwheel.core.services.taxonomy_service import TaxonomyService
from flavorwheel.core.services.usage_service import CostModel, UsageTelemetry
from flavorwheel.core.services.wheel_service import FlavorWheelAggregator
from flavorwheel.db.base import create_supabase_admin_client
from flavorwheel.utils.logging import get_logger
from flavorwheel.utils.openai_client import create_openai_client

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from openai import AsyncOpenAI

    from flavorwheel.config import Settings
    from flavorwheel.core.repositories.descriptor_repository import DescriptorRepository
    from flavorwheel.core.repositories.taxonomy_repository import TaxonomyRepository
    from flavorwheel.core.repositories.usage_log_repository import UsageLogRepository
    from flavorwheel.core.repositories.wheel_cache_repository import WheelCacheRepository
    from flavorwheel.core.services.classifier import TextClassifier

logger = get_logger(__name__)


@dataclass
class PipelineServices:
    """Every collaborator of the descriptor pipeline, wired once per process.

    Built at application start and closed at shutdown; request handlers reach
    it through ``app.state``.
    """

    settings: Settings
    descriptor_repo: DescriptorRepository
    taxonomy_repo: TaxonomyRepository
    wheel_cache_repo: WheelCacheRepository
    usage_repo: UsageLogRepository
    telemetry: UsageTelemetry
    runner: ClassifierRunner | None
    extraction: DescriptorExtractionService
    taxonomies: TaxonomyService
    wheels: FlavorWheelAggregator
    recording: DescriptorRecordingService
    openai_client: AsyncOpenAI | None = None

    async def aclose(self) -> None:
        if self.openai_client is not None:
            await self.openai_client.close()
            self.openai_client = None


def assemble_services(
    settings: Settings,
    *,
    descriptor_repo: DescriptorRepository,
    taxonomy_repo: TaxonomyRepository,
    wheel_cache_repo: WheelCacheRepository,
    usage_repo: UsageLogRepository,
    classifier: TextClassifier | None = None,
    openai_client: AsyncOpenAI | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> PipelineServices:
    """Wire services over the given repositories.

    Without a ``classifier`` extraction runs on the keyword fallback and
    taxonomy creation reports ``not_available``.
    """
    telemetry = UsageTelemetry(usage_repo, CostModel.from_settings(settings))
    runner = None
    if classifier is not None:
        runner = ClassifierRunner(
            classifier,
            telemetry,
            max_attempts=settings.classifier_max_attempts,
            backoff_base_seconds=settings.classifier_backoff_base_seconds,
            backoff_max_seconds=settings.classifier_backoff_max_seconds,
            sleep=sleep,
        )
    extraction = DescriptorExtractionService(
        runner=runner,
        fallback=KeywordFallbackExtractor(),
        taxonomy_repo=taxonomy_repo,
    )
    taxonomies = TaxonomyService(taxonomy_repo, runner)
    wheels = FlavorWheelAggregator(descriptor_repo, wheel_cache_repo)
    recording = DescriptorRecordingService(
        extraction=extraction,
        taxonomies=taxonomies,
        descriptors=descriptor_repo,
        wheels=wheels,
    )
    return PipelineServices(
        settings=settings,
        descriptor_repo=descriptor_repo,
        taxonomy_repo=taxonomy_repo,
        wheel_cache_repo=wheel_cache_repo,
        usage_repo=usage_repo,
        telemetry=telemetry,
        runner=runner,
        extraction=extraction,
        taxonomies=taxonomies,
        wheels=wheels,
        recording=recording,
        openai_client=openai_client,
    )


def build_services(settings: Settings) -> PipelineServices:
    """Create the production container over Supabase and OpenAI."""
    client = create_supabase_admin_client(settings)
    page_size = settings.page_size

    openai_client = None
    classifier = None
    if settings.classifier_configured:
        openai_client = create_openai_client(settings)
        classifier = OpenAITextClassifier(
            openai_client,
            model=settings.classifier_model,
            reasoning_effort=settings.classifier_reasoning,
            timeout_seconds=settings.classifier_timeout_seconds,
        )
    else:
        logger.warning("Classifier not configured; extraction will use keyword fallback only")

    return assemble_services(
        settings,
        descriptor_repo=SupabaseDescriptorRepository(client, page_size=page_size),
        taxonomy_repo=SupabaseTaxonomyRepository(client, page_size=page_size),
        wheel_cache_repo=SupabaseWheelCacheRepository(client, page_size=page_size),
        usage_repo=SupabaseUsageLogRepository(client, page_size=page_size),
        classifier=classifier,
        openai_client=openai_client,
    )
