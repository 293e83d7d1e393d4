from __future__ import annotations

from typing import TYPE_CHECKING

from flavorwheel.core.errors import ClassifierError
from flavorwheel.core.models.base import utcnow
from flavorwheel.core.models.taxonomy import Taxonomy, TaxonomyData, normalize_category_name
from flavorwheel.core.models.usage import UsageOperation
from flavorwheel.core.schemas.taxonomy import GeneratedTaxonomy, TaxonomyOutcome, TaxonomyStatus
from flavorwheel.utils.json_reply import decode_embedded_json
from flavorwheel.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from flavorwheel.core.repositories.taxonomy_repository import TaxonomyRepository
    from flavorwheel.core.services.classifier import ClassifierRunner

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are a culinary and beverage expert who creates flavor taxonomy structures "
    "for any food or drink category. Return JSON only."
)

USER_PROMPT = (
    "A user is creating a tasting session for: \"{name}\"\n\n"
    "Generate a flavor taxonomy for this category:\n"
    "1. baseTemplate: the closest existing category (coffee, tea, wine, spirits, beer, chocolate, cheese, other)\n"
    "2. aromaCategories: 4-8 major aroma categories\n"
    "3. flavorCategories: 4-8 major flavor categories\n"
    "4. typicalDescriptors: 8-15 specific descriptors commonly used for this category\n"
    "5. textureNotes: 3-6 common textural descriptors\n"
    "6. categories: for each category, its subcategories mapped to example lowercase keywords\n\n"
    "Return JSON with this structure:\n"
    "{{\n"
    "  \"baseTemplate\": \"spirits|coffee|tea|wine|beer|chocolate|cheese|other\",\n"
    "  \"aromaCategories\": [\"Category1\", ...],\n"
    "  \"flavorCategories\": [\"Category1\", ...],\n"
    "  \"typicalDescriptors\": [\"descriptor1\", ...],\n"
    "  \"textureNotes\": [\"texture1\", ...],\n"
    "  \"categories\": {{\"Fruit\": {{\"Berry\": [\"raspberry\", \"blackcurrant\"]}}}}\n"
    "}}"
)


def parse_taxonomy_reply(reply: str) -> GeneratedTaxonomy:
    """Decode and validate the taxonomy JSON object in a classifier reply."""
    return GeneratedTaxonomy.model_validate(decode_embedded_json(reply, dict))


class TaxonomyService:
    """Get-or-create cache of per-category taxonomies keyed by normalized name.

    A cache hit bumps the usage counter atomically. A miss synthesizes the
    taxonomy through the classifier and stores it with ``insert_if_absent``;
    when a concurrent request stored it first, that row is used and counted,
    so two simultaneous first requests leave one row with ``usage_count == 2``.
    """

    def __init__(self, repo: TaxonomyRepository, runner: ClassifierRunner | None = None) -> None:
        self._repo = repo
        self._runner = runner

    async def get_or_create_taxonomy(self, category_name: str, *, user_id: UUID | None = None) -> TaxonomyOutcome:
        normalized = normalize_category_name(category_name or "")
        if not normalized:
            raise ValueError("category name must not be empty")

        existing = await self._repo.increment_usage(normalized)
        if existing is not None:
            logger.debug("Taxonomy cache hit for %s", normalized, extra={"usage_count": existing.usage_count})
            return TaxonomyOutcome(status=TaxonomyStatus.CACHED, taxonomy=existing)

        if self._runner is None:
            return TaxonomyOutcome(status=TaxonomyStatus.NOT_AVAILABLE, reason="classifier is not configured")

        try:
            outcome = await self._runner.run(
                system=SYSTEM_PROMPT,
                prompt=USER_PROMPT.format(name=" ".join(category_name.split())),
                parse=parse_taxonomy_reply,
                operation=UsageOperation.TAXONOMY,
                user_id=user_id,
            )
        except ClassifierError as err:
            logger.warning("Taxonomy generation failed for %s: %s", normalized, err)
            return TaxonomyOutcome(status=TaxonomyStatus.NOT_AVAILABLE, reason=str(err))

        generated = outcome.value
        candidate = Taxonomy(
            normalized_name=normalized,
            display_name=" ".join(category_name.split()),
            data=TaxonomyData(
                base_template=generated.base_template,
                aroma_categories=generated.aroma_categories,
                flavor_categories=generated.flavor_categories,
                typical_descriptors=generated.typical_descriptors,
                texture_notes=generated.texture_notes,
                categories=generated.categories,
                ai_model=outcome.model,
                generated_at=utcnow(),
            ),
            usage_count=1,
            first_used_by=user_id,
        )
        stored, inserted = await self._repo.insert_if_absent(candidate)
        if inserted:
            logger.info("Created taxonomy for %s", normalized, extra={"tokens_used": outcome.tokens_used})
            return TaxonomyOutcome(status=TaxonomyStatus.CREATED, taxonomy=stored)

        # Lost the race; count this request against the winner's row
        counted = await self._repo.increment_usage(normalized)
        return TaxonomyOutcome(status=TaxonomyStatus.CACHED, taxonomy=counted or stored)

    async def lookup(self, category_name: str | None) -> Taxonomy | None:
        """Read a cached taxonomy without counting a use."""
        normalized = normalize_category_name(category_name or "")
        if not normalized:
            return None
        return await self._repo.get_by_normalized_name(normalized)

    async def list_popular(self, *, limit: int = 20) -> Sequence[Taxonomy]:
        return await self._repo.list_popular(limit=max(1, limit))
