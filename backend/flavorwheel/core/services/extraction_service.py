from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING

from pydantic import ValidationError

from flavorwheel.core.errors import ClassifierError
from flavorwheel.core.models.descriptor import Descriptor, DescriptorSource, DescriptorType
from flavorwheel.core.models.taxonomy import CategoryKind, PredefinedCategory
from flavorwheel.core.models.usage import UsageOperation
from flavorwheel.core.schemas.extraction import (
    ClassifierDescriptor,
    ExtractionMethod,
    ExtractionResult,
    StructuredNotes,
)
from flavorwheel.core.services.keyword_extractor import BUILTIN_KEYWORDS
from flavorwheel.utils.json_reply import decode_embedded_json
from flavorwheel.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from flavorwheel.core.models.taxonomy import Taxonomy
    from flavorwheel.core.repositories.taxonomy_repository import TaxonomyRepository
    from flavorwheel.core.services.classifier import ClassifierRunner
    from flavorwheel.core.services.keyword_extractor import KeywordFallbackExtractor

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are an expert sensory analyst specializing in flavor and aroma profiling. "
    "Extract and classify every sensory descriptor in the tasting note.\n\n"
    "CLASSIFICATION RULES:\n"
    "- aroma: smell-related (nose, fragrance, scent, \"smells like\", \"aroma of\")\n"
    "- flavor: taste-related (palate, \"tastes like\", \"flavor of\")\n"
    "- texture: physical sensations (creamy, smooth, astringent, silky, fizzy, oily)\n"
    "- metaphor: emotional, place or cultural associations (\"reminds me of\", \"evokes\")\n\n"
    "{categories}\n\n"
    "IMPORTANT:\n"
    "- Preserve the user's exact wording (keep \"chocolatey\", not \"chocolate\").\n"
    "- Classify from context, not keywords alone.\n"
    "- Confidence reflects how clear the classification is (0.0-1.0).\n"
    "- Return JSON only."
)

USER_PROMPT = (
    "Extract all sensory descriptors from this tasting note:\n\n"
    "\"{text}\"\n"
    "{context}\n"
    "Return a JSON array with this exact structure:\n"
    "[\n"
    "  {{\n"
    "    \"text\": \"exact descriptor from user text\",\n"
    "    \"type\": \"aroma|flavor|texture|metaphor\",\n"
    "    \"category\": \"main category\",\n"
    "    \"subcategory\": \"optional subcategory\",\n"
    "    \"confidence\": 0.85\n"
    "  }}\n"
    "]"
)


def build_category_guidance(categories: Sequence[PredefinedCategory]) -> str:
    flavor = [c.name for c in categories if c.kind is CategoryKind.FLAVOR]
    metaphor = [c.name for c in categories if c.kind is CategoryKind.METAPHOR]
    if not flavor and not metaphor:
        return "CATEGORIES:\nUse a short, general category name (e.g. Fruit, Floral, Spice) for every descriptor."
    lines = ["CATEGORIES:"]
    if flavor:
        lines.append("For aroma, flavor and texture descriptors use one of:")
        lines.extend(f"- {name}" for name in flavor)
    if metaphor:
        lines.append("For metaphor descriptors use one of:")
        lines.extend(f"- {name}" for name in metaphor)
    lines.append("If unsure, choose the closest matching category.")
    return "\n".join(lines)


def build_user_prompt(text: str, *, category: str | None, taxonomy: Taxonomy | None) -> str:
    context: list[str] = []
    if category:
        context.append(f"Context: this is a tasting of {category}.")
    if taxonomy is not None:
        expected = taxonomy.data.aroma_categories + [
            c for c in taxonomy.data.flavor_categories if c not in taxonomy.data.aroma_categories
        ]
        if expected:
            context.append(f"Expected categories for this item: {json.dumps(expected)}")
        if taxonomy.data.typical_descriptors:
            context.append(f"Typical descriptors: {json.dumps(taxonomy.data.typical_descriptors)}")
    return USER_PROMPT.format(text=text, context="\n".join(context) + "\n" if context else "")


def find_closest_category(name: str, categories: Sequence[PredefinedCategory]) -> PredefinedCategory | None:
    """Map a free-form category onto a curated one.

    Tries an exact match, then containment either way, then the keyword table
    of the built-in lexicon.
    """
    wanted = name.strip().lower()
    if not wanted or not categories:
        return None
    for candidate in categories:
        if candidate.name.lower() == wanted:
            return candidate
    for candidate in categories:
        lowered = candidate.name.lower()
        if lowered in wanted or wanted in lowered:
            return candidate
    by_name = {c.name: c for c in categories}
    for category_name, subcategories in BUILTIN_KEYWORDS.items():
        candidate = by_name.get(category_name)
        if candidate is None:
            continue
        keywords = [k for words in subcategories.values() for k in words]
        if any(keyword in wanted for keyword in keywords):
            return candidate
    return None


def parse_descriptor_reply(reply: str, categories: Sequence[PredefinedCategory] = ()) -> list[Descriptor]:
    """Turn raw classifier text into validated descriptors.

    Raises ``ValueError`` when the reply holds no decodable JSON array.
    Individual malformed entries are dropped.
    """
    raw = decode_embedded_json(reply, list)

    flavor_categories = [c for c in categories if c.kind is CategoryKind.FLAVOR]
    metaphor_categories = [c for c in categories if c.kind is CategoryKind.METAPHOR]

    descriptors: list[Descriptor] = []
    seen: set[tuple[str, DescriptorType]] = set()
    for item in raw:
        try:
            wire = ClassifierDescriptor.model_validate(item)
            pool = metaphor_categories if wire.type is DescriptorType.METAPHOR else flavor_categories
            closest = find_closest_category(wire.category or "", pool)
            descriptor = Descriptor(
                text=wire.text,
                type=wire.type,
                category=wire.category,
                subcategory=wire.subcategory,
                confidence=min(1.0, max(0.0, wire.confidence)),
                source=DescriptorSource.AI,
                predefined_category_id=closest.id if closest else None,
            )
        except ValidationError as err:
            logger.debug("Dropping malformed descriptor %r: %s", item, err.errors()[0]["msg"])
            continue
        key = (descriptor.text, descriptor.type)
        if key in seen:
            continue
        seen.add(key)
        descriptors.append(descriptor)
    return descriptors


class DescriptorExtractionService:
    """Extracts descriptors from tasting notes.

    Uses the language-model classifier when one is configured and falls back
    to keyword extraction when it is absent or fails. ``extract`` never raises
    classifier errors.
    """

    def __init__(
        self,
        *,
        runner: ClassifierRunner | None,
        fallback: KeywordFallbackExtractor,
        taxonomy_repo: TaxonomyRepository,
    ) -> None:
        self._runner = runner
        self._fallback = fallback
        self._taxonomy_repo = taxonomy_repo

    @property
    def classifier_enabled(self) -> bool:
        return self._runner is not None

    async def extract(
        self,
        note_text: str,
        taxonomy_hint: Taxonomy | None = None,
        *,
        category: str | None = None,
        user_id: UUID | None = None,
    ) -> ExtractionResult:
        started = time.perf_counter()
        text = (note_text or "").strip()
        if not text:
            return ExtractionResult()

        if self._runner is None:
            descriptors = self._fallback.extract(text, taxonomy_hint)
            return self._keyword_result(descriptors, started, tokens=0)

        try:
            return await self._extract_with_classifier(
                text, taxonomy_hint, category=category, user_id=user_id, started=started
            )
        except ClassifierError as err:
            logger.warning(
                "Classifier extraction failed, using keyword fallback: %s",
                err,
                extra={"tokens_used": err.tokens_used, "retryable": err.retryable},
            )
            descriptors = self._fallback.extract(text, taxonomy_hint)
            return self._keyword_result(descriptors, started, tokens=err.tokens_used)

    async def extract_structured(
        self,
        notes: StructuredNotes,
        taxonomy_hint: Taxonomy | None = None,
        *,
        category: str | None = None,
        user_id: UUID | None = None,
    ) -> ExtractionResult:
        """Extract from per-sense review fields.

        The classifier sees the fields joined; the keyword path extracts each
        field separately with the type its field implies.
        """
        started = time.perf_counter()
        fields = notes.fields_by_type()
        if not fields:
            return ExtractionResult()

        if self._runner is None:
            descriptors = self._fallback.extract_many(fields, taxonomy_hint)
            return self._keyword_result(descriptors, started, tokens=0)

        try:
            return await self._extract_with_classifier(
                notes.combined_text(), taxonomy_hint, category=category, user_id=user_id, started=started
            )
        except ClassifierError as err:
            logger.warning(
                "Classifier extraction failed for structured notes, using keyword fallback: %s",
                err,
                extra={"tokens_used": err.tokens_used},
            )
            descriptors = self._fallback.extract_many(fields, taxonomy_hint)
            return self._keyword_result(descriptors, started, tokens=err.tokens_used)

    async def _extract_with_classifier(
        self,
        text: str,
        taxonomy_hint: Taxonomy | None,
        *,
        category: str | None,
        user_id: UUID | None,
        started: float,
    ) -> ExtractionResult:
        categories = list(await self._taxonomy_repo.list_predefined_categories())
        outcome = await self._runner.run(
            system=SYSTEM_PROMPT.format(categories=build_category_guidance(categories)),
            prompt=build_user_prompt(text, category=category, taxonomy=taxonomy_hint),
            parse=lambda reply: parse_descriptor_reply(reply, categories),
            operation=UsageOperation.EXTRACTION,
            user_id=user_id,
        )
        logger.info(
            "Extracted %d descriptor(s) with classifier",
            len(outcome.value),
            extra={"tokens_used": outcome.tokens_used, "attempts": outcome.attempts},
        )
        return ExtractionResult(
            descriptors=outcome.value,
            tokens_used=outcome.tokens_used,
            processing_time_ms=_elapsed_ms(started),
            method=ExtractionMethod.AI,
            model_used=outcome.model or self._runner.model_name,
        )

    @staticmethod
    def _keyword_result(descriptors: list[Descriptor], started: float, *, tokens: int) -> ExtractionResult:
        return ExtractionResult(
            descriptors=descriptors,
            tokens_used=tokens,
            processing_time_ms=_elapsed_ms(started),
            method=ExtractionMethod.KEYWORD,
        )


def _elapsed_ms(started: float) -> int:
    return max(0, round((time.perf_counter() - started) * 1000))
