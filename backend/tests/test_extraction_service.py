from __future__ import annotations

import json
from uuid import UUID

import pytest

from flavorwheel.core.models.descriptor import DescriptorSource, DescriptorType
from flavorwheel.core.schemas.extraction import ExtractionMethod, StructuredNotes
from flavorwheel.core.services.extraction_service import find_closest_category, parse_descriptor_reply

from .fakes import PREDEFINED, ScriptedClassifier, permanent, transient

AI_REPLY = "Here you go:\n```json\n" + json.dumps(
    [
        {"text": "Raspberry", "type": "Aroma", "category": "Fruity", "subcategory": "Berry", "confidence": 1.7},
        {"text": "oaky", "type": "flavor", "category": "Oaky", "confidence": -0.2},
        {"text": "  ", "type": "flavor", "category": "Fruit", "confidence": 0.9},
        {"text": "no type here", "category": "Fruit"},
        {"text": "raspberry", "type": "aroma", "category": "Fruit", "confidence": 0.5},
        {"text": "a rainy afternoon", "type": "metaphor", "category": "Place", "confidence": 0.8},
        {"text": "cedar", "type": "flavor", "category": None, "confidence": None, "extra": "ignored"},
        "just a string",
    ]
) + "\n```"


async def test_empty_text_short_circuits(make_services, usage_repo):
    classifier = ScriptedClassifier("[]")
    service = make_services(classifier).extraction

    result = await service.extract("   ")

    assert result.descriptors == []
    assert result.tokens_used == 0
    assert result.method is ExtractionMethod.KEYWORD
    assert classifier.calls == []
    assert usage_repo.entries == []


async def test_without_classifier_uses_keywords_and_logs_nothing(make_services, usage_repo, wine_taxonomy):
    service = make_services().extraction

    result = await service.extract("berries and oak and a hint of vanilla", wine_taxonomy)

    assert result.method is ExtractionMethod.KEYWORD
    assert result.tokens_used == 0
    assert {(d.text, d.category) for d in result.descriptors} >= {("berries", "Fruit"), ("oak", "Wood")}
    assert usage_repo.entries == []


async def test_classifier_output_is_validated(make_services, usage_repo):
    service = make_services(ScriptedClassifier(AI_REPLY, tokens=321)).extraction

    result = await service.extract("Raspberry nose, oaky palate, like a rainy afternoon", user_id=UUID(int=9))

    assert result.method is ExtractionMethod.AI
    assert result.tokens_used == 321
    assert result.model_used == "fake-model"
    assert [(d.text, d.type) for d in result.descriptors] == [
        ("raspberry", DescriptorType.AROMA),
        ("oaky", DescriptorType.FLAVOR),
        ("a rainy afternoon", DescriptorType.METAPHOR),
        ("cedar", DescriptorType.FLAVOR),
    ]
    raspberry, oaky, rainy, cedar = result.descriptors
    assert raspberry.confidence == 1.0
    assert oaky.confidence == 0.0
    assert cedar.confidence == 0.8
    assert cedar.category == "Uncategorized"
    assert raspberry.predefined_category_id == UUID(int=1)
    assert oaky.predefined_category_id == UUID(int=4)
    assert rainy.predefined_category_id == UUID(int=104)
    assert all(d.source is DescriptorSource.AI for d in result.descriptors)
    assert all(0.0 <= d.confidence <= 1.0 for d in result.descriptors)

    [entry] = usage_repo.entries
    assert entry.extraction_successful is True
    assert entry.tokens_used == 321
    assert entry.descriptors_extracted == 4
    assert entry.user_id == UUID(int=9)


async def test_prompt_carries_categories_and_hint(make_services, wine_taxonomy):
    classifier = ScriptedClassifier("[]")
    service = make_services(classifier).extraction

    await service.extract("cherry", wine_taxonomy, category="Wine")

    system, prompt = classifier.calls[0]
    assert "- Wood / Resin" in system
    assert "- Place" in system
    assert "Context: this is a tasting of Wine." in prompt
    assert '"Fruit", "Wood", "Sweet"' in prompt
    assert '"cherry"' in prompt


async def test_malformed_reply_falls_back_with_spent_tokens(make_services, usage_repo):
    classifier = ScriptedClassifier("I could not find any descriptors.", tokens=50)
    service = make_services(classifier).extraction

    result = await service.extract("cherry and oak")

    assert result.method is ExtractionMethod.KEYWORD
    assert result.tokens_used == 50
    assert [d.text for d in result.descriptors] == ["cherry", "oak"]
    assert len(classifier.calls) == 1
    assert [e.extraction_successful for e in usage_repo.entries] == [False]


async def test_transient_failures_retry_then_fall_back(make_services, usage_repo, sleeps):
    classifier = ScriptedClassifier(transient())
    service = make_services(classifier).extraction

    result = await service.extract("cherry")

    assert result.method is ExtractionMethod.KEYWORD
    assert [d.text for d in result.descriptors] == ["cherry"]
    assert len(classifier.calls) == 3
    assert len(usage_repo.entries) == 3
    assert len(sleeps) == 2


async def test_permanent_failure_falls_back_immediately(make_services, usage_repo, sleeps):
    classifier = ScriptedClassifier(permanent())
    service = make_services(classifier).extraction

    result = await service.extract("cherry")

    assert result.method is ExtractionMethod.KEYWORD
    assert len(classifier.calls) == 1
    assert len(usage_repo.entries) == 1
    assert sleeps == []


async def test_structured_notes_keyword_path_uses_field_types(make_services):
    service = make_services().extraction
    notes = StructuredNotes(aroma_notes="cherry", flavor_notes="oak", texture_notes="smooth")

    result = await service.extract_structured(notes)

    assert [(d.text, d.type) for d in result.descriptors] == [
        ("cherry", DescriptorType.AROMA),
        ("oak", DescriptorType.FLAVOR),
        ("smooth", DescriptorType.TEXTURE),
    ]


async def test_structured_notes_classifier_sees_joined_fields(make_services):
    classifier = ScriptedClassifier("[]")
    service = make_services(classifier).extraction

    result = await service.extract_structured(StructuredNotes(aroma_notes="cherry", other_notes="long finish"))

    assert result.method is ExtractionMethod.AI
    assert "cherry. long finish" in classifier.calls[0][1]


def test_empty_structured_notes():
    assert StructuredNotes().fields_by_type() == []


def test_parse_rejects_replies_without_array():
    with pytest.raises(ValueError):
        parse_descriptor_reply('{"text": "oak"}')
    with pytest.raises(ValueError):
        parse_descriptor_reply("[not valid json]")


def test_parse_ignores_bracketed_text_after_the_array():
    reply = (
        'Here you go: [{"text": "cherry", "type": "flavor", "category": "Fruit"}] '
        "(confidence scale [0,1])"
    )

    [cherry] = parse_descriptor_reply(reply, PREDEFINED)

    assert cherry.text == "cherry"
    assert cherry.predefined_category_id == UUID(int=1)


def test_parse_skips_unparseable_brackets_before_the_array():
    reply = 'Notes [see below]:\n[{"text": "oak", "type": "aroma", "category": "Wood"}]'

    assert [d.text for d in parse_descriptor_reply(reply)] == ["oak"]


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("Fruit", UUID(int=1)),
        ("fruity notes", UUID(int=1)),
        ("Floral", UUID(int=2)),
        ("Honeyed", UUID(int=3)),
        ("Cedar box", UUID(int=4)),
        ("Something else", None),
        ("", None),
    ],
)
def test_find_closest_category(name, expected):
    flavor = [c for c in PREDEFINED if c.kind.value == "flavor"]
    match = find_closest_category(name, flavor)
    assert (match.id if match else None) == expected
