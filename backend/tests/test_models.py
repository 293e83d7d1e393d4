from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

import pytest
from pydantic import ValidationError

from flavorwheel.core.models.descriptor import UNCATEGORIZED, Descriptor, DescriptorSource, DescriptorType
from flavorwheel.core.models.taxonomy import Taxonomy, normalize_category_name
from flavorwheel.core.models.wheel import ScopeType, WheelScope, WheelType
from flavorwheel.core.schemas.auth import AuthUser


def test_descriptor_text_is_normalized():
    d = Descriptor(
        text="  Dark   Cherry ",
        type=DescriptorType.FLAVOR,
        category="  ",
        subcategory=" ",
        confidence=0.5,
        source=DescriptorSource.AI,
    )
    assert d.text == "dark cherry"
    assert d.category == UNCATEGORIZED
    assert d.subcategory is None


def test_descriptor_rejects_out_of_range_confidence():
    with pytest.raises(ValidationError):
        Descriptor(text="oak", type=DescriptorType.FLAVOR, confidence=1.2, source=DescriptorSource.AI)


def test_category_names_fold_case_and_whitespace():
    assert normalize_category_name("  Red \t Wine ") == "red wine"
    assert normalize_category_name("WINE") == normalize_category_name("wine")


def test_taxonomy_requires_folded_key():
    with pytest.raises(ValidationError):
        Taxonomy(normalized_name="Wine", display_name="Wine")


def test_combined_wheel_covers_texture():
    assert WheelType.COMBINED.descriptor_types == (DescriptorType.AROMA, DescriptorType.FLAVOR, DescriptorType.TEXTURE)
    assert WheelType.METAPHOR.descriptor_types == (DescriptorType.METAPHOR,)


def test_scope_requires_its_target():
    with pytest.raises(ValidationError):
        WheelScope(scope_type=ScopeType.PERSONAL)
    with pytest.raises(ValidationError):
        WheelScope(scope_type=ScopeType.TEAM)
    with pytest.raises(ValidationError):
        WheelScope(scope_type=ScopeType.COMPARATIVE, tasting_ids=[])


def test_scope_window_must_be_ordered():
    t = datetime(2026, 1, 1, tzinfo=UTC)
    with pytest.raises(ValidationError):
        WheelScope(scope_type=ScopeType.UNIVERSAL, window_start=t, window_end=t)


def test_scope_window_treats_naive_bounds_as_utc():
    scope = WheelScope(
        scope_type=ScopeType.UNIVERSAL,
        window_start=datetime(2026, 1, 1),
        window_end=datetime(2026, 2, 1, tzinfo=UTC),
    )
    assert scope.window_start == datetime(2026, 1, 1, tzinfo=UTC)
    assert scope.window_start.tzinfo is not None

    with pytest.raises(ValidationError):
        WheelScope(
            scope_type=ScopeType.UNIVERSAL,
            window_start=datetime(2026, 2, 1),
            window_end=datetime(2026, 2, 1, tzinfo=UTC),
        )


def test_comparative_cache_key_ignores_order():
    a, b = uuid4(), uuid4()
    first = WheelScope(scope_type=ScopeType.COMPARATIVE, tasting_ids=[a, b])
    second = WheelScope(scope_type=ScopeType.COMPARATIVE, tasting_ids=[b, a, a])

    assert first.cache_key(WheelType.FLAVOR) == second.cache_key(WheelType.FLAVOR)
    assert first.version_keys == second.version_keys == sorted([f"tasting:{a}", f"tasting:{b}"])


def test_cache_key_includes_type_and_window():
    user = uuid4()
    start = datetime(2026, 1, 1, tzinfo=UTC)
    scope = WheelScope(scope_type=ScopeType.PERSONAL, user_id=user, window_start=start)

    assert scope.cache_key(WheelType.AROMA) == f"aroma:personal:{user}:{start.isoformat()}..*"
    assert scope.cache_key(WheelType.AROMA) != scope.cache_key(WheelType.FLAVOR)
    assert scope.version_keys == [f"personal:{user}"]
    assert WheelScope(scope_type=ScopeType.UNIVERSAL).cache_key(WheelType.FLAVOR) == "flavor:universal:all:*..*"


def test_admin_match_ignores_case_and_padding():
    user = AuthUser(id=uuid4(), email="Admin@Example.com")
    assert user.is_admin([" admin@example.com ", ""])
    assert not user.is_admin(["someone@example.com"])
    assert not AuthUser(id=uuid4(), email="").is_admin(["", " "])
