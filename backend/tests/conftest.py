"""Shared pytest fixtures: in-memory repositories and a service container over them."""

from __future__ import annotations

import pytest

from flavorwheel.config import Settings
from flavorwheel.core.container import assemble_services
from flavorwheel.core.models.taxonomy import Taxonomy, TaxonomyData

from .fakes import (
    PREDEFINED,
    InMemoryDescriptorRepository,
    InMemoryTaxonomyRepository,
    InMemoryUsageLogRepository,
    InMemoryWheelCacheRepository,
)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        openai_api_key=None,
        classifier_max_attempts=3,
        classifier_backoff_base_seconds=1.0,
        classifier_backoff_max_seconds=4.0,
        admin_emails=["admin@example.com"],
    )


@pytest.fixture
def descriptor_repo() -> InMemoryDescriptorRepository:
    return InMemoryDescriptorRepository()


@pytest.fixture
def taxonomy_repo() -> InMemoryTaxonomyRepository:
    return InMemoryTaxonomyRepository(PREDEFINED)


@pytest.fixture
def wheel_repo() -> InMemoryWheelCacheRepository:
    return InMemoryWheelCacheRepository()


@pytest.fixture
def usage_repo() -> InMemoryUsageLogRepository:
    return InMemoryUsageLogRepository()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def make_services(settings, descriptor_repo, taxonomy_repo, wheel_repo, usage_repo, sleeps):
    """Build a container over the in-memory repos; backoff sleeps are recorded, not awaited."""

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    def _make(classifier=None):
        return assemble_services(
            settings,
            descriptor_repo=descriptor_repo,
            taxonomy_repo=taxonomy_repo,
            wheel_cache_repo=wheel_repo,
            usage_repo=usage_repo,
            classifier=classifier,
            sleep=fake_sleep,
        )

    return _make


@pytest.fixture
def wine_taxonomy() -> Taxonomy:
    return Taxonomy(
        normalized_name="wine",
        display_name="Wine",
        data=TaxonomyData(
            aroma_categories=["Fruit", "Wood"],
            flavor_categories=["Fruit", "Wood", "Sweet"],
            categories={
                "Fruit": {"Berry": ["berry", "blackcurrant"], "Other": ["plum"]},
                "Wood": {"Other": ["oak", "cedar"]},
            },
        ),
    )

