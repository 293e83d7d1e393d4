from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from flavorwheel.core.models.usage import UsageLogEntry, UsageOperation
from flavorwheel.core.services.usage_service import CostModel, UsageTelemetry

from .fakes import InMemoryUsageLogRepository

START = datetime(2026, 3, 1, tzinfo=UTC)
END = datetime(2026, 3, 31, tzinfo=UTC)


def entry(tokens: int, *, ok: bool = True, ms: int = 100, at: datetime = START) -> UsageLogEntry:
    return UsageLogEntry(
        operation=UsageOperation.EXTRACTION,
        model_used="fake-model",
        tokens_used=tokens,
        processing_time_ms=ms,
        extraction_successful=ok,
        created_at=at,
    )


@pytest.fixture
def telemetry(usage_repo: InMemoryUsageLogRepository) -> UsageTelemetry:
    return UsageTelemetry(usage_repo, CostModel(input_per_mtok=0.05, output_per_mtok=0.40))


def test_cost_model_uses_input_output_split():
    model = CostModel(input_per_mtok=0.05, output_per_mtok=0.40, input_share=0.6)
    assert model.estimate(0) == 0
    assert model.estimate(1_000_000) == pytest.approx(0.6 * 0.05 + 0.4 * 0.40)


async def test_empty_window_reports_zeroes(telemetry):
    stats = await telemetry.summarize(START, END)

    assert stats.total_requests == 0
    assert stats.total_tokens == 0
    assert stats.estimated_cost == 0
    assert stats.estimated_cost_display == "$0.0000"
    assert stats.success_rate == 0
    assert stats.tokens_per_request == 0


async def test_summary_aggregates_entries(telemetry, usage_repo):
    await telemetry.record(entry(1000, ms=100))
    await telemetry.record(entry(3000, ok=False, ms=300))

    stats = await telemetry.summarize(START, END)

    assert stats.total_requests == 2
    assert stats.total_tokens == 4000
    assert stats.estimated_cost == pytest.approx(0.00076)
    assert stats.estimated_cost_display == "$0.0008"
    assert stats.tokens_per_request == 2000
    assert stats.avg_processing_time_ms == 200
    assert stats.success_rate == 50
    assert len(usage_repo.entries) == 2


async def test_window_end_is_exclusive(telemetry):
    await telemetry.record(entry(10, at=START))
    await telemetry.record(entry(20, at=END - timedelta(microseconds=1)))
    await telemetry.record(entry(40, at=END))
    await telemetry.record(entry(80, at=START - timedelta(seconds=1)))

    stats = await telemetry.summarize(START, END)

    assert stats.total_requests == 2
    assert stats.total_tokens == 30


@pytest.mark.parametrize("end", [START, START - timedelta(days=1)])
async def test_empty_or_inverted_window_is_rejected(telemetry, end):
    with pytest.raises(ValueError):
        await telemetry.summarize(START, end)


async def test_naive_bounds_are_read_as_utc(telemetry):
    await telemetry.record(entry(10, at=START))

    stats = await telemetry.summarize(START.replace(tzinfo=None), END)

    assert stats.total_requests == 1
    assert stats.period_start == START
    assert stats.period_start.tzinfo is not None
    with pytest.raises(ValueError):
        await telemetry.summarize(END.replace(tzinfo=None), END)


async def test_summarize_recent_looks_back_from_now(telemetry):
    now = datetime(2026, 4, 30, tzinfo=UTC)
    await telemetry.record(entry(500, at=now - timedelta(days=3)))
    await telemetry.record(entry(700, at=now - timedelta(days=10)))

    stats = await telemetry.summarize_recent(7, now=now)

    assert stats.period_start == now - timedelta(days=7)
    assert stats.period_end == now
    assert stats.total_tokens == 500
    assert stats.success_rate == 100
