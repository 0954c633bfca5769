import pytest
from unittest.mock import AsyncMock, MagicMock
from ingestion.backfill import BatchSummary
from ingestion.scheduler import BackfillScheduler
from models.base import SourceName


def test_scheduler_initialization():
    scheduler = BackfillScheduler(MagicMock(), interval_minutes=15)
    assert scheduler.scheduler is not None
    assert scheduler.interval_minutes == 15
    assert set(scheduler.sources) == {SourceName.FACEBOOK, SourceName.CENTRIS}


@pytest.mark.asyncio
async def test_scheduler_job_execution():
    runner = MagicMock()
    runner.run = AsyncMock(side_effect=lambda source: BatchSummary(source=source.value))

    scheduler = BackfillScheduler(runner, sources=[SourceName.FACEBOOK, SourceName.CENTRIS])
    await scheduler.run_backfill_job()

    assert [c.args[0] for c in runner.run.await_args_list] == [SourceName.FACEBOOK, SourceName.CENTRIS]


@pytest.mark.asyncio
async def test_one_failing_source_does_not_stop_the_job():
    runner = MagicMock()
    runner.run = AsyncMock(side_effect=[RuntimeError("boom"), BatchSummary(source="centris")])

    scheduler = BackfillScheduler(runner, sources=[SourceName.FACEBOOK, SourceName.CENTRIS])
    await scheduler.run_backfill_job()

    assert runner.run.await_count == 2


@pytest.mark.asyncio
async def test_job_registration():
    scheduler = BackfillScheduler(MagicMock(), interval_minutes=5)
    scheduler.start()
    try:
        job = scheduler.scheduler.get_job("backfill_job")
        assert job is not None
        assert job.max_instances == 1
        assert job.coalesce is True
    finally:
        scheduler.stop()
