"""
FastAPI dependencies: sessions and pipeline services from the app runtime
"""

from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ingestion.backfill import BackfillRunner
from ingestion.capture import CaptureService
from ingestion.pipeline import PipelineOrchestrator
from ingestion.runtime import PipelineRuntime
from ingestion.tracker import MetadataTracker
from ingestion.zones import ZoneOrchestrator


def get_runtime(request: Request) -> PipelineRuntime:
    return request.app.state.runtime


async def get_db(runtime: PipelineRuntime = Depends(get_runtime)) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session for the duration of one request"""
    async with runtime.session_factory() as session:
        yield session


def get_orchestrator(
    db: AsyncSession = Depends(get_db),
    runtime: PipelineRuntime = Depends(get_runtime),
) -> PipelineOrchestrator:
    return runtime.orchestrator(db)


def get_capture_service(
    db: AsyncSession = Depends(get_db),
    runtime: PipelineRuntime = Depends(get_runtime),
) -> CaptureService:
    return runtime.capture_service(db)


def get_tracker(db: AsyncSession = Depends(get_db)) -> MetadataTracker:
    return MetadataTracker(db)


def get_backfill_runner(runtime: PipelineRuntime = Depends(get_runtime)) -> BackfillRunner:
    return runtime.backfill_runner()


def get_zone_orchestrator(db: AsyncSession = Depends(get_db)) -> ZoneOrchestrator:
    return ZoneOrchestrator(db)
