"""
Process-wide wiring of pipeline collaborators.

One `PipelineRuntime` owns the engine, the blob stores and the single
geocoding rate limiter shared by every orchestrator in the process.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from core.config import settings
from core.database import create_engine, create_session_factory
from core.retry import RateLimiter
from ingestion.backfill import BackfillRunner
from ingestion.capture import CaptureService
from ingestion.enrichment import MediaMaterializer, NominatimGeocoder
from ingestion.pipeline import PipelineOrchestrator
from ingestion.storage import LocalBlobStore
import logging

logger = logging.getLogger(__name__)


@dataclass
class PipelineRuntime:
    engine: AsyncEngine
    session_factory: async_sessionmaker
    artifact_store: LocalBlobStore
    geocoder: Optional[NominatimGeocoder] = None
    media: Optional[MediaMaterializer] = None

    def orchestrator(self, session: AsyncSession) -> PipelineOrchestrator:
        return PipelineOrchestrator(
            session,
            self.artifact_store,
            geocoder=self.geocoder,
            media=self.media,
        )

    def capture_service(self, session: AsyncSession) -> CaptureService:
        return CaptureService(session, self.artifact_store)

    def backfill_runner(self, item_delay: Optional[float] = None) -> BackfillRunner:
        return BackfillRunner(self.session_factory, self.orchestrator, item_delay=item_delay)

    async def dispose(self):
        await self.engine.dispose()
        logger.info("Pipeline runtime disposed")


def build_runtime(database_url: Optional[str] = None) -> PipelineRuntime:
    """Build the runtime from settings."""
    engine = create_engine(database_url)
    media = None
    if settings.MATERIALIZE_MEDIA:
        media = MediaMaterializer(LocalBlobStore(settings.MEDIA_STORAGE_ROOT))

    runtime = PipelineRuntime(
        engine=engine,
        session_factory=create_session_factory(engine),
        artifact_store=LocalBlobStore(settings.RAW_STORAGE_ROOT),
        geocoder=NominatimGeocoder(RateLimiter(settings.GEOCODER_MIN_INTERVAL_SECONDS)),
        media=media,
    )
    logger.info(
        f"Pipeline runtime ready (raw={settings.RAW_STORAGE_ROOT}, "
        f"media={'on' if media else 'off'})"
    )
    return runtime
