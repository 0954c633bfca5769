"""
Zone Batch Orchestrator - plan bounded capture work over a geographic /
attribute region.

A zone is a lat/lng box plus an optional unit-count range over the
municipal evaluation roll. The orchestrator computes completion
statistics and emits bounded jobs; it never captures anything itself.
`ZoneJobRunner` drives an injected capture collaborator through a job,
honouring the capture sources' long inter-request delays.
"""

import asyncio
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import settings
from core.exceptions import ConflictError, NotFoundError, ValidationError
from models.base import CaptureStatus, SourceName, ZoneJobStatus
from models.metadata import IngestionMetadata
from models.property import PropertyEvaluation
from models.zone import ScrapeZone, ZoneJob
import logging

logger = logging.getLogger(__name__)

ZONE_ITEM_SOURCE = SourceName.MONTREAL_EVALUATION

CaptureCallable = Callable[[str], Awaitable[bool]]


# ============================================================================
# Value objects
# ============================================================================

@dataclass(frozen=True)
class ZoneBounds:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def validate(self):
        errors = []
        if not -90 <= self.min_lat < self.max_lat <= 90:
            errors.append("latitude bounds must satisfy -90 <= min_lat < max_lat <= 90")
        if not -180 <= self.min_lng < self.max_lng <= 180:
            errors.append("longitude bounds must satisfy -180 <= min_lng < max_lng <= 180")
        if errors:
            raise ValidationError("Invalid zone bounds", context={"errors": errors})


@dataclass(frozen=True)
class ZoneFilters:
    min_units: Optional[int] = None
    max_units: Optional[int] = None

    def validate(self):
        for name, value in (("min_units", self.min_units), ("max_units", self.max_units)):
            if value is not None and value < 0:
                raise ValidationError(f"{name} must be >= 0", context={name: value})
        if self.min_units is not None and self.max_units is not None and self.min_units > self.max_units:
            raise ValidationError(
                "min_units must not exceed max_units",
                context={"min_units": self.min_units, "max_units": self.max_units},
            )


@dataclass(frozen=True)
class ZoneStats:
    zone_id: int
    total: int
    scraped: int

    @property
    def unscraped(self) -> int:
        return max(self.total - self.scraped, 0)

    @property
    def percentage_complete(self) -> float:
        if self.total == 0:
            return 100.0
        return round(self.scraped / self.total * 100, 2)

    def to_dict(self) -> Dict[str, float]:
        return {
            "zone_id": self.zone_id,
            "total": self.total,
            "scraped": self.scraped,
            "unscraped": self.unscraped,
            "percentage_complete": self.percentage_complete,
        }


@dataclass(frozen=True)
class AlreadyComplete:
    """Returned by create_job when every item in the zone is captured."""
    zone_id: int
    stats: ZoneStats


# ============================================================================
# Queries
# ============================================================================

def captured_keys_query():
    """Evaluation keys with a non-failed capture on record."""
    return select(IngestionMetadata.source_item_id).where(
        IngestionMetadata.source == ZONE_ITEM_SOURCE,
        IngestionMetadata.capture_status != CaptureStatus.FAILED,
    )


def zone_conditions(zone: ScrapeZone) -> List:
    conditions = [
        PropertyEvaluation.latitude.is_not(None),
        PropertyEvaluation.longitude.is_not(None),
        PropertyEvaluation.latitude.between(zone.min_lat, zone.max_lat),
        PropertyEvaluation.longitude.between(zone.min_lng, zone.max_lng),
    ]
    if zone.min_units is not None:
        conditions.append(PropertyEvaluation.unit_count >= zone.min_units)
    if zone.max_units is not None:
        conditions.append(PropertyEvaluation.unit_count <= zone.max_units)
    return conditions


class ZoneOrchestrator:
    """Create zones, compute their statistics and emit capture jobs."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    # ========================================================================
    # Zones
    # ========================================================================

    async def create_zone(
        self,
        name: str,
        bounds: ZoneBounds,
        filters: Optional[ZoneFilters] = None,
        description: Optional[str] = None,
        target_limit: Optional[int] = None,
    ) -> ScrapeZone:
        """
        Create a zone and compute its statistics eagerly.

        Raises:
            ValidationError: Invalid bounds or filters
            ConflictError: A zone with this name exists
        """
        filters = filters or ZoneFilters()
        bounds.validate()
        filters.validate()

        existing = await self.db.execute(select(ScrapeZone.id).where(ScrapeZone.name == name))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(f"Zone '{name}' already exists", context={"name": name})

        zone = ScrapeZone(
            name=name,
            description=description,
            min_lat=bounds.min_lat,
            max_lat=bounds.max_lat,
            min_lng=bounds.min_lng,
            max_lng=bounds.max_lng,
            min_units=filters.min_units,
            max_units=filters.max_units,
            target_limit=target_limit,
        )
        self.db.add(zone)
        await self.db.flush()

        stats = await self._compute_stats(zone)
        zone.total_properties = stats.total
        zone.scraped_count = stats.scraped
        await self.db.commit()

        logger.info(f"Created zone {zone.id} '{name}': {stats.scraped}/{stats.total} captured")
        return zone

    async def get_zone(self, zone_id: int) -> ScrapeZone:
        zone = await self.db.get(ScrapeZone, zone_id, populate_existing=True)
        if zone is None:
            raise NotFoundError(f"Zone {zone_id} not found", context={"zone_id": zone_id})
        return zone

    async def list_zones(self) -> List[ScrapeZone]:
        result = await self.db.execute(select(ScrapeZone).order_by(ScrapeZone.id))
        return list(result.scalars().all())

    async def _compute_stats(self, zone: ScrapeZone) -> ZoneStats:
        conditions = zone_conditions(zone)
        total = await self.db.scalar(select(func.count(PropertyEvaluation.id)).where(*conditions))
        scraped = await self.db.scalar(
            select(func.count(PropertyEvaluation.id)).where(
                *conditions, PropertyEvaluation.matricule.in_(captured_keys_query())
            )
        )
        return ZoneStats(zone_id=zone.id, total=total or 0, scraped=scraped or 0)

    async def refresh_stats(self, zone_id: int) -> ZoneStats:
        """Recompute and cache total/scraped counters for a zone."""
        zone = await self.get_zone(zone_id)
        stats = await self._compute_stats(zone)
        zone.total_properties = stats.total
        zone.scraped_count = stats.scraped
        zone.updated_at = datetime.utcnow()
        await self.db.commit()
        return stats

    # ========================================================================
    # Jobs
    # ========================================================================

    async def create_job(self, zone_id: int, limit: int) -> Union[ZoneJob, AlreadyComplete]:
        """
        Plan a capture job of up to `limit` not-yet-captured items.

        Items are selected in evaluation-roll insertion order. No job is
        created when the zone is already fully captured.
        """
        if limit < 1:
            raise ValidationError("limit must be >= 1", context={"limit": limit})

        stats = await self.refresh_stats(zone_id)
        zone = await self.get_zone(zone_id)
        if stats.scraped >= stats.total:
            logger.info(f"Zone {zone_id} already complete ({stats.scraped}/{stats.total})")
            return AlreadyComplete(zone_id=zone_id, stats=stats)

        result = await self.db.execute(
            select(PropertyEvaluation.matricule)
            .where(*zone_conditions(zone), PropertyEvaluation.matricule.not_in(captured_keys_query()))
            .order_by(PropertyEvaluation.id)
            .limit(limit)
        )
        item_keys = list(result.scalars().all())

        job = ZoneJob(
            zone_id=zone_id,
            requested_limit=limit,
            total_to_scrape=len(item_keys),
            item_keys=item_keys,
            status=ZoneJobStatus.PENDING,
        )
        self.db.add(job)
        await self.db.commit()

        logger.info(f"Created job {job.id} for zone {zone_id}: {len(item_keys)} item(s)")
        return job

    async def get_job(self, job_id: int) -> ZoneJob:
        job = await self.db.get(ZoneJob, job_id, populate_existing=True)
        if job is None:
            raise NotFoundError(f"Zone job {job_id} not found", context={"job_id": job_id})
        return job

    async def list_jobs(self, zone_id: int) -> List[ZoneJob]:
        await self.get_zone(zone_id)
        result = await self.db.execute(
            select(ZoneJob).where(ZoneJob.zone_id == zone_id).order_by(ZoneJob.id)
        )
        return list(result.scalars().all())

    async def cancel_job(self, job_id: int) -> ZoneJob:
        """Request cancellation; a running job stops before its next item."""
        job = await self.get_job(job_id)
        if job.status not in (ZoneJobStatus.PENDING, ZoneJobStatus.RUNNING):
            raise ConflictError(
                f"Job {job_id} is already {job.status.value}",
                context={"job_id": job_id, "status": job.status.value},
            )
        job.status = ZoneJobStatus.CANCELLED
        job.completed_at = datetime.utcnow()
        await self.db.commit()
        logger.info(f"Cancelled zone job {job_id}")
        return job

    async def record_item(self, job_id: int, succeeded: bool):
        """Increment the job's progress counters atomically."""
        column = ZoneJob.scraped_count if succeeded else ZoneJob.failed_count
        await self.db.execute(
            update(ZoneJob)
            .where(ZoneJob.id == job_id)
            .values({column.key: column + 1})
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

    async def is_captured(self, item_key: str) -> bool:
        result = await self.db.execute(captured_keys_query().where(IngestionMetadata.source_item_id == item_key))
        return result.first() is not None


class ZoneJobRunner:
    """
    Execute a pending zone job through an injected capture collaborator.

    The collaborator receives an item key and returns True when the capture
    was recorded. Items are processed one at a time with a random delay
    between captures; cancellation (event or job status) is honoured
    between items only.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        capture: CaptureCallable,
        delay_range: Optional[tuple] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session_factory = session_factory
        self.capture = capture
        self.delay_range = delay_range or (settings.ZONE_DELAY_MIN_SECONDS, settings.ZONE_DELAY_MAX_SECONDS)
        self._sleep = sleep

    async def run(self, job_id: int, cancel_event: Optional[asyncio.Event] = None) -> Dict[str, Any]:
        """
        Run a pending job to completion, cancellation or failure.

        Returns:
            Summary with total, successful, failed and skipped counts and a
            `failures` list of {"item_key", "error"} entries
        """
        async with self.session_factory() as session:
            zones = ZoneOrchestrator(session)
            job = await zones.get_job(job_id)
            if job.status != ZoneJobStatus.PENDING:
                raise ConflictError(
                    f"Job {job_id} is {job.status.value}, expected pending",
                    context={"job_id": job_id},
                )
            job.status = ZoneJobStatus.RUNNING
            job.started_at = datetime.utcnow()
            await session.commit()
            zone_id = job.zone_id
            item_keys = list(job.item_keys)

        summary: Dict[str, Any] = {
            "total": len(item_keys),
            "successful": 0,
            "failed": 0,
            "skipped": 0,
            "failures": [],
        }
        final_status = ZoneJobStatus.COMPLETED
        error_message = None
        captured_before = False

        try:
            for index, item_key in enumerate(item_keys):
                if await self._cancelled(job_id, cancel_event):
                    final_status = ZoneJobStatus.CANCELLED
                    logger.warning(f"Zone job {job_id} cancelled at item {index + 1}/{len(item_keys)}")
                    break

                async with self.session_factory() as session:
                    if await ZoneOrchestrator(session).is_captured(item_key):
                        summary["skipped"] += 1
                        continue

                if captured_before:
                    low, high = self.delay_range
                    await self._sleep(random.uniform(low, high))

                error = await self._capture_one(job_id, item_key)
                succeeded = error is None
                captured_before = True
                if succeeded:
                    summary["successful"] += 1
                else:
                    summary["failed"] += 1
                    summary["failures"].append({"item_key": item_key, "error": error})

                async with self.session_factory() as session:
                    await ZoneOrchestrator(session).record_item(job_id, succeeded)

                logger.info(
                    f"Zone job {job_id} [{index + 1}/{len(item_keys)}] {item_key}: "
                    f"{'captured' if succeeded else 'failed'}"
                )
        except asyncio.CancelledError:
            final_status = ZoneJobStatus.CANCELLED
            logger.warning(f"Zone job {job_id} task cancelled")
            raise
        except Exception as e:
            final_status = ZoneJobStatus.FAILED
            error_message = f"{type(e).__name__}: {e}"
            logger.exception(f"Zone job {job_id} failed")
            raise
        finally:
            await self._finish(job_id, zone_id, final_status, summary, error_message)

        return summary

    async def _capture_one(self, job_id: int, item_key: str) -> Optional[str]:
        """None on success, otherwise the error recorded for the item."""
        try:
            if await self.capture(item_key):
                return None
            return "Capture reported failure"
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            logger.error(f"Zone job {job_id}: capture of {item_key} raised {error}")
            return error

    async def _cancelled(self, job_id: int, cancel_event: Optional[asyncio.Event]) -> bool:
        if cancel_event is not None and cancel_event.is_set():
            return True
        async with self.session_factory() as session:
            job = await ZoneOrchestrator(session).get_job(job_id)
            return job.status == ZoneJobStatus.CANCELLED

    async def _finish(
        self,
        job_id: int,
        zone_id: int,
        status: ZoneJobStatus,
        summary: Dict[str, Any],
        error_message: Optional[str],
    ):
        async with self.session_factory() as session:
            zones = ZoneOrchestrator(session)
            job = await zones.get_job(job_id)
            job.status = status
            job.summary = summary
            job.error_message = error_message
            job.completed_at = datetime.utcnow()
            await session.commit()

            zone = await zones.get_zone(zone_id)
            zone.last_scraped_at = datetime.utcnow()
            await session.commit()
            await zones.refresh_stats(zone_id)

        logger.info(f"Zone job {job_id} {status.value}: {summary}")
