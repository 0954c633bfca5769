"""
Pipeline statistics endpoint
"""
from datetime import datetime
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from api.dependencies import get_db
from ingestion.tracker import MetadataTracker
from schemas.api import StatsResponse
from models.base import ZoneJobStatus
from models.curated import CuratedListing
from models.metadata import IngestionMetadata
from models.rental import Rental
from models.zone import ScrapeZone, ZoneJob
import uuid
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Statistics"])


@router.get("/stats", response_model=StatsResponse)
async def get_stats(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Get pipeline statistics.

    Returns:
    - Item, curated and canonical record counts
    - Transform status counts per source
    - Zone and active job counts
    """
    request_id = getattr(request.state, "request_id", f"req_{uuid.uuid4().hex[:12]}")

    logger.info(f"[{request_id}] GET /stats")

    total_items = await db.scalar(select(func.count()).select_from(IngestionMetadata))
    total_curated = await db.scalar(select(func.count()).select_from(CuratedListing))
    total_rentals = await db.scalar(select(func.count()).select_from(Rental))
    geocoded = await db.scalar(
        select(func.count()).select_from(Rental).where(Rental.latitude.is_not(None))
    )

    by_source = await MetadataTracker(db).status_counts()

    zones = await db.scalar(select(func.count()).select_from(ScrapeZone))
    active_jobs = await db.scalar(
        select(func.count())
        .select_from(ZoneJob)
        .where(ZoneJob.status.in_([ZoneJobStatus.PENDING, ZoneJobStatus.RUNNING]))
    )

    logger.info(
        f"[{request_id}] Stats: {total_items} items, "
        f"{total_curated} curated, {total_rentals} rentals"
    )

    return StatsResponse(
        timestamp=datetime.utcnow(),
        total_items=total_items or 0,
        total_curated=total_curated or 0,
        total_rentals=total_rentals or 0,
        geocoded_rentals=geocoded or 0,
        transform_status_by_source=by_source,
        zones=zones or 0,
        active_jobs=active_jobs or 0,
        request_id=request_id,
    )
