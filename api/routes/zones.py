"""
Zone planning endpoints
"""

from typing import List

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.dependencies import get_zone_orchestrator
from ingestion.zones import AlreadyComplete, ZoneBounds, ZoneFilters, ZoneOrchestrator
from schemas.api import (
    AlreadyCompleteResponse,
    JobCreate,
    ZoneCreate,
    ZoneJobResponse,
    ZoneResponse,
    ZoneStatsResponse,
)
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/zones", tags=["Zones"])


@router.post("", response_model=ZoneResponse, status_code=201)
async def create_zone(
    body: ZoneCreate,
    request: Request,
    zones: ZoneOrchestrator = Depends(get_zone_orchestrator),
):
    """Create a zone; total and captured counts are computed immediately"""
    request_id = getattr(request.state, "request_id", None)
    logger.info(f"[{request_id}] POST /zones name={body.name}")

    zone = await zones.create_zone(
        name=body.name,
        bounds=ZoneBounds(body.min_lat, body.max_lat, body.min_lng, body.max_lng),
        filters=ZoneFilters(body.min_units, body.max_units),
        description=body.description,
        target_limit=body.target_limit,
    )
    return zone


@router.get("", response_model=List[ZoneResponse])
async def list_zones(zones: ZoneOrchestrator = Depends(get_zone_orchestrator)):
    return await zones.list_zones()


@router.get("/{zone_id}", response_model=ZoneResponse)
async def get_zone(zone_id: int, zones: ZoneOrchestrator = Depends(get_zone_orchestrator)):
    return await zones.get_zone(zone_id)


@router.get("/{zone_id}/stats", response_model=ZoneStatsResponse)
async def zone_stats(zone_id: int, zones: ZoneOrchestrator = Depends(get_zone_orchestrator)):
    """Recompute completion statistics for a zone"""
    stats = await zones.refresh_stats(zone_id)
    return stats.to_dict()


@router.post("/{zone_id}/jobs", response_model=ZoneJobResponse, status_code=201)
async def create_job(
    zone_id: int,
    body: JobCreate,
    request: Request,
    zones: ZoneOrchestrator = Depends(get_zone_orchestrator),
):
    """
    Plan a capture job of up to `limit` uncaptured items.

    Capture itself runs out-of-band. A fully captured zone returns 200
    with `already_complete: true` and no job is created.
    """
    request_id = getattr(request.state, "request_id", None)
    outcome = await zones.create_job(zone_id, body.limit)

    if isinstance(outcome, AlreadyComplete):
        logger.info(f"[{request_id}] zone {zone_id} already complete")
        payload = AlreadyCompleteResponse(
            zone_id=zone_id,
            stats=ZoneStatsResponse(**outcome.stats.to_dict()),
        )
        return JSONResponse(status_code=200, content=payload.model_dump(mode="json"))

    logger.info(f"[{request_id}] zone {zone_id} job {outcome.id}: {outcome.total_to_scrape} item(s)")
    return outcome


@router.get("/{zone_id}/jobs", response_model=List[ZoneJobResponse])
async def list_jobs(zone_id: int, zones: ZoneOrchestrator = Depends(get_zone_orchestrator)):
    return await zones.list_jobs(zone_id)


@router.post("/jobs/{job_id}/cancel", response_model=ZoneJobResponse)
async def cancel_job(job_id: int, zones: ZoneOrchestrator = Depends(get_zone_orchestrator)):
    return await zones.cancel_job(job_id)
