"""
Listing pipeline trigger endpoints: capture, transform, backfill, metadata
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

from api.dependencies import get_backfill_runner, get_capture_service, get_orchestrator, get_tracker
from core.exceptions import NotFoundError, ValidationError
from ingestion.backfill import BackfillRunner
from ingestion.capture import CaptureService
from ingestion.pipeline import PipelineOrchestrator, PipelineResult, ResultStatus
from ingestion.tracker import MetadataTracker
from models.base import SourceName
from schemas.api import BackfillRequest, BatchSummaryResponse, CaptureResponse, MetadataResponse, TransformRequest
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["Listings"])


def result_status_code(result: PipelineResult) -> int:
    """HTTP status for a pipeline result"""
    if result.status == ResultStatus.SUCCESS:
        return 200
    if result.status == ResultStatus.NOT_FOUND:
        return 404
    if result.status == ResultStatus.ALREADY_TRANSFORMED:
        return 409
    if result.status == ResultStatus.SKIPPED:
        return 422
    if result.error_kind == ValidationError.kind:
        return 422
    return 500


@router.post("/{source}/capture", response_model=CaptureResponse)
async def capture_item(
    source: SourceName,
    request: Request,
    payload: Dict[str, Any] = Body(..., description="Raw document as produced by the capture collaborator"),
    service: CaptureService = Depends(get_capture_service),
):
    """
    Store a raw document and record it on the tracker.

    Re-submitting an already captured item is a no-op that returns the
    existing record with `already_captured: true`.
    """
    request_id = getattr(request.state, "request_id", None)
    result = await service.ingest(source, payload)
    logger.info(
        f"[{request_id}] capture {source.value}:{result.source_item_id} "
        f"(already_captured={result.already_captured})"
    )
    return result.to_dict()


@router.post("/{source}/transform")
async def transform_item(
    source: SourceName,
    body: TransformRequest,
    request: Request,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """
    Run the pipeline for one captured item.

    Returns `{curated, canonical, warnings}` on success or `{kind, details}`
    with 404 (not captured), 409 (already transformed), 422 (validation) or
    500 (anything else).
    """
    request_id = getattr(request.state, "request_id", None)
    logger.info(f"[{request_id}] transform {source.value}:{body.source_item_id} force={body.force}")

    result = await orchestrator.run_pipeline(source, body.source_item_id, force=body.force)
    return JSONResponse(status_code=result_status_code(result), content=result.to_dict())


@router.post("/{source}/backfill", response_model=BatchSummaryResponse)
async def backfill_source(
    source: SourceName,
    request: Request,
    body: Optional[BackfillRequest] = None,
    runner: BackfillRunner = Depends(get_backfill_runner),
):
    """Transform every pending item of a source sequentially"""
    body = body or BackfillRequest()
    request_id = getattr(request.state, "request_id", None)
    logger.info(f"[{request_id}] backfill {source.value} force={body.force} limit={body.limit}")

    summary = await runner.run(source, force=body.force, limit=body.limit)
    return summary.to_dict()


@router.get("/{source}/metadata/{source_item_id}", response_model=MetadataResponse)
async def get_metadata(
    source: SourceName,
    source_item_id: str,
    tracker: MetadataTracker = Depends(get_tracker),
):
    metadata = await tracker.get_by_key(source, source_item_id)
    if metadata is None:
        raise NotFoundError(
            f"No capture recorded for {source.value}:{source_item_id}",
            context={"source": source.value, "source_item_id": source_item_id},
        )
    return metadata
