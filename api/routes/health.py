"""
Health check endpoint with database, storage and pipeline status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from api.dependencies import get_db, get_runtime
from ingestion.runtime import PipelineRuntime
from schemas.api import HealthCheckResponse
from models.base import TransformStatus
from models.metadata import IngestionMetadata
from datetime import datetime
import os
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    runtime: PipelineRuntime = Depends(get_runtime),
):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Raw artifact storage writability
    - Pending and failed item counts
    """
    db_connected = False
    pending = failed = 0

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {str(e)}")

    if db_connected:
        result = await db.execute(
            select(IngestionMetadata.transform_status, func.count())
            .where(IngestionMetadata.transform_status.in_([TransformStatus.PENDING, TransformStatus.FAILED]))
            .group_by(IngestionMetadata.transform_status)
        )
        counts = {status: count for status, count in result.all()}
        pending = counts.get(TransformStatus.PENDING, 0)
        failed = counts.get(TransformStatus.FAILED, 0)

    root = runtime.artifact_store.root
    storage_writable = os.access(root, os.W_OK) if root.exists() else os.access(root.parent, os.W_OK)

    return HealthCheckResponse(
        status="healthy",
        timestamp=datetime.utcnow(),
        database_connected=db_connected,
        raw_storage_writable=storage_writable,
        pending_items=pending,
        failed_items=failed,
    )
