"""
Capture boundary: accept a raw document from a capture collaborator,
persist it as an immutable artifact and record it on the tracker.
"""

import json
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import CaptureError, SchemaValidationError, StorageError
from ingestion.storage import JSON_CONTENT_TYPE, LocalBlobStore, PutResult, artifact_path
from ingestion.tracker import MetadataTracker
from models.base import CaptureStatus, SourceName
from schemas.raw import resolve_raw_document
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptureResult:
    metadata_id: int
    source: SourceName
    source_item_id: str
    storage_path: Optional[str]
    already_captured: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metadata_id": self.metadata_id,
            "source": self.source.value,
            "source_item_id": self.source_item_id,
            "storage_path": self.storage_path,
            "already_captured": self.already_captured,
        }


class CaptureService:
    """
    Resolve, store and record captured documents.

    Attributes:
        db: Session for the metadata tracker
        artifact_store: Raw artifact blob store
    """

    def __init__(self, db_session: AsyncSession, artifact_store: LocalBlobStore):
        self.db = db_session
        self.artifact_store = artifact_store
        self.tracker = MetadataTracker(db_session)

    async def ingest(
        self,
        source: SourceName,
        payload: Dict[str, Any],
        captured_at: Optional[datetime] = None,
    ) -> CaptureResult:
        """
        Ingest one raw document.

        Raises:
            CaptureError: Malformed document or artifact could not be stored
        """
        started = time.monotonic()
        source = SourceName(source)
        captured_at = captured_at or datetime.utcnow()

        try:
            document = resolve_raw_document(source, payload)
        except SchemaValidationError as e:
            raise CaptureError(
                f"Malformed {source.value} document",
                context={"source": source.value},
                original_exception=e,
            )

        item_id = document.source_item_id
        existing = await self.tracker.get_by_key(source, item_id)
        if existing is not None and existing.capture_status == CaptureStatus.SUCCESS:
            logger.info(f"{existing.item_key} already captured, skipping artifact write")
            return CaptureResult(existing.id, source, item_id, existing.storage_path, already_captured=True)

        try:
            path = artifact_path(source, item_id, captured_at)
        except StorageError as e:
            raise CaptureError(
                f"Invalid item id for {source.value}", context={"source_item_id": item_id}, original_exception=e
            )
        body = json.dumps(document.model_dump(mode="json", by_alias=True), ensure_ascii=False).encode("utf-8")

        outcome = await self.artifact_store.put(path, body, JSON_CONTENT_TYPE)
        if outcome == PutResult.ERROR:
            await self.tracker.record_capture(
                source,
                item_id,
                storage_path=None,
                preview=document.preview(),
                status=CaptureStatus.FAILED,
                error=f"Failed to store raw artifact at {path}",
                source_url=document.source_url,
                scraper_version=document.scraper_version,
                captured_at=captured_at,
            )
            raise CaptureError(f"Failed to store raw artifact at {path}", context={"path": path})
        if outcome == PutResult.EXISTS:
            logger.info(f"Raw artifact {path} already stored, reusing it")

        record = await self.tracker.record_capture(
            source,
            item_id,
            storage_path=path,
            preview=document.preview(),
            status=CaptureStatus.SUCCESS,
            source_url=document.source_url,
            scraper_version=document.scraper_version,
            size_bytes=len(body),
            duration_ms=int((time.monotonic() - started) * 1000),
            captured_at=captured_at,
        )
        return CaptureResult(record.metadata_id, source, item_id, path, record.already_captured)
