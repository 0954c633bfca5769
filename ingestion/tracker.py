"""
Ingestion Metadata Tracker - one durable record per captured item.

Write paths:
- record_capture: idempotent on (source, source_item_id); a completed
  capture is never overwritten
- advance_transform: single atomic UPDATE per transform attempt

Per-key exclusivity relies on the unique index and ON CONFLICT semantics
of the backing store, not on in-process locks.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import dialect_insert
from core.exceptions import NotFoundError
from models.base import CaptureStatus, SourceName, TransformStatus
from models.metadata import IngestionMetadata
from schemas.raw import CapturePreview
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptureRecord:
    metadata_id: int
    already_captured: bool


@dataclass(frozen=True)
class TransformOutcome:
    """
    Result of one transform attempt.

    A success outcome must carry both the curated and the canonical id.
    """
    status: TransformStatus
    error: Optional[str] = None
    curated_id: Optional[int] = None
    canonical_id: Optional[int] = None
    transformed_at: Optional[datetime] = None

    def __post_init__(self):
        if self.status == TransformStatus.SUCCESS and (self.curated_id is None or self.canonical_id is None):
            raise ValueError("A successful transform requires curated_id and canonical_id")

    @classmethod
    def succeeded(cls, curated_id: int, canonical_id: int) -> "TransformOutcome":
        return cls(
            status=TransformStatus.SUCCESS,
            curated_id=curated_id,
            canonical_id=canonical_id,
            transformed_at=datetime.utcnow(),
        )

    @classmethod
    def failed(cls, error: str, curated_id: Optional[int] = None) -> "TransformOutcome":
        return cls(status=TransformStatus.FAILED, error=error, curated_id=curated_id)


class MetadataTracker:
    """Reads and writes `ingestion_metadata` rows through an injected session."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    # ========================================================================
    # Reads
    # ========================================================================

    async def get(self, metadata_id: int) -> Optional[IngestionMetadata]:
        result = await self.db.execute(
            select(IngestionMetadata)
            .where(IngestionMetadata.id == metadata_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_key(self, source: SourceName, source_item_id: str) -> Optional[IngestionMetadata]:
        result = await self.db.execute(
            select(IngestionMetadata)
            .where(
                IngestionMetadata.source == SourceName(source),
                IngestionMetadata.source_item_id == str(source_item_id),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_for_backfill(
        self,
        source: SourceName,
        force: bool = False,
        limit: Optional[int] = None,
    ) -> List[IngestionMetadata]:
        """
        Items eligible for (re-)transformation, in capture order.

        Without `force`: captured items that have no canonical record yet.
        With `force`: every successfully captured item.
        """
        query = (
            select(IngestionMetadata)
            .where(
                IngestionMetadata.source == SourceName(source),
                IngestionMetadata.capture_status != CaptureStatus.FAILED,
            )
            .order_by(IngestionMetadata.id)
        )
        if not force:
            query = query.where(IngestionMetadata.canonical_id.is_(None))
        if limit:
            query = query.limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def status_counts(self) -> Dict[str, Dict[str, int]]:
        """Transform status counts per source."""
        result = await self.db.execute(
            select(
                IngestionMetadata.source,
                IngestionMetadata.transform_status,
                func.count(IngestionMetadata.id),
            ).group_by(IngestionMetadata.source, IngestionMetadata.transform_status)
        )
        counts: Dict[str, Dict[str, int]] = {}
        for source, status, count in result.all():
            counts.setdefault(SourceName(source).value, {})[TransformStatus(status).value] = count
        return counts

    # ========================================================================
    # Writes
    # ========================================================================

    async def record_capture(
        self,
        source: SourceName,
        source_item_id: str,
        storage_path: Optional[str],
        preview: Optional[CapturePreview] = None,
        status: CaptureStatus = CaptureStatus.SUCCESS,
        error: Optional[str] = None,
        source_url: Optional[str] = None,
        scraper_version: Optional[str] = None,
        size_bytes: Optional[int] = None,
        duration_ms: Optional[int] = None,
        captured_at: Optional[datetime] = None,
    ) -> CaptureRecord:
        """
        Record a capture for (source, source_item_id).

        A key whose previous capture succeeded is returned unchanged with
        `already_captured=True`. Failed or partial captures are replaced.
        """
        source = SourceName(source)
        source_item_id = str(source_item_id)
        preview = preview or CapturePreview()
        now = datetime.utcnow()

        values = {
            "source_url": source_url,
            "scraper_version": scraper_version,
            "storage_path": storage_path,
            "raw_data_size_bytes": size_bytes,
            "capture_status": status,
            "capture_error": error,
            "capture_duration_ms": duration_ms,
            "captured_at": captured_at or now,
            "title_preview": preview.title[:100] if preview.title else None,
            "price_preview": preview.price[:100] if preview.price else None,
            "address_preview": preview.address[:255] if preview.address else None,
            # A failed capture never reaches the transform stages
            "transform_status": TransformStatus.SKIPPED if status == CaptureStatus.FAILED else TransformStatus.PENDING,
            "updated_at": now,
        }

        existing = await self.get_by_key(source, source_item_id)
        if existing is not None:
            if existing.capture_status == CaptureStatus.SUCCESS:
                logger.info(f"{existing.item_key} already captured (metadata {existing.id})")
                return CaptureRecord(metadata_id=existing.id, already_captured=True)

            await self.db.execute(
                update(IngestionMetadata)
                .where(IngestionMetadata.id == existing.id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
            logger.info(
                f"Replaced {existing.capture_status.value} capture for {existing.item_key} "
                f"with {status.value}"
            )
            return CaptureRecord(metadata_id=existing.id, already_captured=False)

        insert = dialect_insert(self.db)
        stmt = (
            insert(IngestionMetadata)
            .values(source=source, source_item_id=source_item_id, created_at=now, **values)
            .on_conflict_do_nothing(index_elements=["source", "source_item_id"])
            .returning(IngestionMetadata.id)
        )
        result = await self.db.execute(stmt)
        metadata_id = result.scalar_one_or_none()
        await self.db.commit()

        if metadata_id is None:
            # Lost an insert race: the winner's row is authoritative
            winner = await self.get_by_key(source, source_item_id)
            logger.info(f"{source.value}:{source_item_id} captured concurrently (metadata {winner.id})")
            return CaptureRecord(metadata_id=winner.id, already_captured=True)

        logger.info(f"Recorded {status.value} capture for {source.value}:{source_item_id} (metadata {metadata_id})")
        return CaptureRecord(metadata_id=metadata_id, already_captured=False)

    async def advance_transform(
        self,
        metadata_id: int,
        stage: str,
        outcome: TransformOutcome,
        only_if_untransformed: bool = False,
    ) -> Optional[int]:
        """
        Record the outcome of one transform attempt.

        Status, error, attempt counter and ids are written in a single
        UPDATE; the counter is incremented in SQL. Ids are only written when
        supplied, so a failed re-run keeps earlier ids.

        With `only_if_untransformed` the UPDATE is a compare-and-set on
        `canonical_id IS NULL`: a row completed by a concurrent run is left
        untouched and None is returned.

        Returns:
            The new transform_attempts value, or None when the row was
            already transformed
        """
        values = {
            "transform_status": outcome.status,
            "transform_error": outcome.error,
            "transform_attempts": IngestionMetadata.transform_attempts + 1,
            "updated_at": datetime.utcnow(),
        }
        if outcome.curated_id is not None:
            values["curated_id"] = outcome.curated_id
        if outcome.canonical_id is not None:
            values["canonical_id"] = outcome.canonical_id
        if outcome.transformed_at is not None:
            values["transformed_at"] = outcome.transformed_at

        stmt = update(IngestionMetadata).where(IngestionMetadata.id == metadata_id)
        if only_if_untransformed:
            stmt = stmt.where(IngestionMetadata.canonical_id.is_(None))

        result = await self.db.execute(
            stmt.values(**values)
            .returning(IngestionMetadata.transform_attempts)
            .execution_options(synchronize_session=False)
        )
        attempts = result.scalar_one_or_none()
        if attempts is None:
            await self.db.rollback()
            if only_if_untransformed and await self.get(metadata_id) is not None:
                logger.info(f"Metadata {metadata_id} {stage}: already transformed by a concurrent run")
                return None
            raise NotFoundError(f"Metadata {metadata_id} not found", context={"metadata_id": metadata_id})
        await self.db.commit()

        log = logger.info if outcome.status == TransformStatus.SUCCESS else logger.warning
        log(
            f"Metadata {metadata_id} {stage}: {outcome.status.value} "
            f"(attempt {attempts}){' - ' + outcome.error if outcome.error else ''}"
        )
        return attempts
