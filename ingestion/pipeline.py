"""
Pipeline Orchestrator - drives one captured item through
Stage-1 (curate) → Stage-2 (canonicalize) → enrichment → canonical upsert.

Per-item state machine:

    captured → curating → curated → canonicalizing → canonicalized → enriching → complete
                  │                        │
                  └──────── failed ◄───────┘

Validation failures are returned as structured results. Enrichment
failures never fail an item; they are reported as warnings.
"""

import enum
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import (
    ConflictError,
    DatabaseError,
    EnrichmentError,
    NotFoundError,
    PipelineStateError,
    SchemaValidationError,
    StorageError,
    ValidationError,
)
from ingestion.enrichment.geocoding import NominatimGeocoder
from ingestion.enrichment.media import MediaMaterializer
from ingestion.loaders.listing_loader import ListingLoader
from ingestion.storage import LocalBlobStore
from ingestion.tracker import MetadataTracker, TransformOutcome
from ingestion.transformers import CURATED_TRANSFORMERS, CanonicalProjector
from models.base import CaptureStatus, SourceName
from models.metadata import IngestionMetadata
from models.rental import Rental
from schemas.listing import CuratedListingCreate, RentalDraft
from schemas.raw import load_raw_document
import logging

logger = logging.getLogger(__name__)

GEOCODE_MISS_WARNING = "Could not geocode address"


# ============================================================================
# State machine
# ============================================================================

class PipelineState(str, enum.Enum):
    CAPTURED = "captured"
    CURATING = "curating"
    CURATED = "curated"
    CANONICALIZING = "canonicalizing"
    CANONICALIZED = "canonicalized"
    ENRICHING = "enriching"
    COMPLETE = "complete"
    FAILED = "failed"


ALLOWED_TRANSITIONS = {
    PipelineState.CAPTURED: {PipelineState.CURATING},
    PipelineState.CURATING: {PipelineState.CURATED, PipelineState.FAILED},
    PipelineState.CURATED: {PipelineState.CANONICALIZING},
    PipelineState.CANONICALIZING: {PipelineState.CANONICALIZED, PipelineState.FAILED},
    PipelineState.CANONICALIZED: {PipelineState.ENRICHING},
    PipelineState.ENRICHING: {PipelineState.COMPLETE},
    PipelineState.COMPLETE: set(),
    PipelineState.FAILED: set(),
}


class PipelineRun:
    """State of one item within a single run_pipeline call."""

    def __init__(self, source: SourceName, source_item_id: str, force: bool = False):
        self.source = source
        self.source_item_id = source_item_id
        self.force = force
        self.state = PipelineState.CAPTURED
        self.history: List[PipelineState] = [self.state]

    @property
    def item_key(self) -> str:
        return f"{self.source.value}:{self.source_item_id}"

    def transition(self, new_state: PipelineState):
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise PipelineStateError(
                f"Illegal transition {self.state.value} -> {new_state.value}",
                context={"item": self.item_key},
            )
        logger.debug(f"{self.item_key}: {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)


# ============================================================================
# Result
# ============================================================================

class ResultStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"
    ALREADY_TRANSFORMED = "already_transformed"
    SKIPPED = "skipped"
    NOT_FOUND = "not_found"


@dataclass
class PipelineResult:
    status: ResultStatus
    source: SourceName
    source_item_id: str
    state: Optional[PipelineState] = None
    curated: Optional[Dict[str, Any]] = None
    canonical: Optional[Dict[str, Any]] = None
    warnings: List[str] = field(default_factory=list)
    error_kind: Optional[str] = None
    error_details: Any = None
    transform_attempts: Optional[int] = None

    @property
    def item_key(self) -> str:
        return f"{self.source.value}:{self.source_item_id}"

    @property
    def canonical_id(self) -> Optional[int]:
        return self.canonical.get("id") if self.canonical else None

    @property
    def curated_id(self) -> Optional[int]:
        return self.curated.get("id") if self.curated else None

    def to_dict(self) -> Dict[str, Any]:
        if self.status == ResultStatus.SUCCESS:
            return {
                "status": self.status.value,
                "curated": self.curated,
                "canonical": self.canonical,
                "warnings": self.warnings,
                "message": f"Transformed {self.item_key}",
            }
        body = {
            "status": self.status.value,
            "kind": self.error_kind,
            "details": self.error_details,
            "warnings": self.warnings,
        }
        if self.curated or self.canonical:
            body["curated"] = self.curated
            body["canonical"] = self.canonical
        return body


# ============================================================================
# Orchestrator
# ============================================================================

class PipelineOrchestrator:
    """
    Sequences the pipeline stages for one item at a time.

    Collaborators are injected; the orchestrator owns no global state.

    Attributes:
        db: Session used by the tracker and loaders
        artifact_store: Raw artifact store
        geocoder: Optional geocoder (geocoding skipped when None)
        media: Optional media materializer (media left untouched when None)
        transformers: Stage-1 transformers per source
        projector: Stage-2 projector
    """

    def __init__(
        self,
        db_session: AsyncSession,
        artifact_store: LocalBlobStore,
        geocoder: Optional[NominatimGeocoder] = None,
        media: Optional[MediaMaterializer] = None,
        transformers: Optional[Dict[SourceName, Any]] = None,
        projector: Optional[CanonicalProjector] = None,
    ):
        self.db = db_session
        self.artifact_store = artifact_store
        self.geocoder = geocoder
        self.media = media
        self.transformers = transformers or {s: cls() for s, cls in CURATED_TRANSFORMERS.items()}
        self.projector = projector or CanonicalProjector()
        self.tracker = MetadataTracker(db_session)
        self.loader = ListingLoader(db_session)

    async def run_pipeline(
        self,
        source: SourceName,
        source_item_id: str,
        force: bool = False,
    ) -> PipelineResult:
        """
        Run all stages for one captured item.

        Args:
            source: Capture source
            source_item_id: Item identifier within the source
            force: Re-run even if a canonical record already exists

        Returns:
            PipelineResult. Validation, storage and datastore failures are
            recorded on the tracker and reported as failed results.
        """
        source = SourceName(source)
        source_item_id = str(source_item_id)

        metadata = await self.tracker.get_by_key(source, source_item_id)
        if metadata is None:
            error = NotFoundError(f"No capture recorded for {source.value}:{source_item_id}")
            return PipelineResult(
                status=ResultStatus.NOT_FOUND,
                source=source,
                source_item_id=source_item_id,
                error_kind=error.kind,
                error_details=error.message,
            )

        if metadata.capture_status == CaptureStatus.FAILED:
            logger.info(f"{metadata.item_key}: capture failed, excluded from transformation")
            return PipelineResult(
                status=ResultStatus.SKIPPED,
                source=source,
                source_item_id=source_item_id,
                error_kind="capture_error",
                error_details=metadata.capture_error or "Capture failed",
            )

        if source not in self.transformers:
            return PipelineResult(
                status=ResultStatus.SKIPPED,
                source=source,
                source_item_id=source_item_id,
                error_kind="unsupported_source",
                error_details=f"No transformer registered for {source.value}",
            )

        if not force and metadata.canonical_id is not None:
            return self._already_transformed(metadata)

        metadata_id = metadata.id
        run = PipelineRun(source, source_item_id, force=force)
        warnings: List[str] = []
        logger.info(f"Running pipeline for {run.item_key} (force={force})")

        try:
            return await self._run_stages(run, metadata, warnings)
        except SQLAlchemyError as e:
            await self.db.rollback()
            error = DatabaseError(
                f"Datastore failure while {run.state.value} {run.item_key}",
                context={"item": run.item_key, "state": run.state.value},
                original_exception=e,
            )
            logger.error(str(error))
            attempts = await self._record_database_failure(metadata_id, run, e)
            return PipelineResult(
                status=ResultStatus.FAILED,
                source=source,
                source_item_id=source_item_id,
                state=run.state,
                warnings=warnings,
                error_kind=error.kind,
                error_details=error.message,
                transform_attempts=attempts,
            )

    # ========================================================================
    # Stages
    # ========================================================================

    async def _run_stages(
        self,
        run: PipelineRun,
        metadata: IngestionMetadata,
        warnings: List[str],
    ) -> PipelineResult:
        # PHASE 1: raw -> curated
        run.transition(PipelineState.CURATING)
        try:
            document = await self._load_document(run.source, metadata)
        except StorageError as e:
            return await self._fail(run, metadata, e.kind, e.message, warnings)
        except SchemaValidationError as e:
            return await self._fail(run, metadata, e.kind, [e.message], warnings)

        stage1 = self.transformers[run.source].parse(document, storage_path=metadata.storage_path)
        warnings.extend(stage1.warnings)
        if not stage1.ok:
            return await self._fail(run, metadata, ValidationError.kind, stage1.errors, warnings)

        curated: CuratedListingCreate = stage1.record
        curated_id = await self.loader.upsert_curated(curated)
        run.transition(PipelineState.CURATED)

        # PHASE 2: curated -> canonical draft
        run.transition(PipelineState.CANONICALIZING)
        stage2 = self.projector.project(curated)
        warnings.extend(stage2.warnings)
        if not stage2.ok:
            return await self._fail(
                run, metadata, ValidationError.kind, stage2.errors, warnings, curated_id=curated_id
            )
        draft: RentalDraft = stage2.record
        run.transition(PipelineState.CANONICALIZED)

        # PHASE 3: enrichment + canonical upsert
        run.transition(PipelineState.ENRICHING)
        existing = await self.loader.get_rental(run.source, run.source_item_id)
        enrichment = await self._enrich(run, curated, draft, existing, warnings)
        rental_id = await self.loader.upsert_rental(run.source, draft, enrichment)

        attempts = await self.tracker.advance_transform(
            metadata.id,
            run.state.value,
            TransformOutcome.succeeded(curated_id, rental_id),
            only_if_untransformed=not run.force,
        )
        if attempts is None:
            return await self._concurrent_winner(metadata.id)
        run.transition(PipelineState.COMPLETE)

        if warnings:
            logger.info(f"{run.item_key} complete with {len(warnings)} warning(s)")

        canonical = draft.model_dump(mode="json")
        canonical.update({k: (v.isoformat() if isinstance(v, datetime) else v) for k, v in enrichment.items()})
        canonical["id"] = rental_id
        return PipelineResult(
            status=ResultStatus.SUCCESS,
            source=run.source,
            source_item_id=run.source_item_id,
            state=run.state,
            curated={"id": curated_id, **curated.model_dump(mode="json")},
            canonical=canonical,
            warnings=warnings,
            transform_attempts=attempts,
        )

    async def _load_document(self, source: SourceName, metadata: IngestionMetadata):
        if not metadata.storage_path:
            raise StorageError(f"{metadata.item_key} has no raw artifact", context={"item": metadata.item_key})
        raw = await self.artifact_store.get(metadata.storage_path)
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise SchemaValidationError(
                f"Raw artifact {metadata.storage_path} is not valid JSON",
                context={"path": metadata.storage_path},
                original_exception=e,
            )
        return load_raw_document(source, data)

    async def _enrich(
        self,
        run: PipelineRun,
        curated: CuratedListingCreate,
        draft: RentalDraft,
        existing: Optional[Rental],
        warnings: List[str],
    ) -> Dict[str, Any]:
        """Coordinates and media for the canonical row (best effort)."""
        enrichment: Dict[str, Any] = {
            "latitude": draft.latitude,
            "longitude": draft.longitude,
            "geocoded_at": None,
            "images": list(existing.images) if existing else [],
            "videos": list(existing.videos) if existing else [],
        }

        # Coordinates: cache-by-presence, then geocoder
        if draft.has_coordinates:
            unchanged = (
                existing is not None
                and existing.geocoded_at is not None
                and (existing.latitude, existing.longitude) == (draft.latitude, draft.longitude)
            )
            enrichment["geocoded_at"] = existing.geocoded_at if unchanged else datetime.utcnow()
        elif existing is not None and existing.latitude is not None and existing.longitude is not None:
            enrichment.update(
                latitude=existing.latitude,
                longitude=existing.longitude,
                geocoded_at=existing.geocoded_at,
            )
        elif draft.address and self.geocoder is not None:
            try:
                coords = await self.geocoder.geocode(draft.address, draft.city, draft.postal_code)
            except EnrichmentError as e:
                logger.warning(f"{run.item_key}: geocoding error {e.message}")
                coords = None
            if coords is not None:
                enrichment.update(
                    latitude=coords.latitude,
                    longitude=coords.longitude,
                    geocoded_at=datetime.utcnow(),
                )
            else:
                warnings.append(GEOCODE_MISS_WARNING)

        # Media
        if self.media is not None:
            for kind, urls, column in (
                ("image", curated.image_urls, "images"),
                ("video", curated.video_urls, "videos"),
            ):
                if not urls:
                    continue
                paths, media_warnings = await self.media.materialize(urls, run.source_item_id, kind, run.source)
                warnings.extend(media_warnings)
                enrichment[column] = paths

        return enrichment

    # ========================================================================
    # Failure handling
    # ========================================================================

    async def _fail(
        self,
        run: PipelineRun,
        metadata: IngestionMetadata,
        kind: str,
        details: Any,
        warnings: List[str],
        curated_id: Optional[int] = None,
    ) -> PipelineResult:
        stage = run.state
        run.transition(PipelineState.FAILED)
        message = "; ".join(details) if isinstance(details, list) else str(details)

        attempts = await self.tracker.advance_transform(
            metadata.id,
            stage.value,
            TransformOutcome.failed(f"{stage.value}: {message}", curated_id=curated_id),
            only_if_untransformed=not run.force,
        )
        if attempts is None:
            return await self._concurrent_winner(metadata.id)
        return PipelineResult(
            status=ResultStatus.FAILED,
            source=run.source,
            source_item_id=run.source_item_id,
            state=run.state,
            curated={"id": curated_id} if curated_id is not None else None,
            warnings=warnings,
            error_kind=kind,
            error_details=details,
            transform_attempts=attempts,
        )

    def _already_transformed(self, metadata: IngestionMetadata) -> PipelineResult:
        conflict = ConflictError(f"{metadata.item_key} already transformed")
        logger.info(f"{conflict.message}; use force to re-run")
        return PipelineResult(
            status=ResultStatus.ALREADY_TRANSFORMED,
            source=metadata.source,
            source_item_id=metadata.source_item_id,
            state=PipelineState.COMPLETE,
            curated={"id": metadata.curated_id},
            canonical={"id": metadata.canonical_id},
            error_kind=conflict.kind,
            error_details=conflict.message,
            transform_attempts=metadata.transform_attempts,
        )

    async def _concurrent_winner(self, metadata_id: int) -> PipelineResult:
        """Result for a run whose item was completed by another run first."""
        return self._already_transformed(await self.tracker.get(metadata_id))

    async def _record_database_failure(
        self, metadata_id: int, run: PipelineRun, error: SQLAlchemyError
    ) -> Optional[int]:
        try:
            return await self.tracker.advance_transform(
                metadata_id,
                run.state.value,
                TransformOutcome.failed(f"{run.state.value}: database error: {type(error).__name__}"),
                only_if_untransformed=not run.force,
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Could not record failure for {run.item_key}: {e}")
            return None
