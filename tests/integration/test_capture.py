"""
Integration tests for the capture boundary
"""

import json
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, select

from core.exceptions import CaptureError
from ingestion.capture import CaptureService
from ingestion.storage import PutResult
from ingestion.tracker import MetadataTracker
from models.base import CaptureStatus, SourceName, TransformStatus
from models.metadata import IngestionMetadata

CAPTURED_AT = datetime(2024, 1, 15, 10, 0, 0)


async def metadata_count(session):
    return (await session.execute(select(func.count(IngestionMetadata.id)))).scalar_one()


@pytest.mark.asyncio
async def test_ingest_stores_artifact_and_records_metadata(db_session, artifact_store, facebook_wrapped_payload):
    service = CaptureService(db_session, artifact_store)

    result = await service.ingest(SourceName.FACEBOOK, facebook_wrapped_payload, captured_at=CAPTURED_AT)

    assert result.already_captured is False
    assert result.storage_path == "facebook/2024/01/1234567890.json"
    stored = json.loads(await artifact_store.get(result.storage_path))
    assert stored["variant"] == "wrapped"
    assert stored["raw_data"]["title"] == "Beautiful 4 1/2 in the Plateau"

    metadata = await MetadataTracker(db_session).get(result.metadata_id)
    assert metadata.capture_status == CaptureStatus.SUCCESS
    assert metadata.transform_status == TransformStatus.PENDING
    assert metadata.title_preview == "Beautiful 4 1/2 in the Plateau"
    assert metadata.scraper_version == "bookmarklet-v2"
    assert metadata.raw_data_size_bytes > 0


@pytest.mark.asyncio
async def test_second_ingest_is_already_captured(db_session, artifact_store, facebook_wrapped_payload):
    service = CaptureService(db_session, artifact_store)
    first = await service.ingest(SourceName.FACEBOOK, facebook_wrapped_payload, captured_at=CAPTURED_AT)

    second = await service.ingest(
        SourceName.FACEBOOK, facebook_wrapped_payload, captured_at=datetime(2024, 2, 1)
    )

    assert second.already_captured is True
    assert second.metadata_id == first.metadata_id
    assert second.storage_path == first.storage_path
    assert not await artifact_store.exists("facebook/2024/02/1234567890.json")
    assert await metadata_count(db_session) == 1


@pytest.mark.asyncio
async def test_legacy_shape_is_stored_tagged(db_session, artifact_store, facebook_legacy_payload):
    result = await CaptureService(db_session, artifact_store).ingest(
        SourceName.FACEBOOK, facebook_legacy_payload, captured_at=CAPTURED_AT
    )

    stored = json.loads(await artifact_store.get(result.storage_path))
    assert stored["variant"] == "legacy"
    assert stored["facebook_id"] == "9876543210"


@pytest.mark.asyncio
async def test_malformed_document_records_nothing(db_session, artifact_store):
    service = CaptureService(db_session, artifact_store)

    with pytest.raises(CaptureError) as exc_info:
        await service.ingest(SourceName.FACEBOOK, {"title": "missing id"})

    assert exc_info.value.kind == "capture_error"
    assert await metadata_count(db_session) == 0


@pytest.mark.asyncio
async def test_unsafe_item_id_is_rejected(db_session, artifact_store, centris_payload):
    centris_payload["centris_id"] = "../../etc"

    with pytest.raises(CaptureError):
        await CaptureService(db_session, artifact_store).ingest(SourceName.CENTRIS, centris_payload)

    assert await metadata_count(db_session) == 0


@pytest.mark.asyncio
async def test_storage_failure_records_failed_capture(db_session, artifact_store, centris_payload):
    broken_store = MagicMock()
    broken_store.put = AsyncMock(return_value=PutResult.ERROR)

    with pytest.raises(CaptureError):
        await CaptureService(db_session, broken_store).ingest(
            SourceName.CENTRIS, centris_payload, captured_at=CAPTURED_AT
        )

    metadata = await MetadataTracker(db_session).get_by_key(SourceName.CENTRIS, "28374651")
    assert metadata.capture_status == CaptureStatus.FAILED
    assert metadata.transform_status == TransformStatus.SKIPPED
    assert metadata.storage_path is None

    # A later successful capture replaces the failed one in place
    result = await CaptureService(db_session, artifact_store).ingest(
        SourceName.CENTRIS, centris_payload, captured_at=CAPTURED_AT
    )
    assert result.metadata_id == metadata.id
    assert result.already_captured is False
    metadata = await MetadataTracker(db_session).get(metadata.id)
    assert metadata.capture_status == CaptureStatus.SUCCESS
    assert metadata.storage_path == "centris/2024/01/28374651.json"


@pytest.mark.asyncio
async def test_existing_artifact_is_reused(db_session, artifact_store, centris_payload):
    path = "centris/2024/01/28374651.json"
    await artifact_store.put(path, b"{}", "application/json")

    result = await CaptureService(db_session, artifact_store).ingest(
        SourceName.CENTRIS, centris_payload, captured_at=CAPTURED_AT
    )

    assert result.storage_path == path
    assert result.already_captured is False
    assert await artifact_store.get(path) == b"{}"
