"""
Unit tests for the write-once blob store
"""

import json

import pytest
from datetime import datetime

from core.exceptions import ArtifactNotFoundError, StorageError
from ingestion.storage import LocalBlobStore, PutResult, artifact_path, media_path
from models.base import SourceName


def test_artifact_path_is_partitioned():
    path = artifact_path(SourceName.FACEBOOK, "1234567890", datetime(2024, 3, 9, 12, 0))
    assert path == "facebook/2024/03/1234567890.json"


def test_unsafe_ids_rejected():
    with pytest.raises(StorageError):
        artifact_path(SourceName.CENTRIS, "../../etc/passwd", datetime(2024, 1, 1))
    with pytest.raises(StorageError):
        media_path(SourceName.CENTRIS, "a/b", "image", 0, "jpg")


@pytest.mark.asyncio
async def test_put_never_overwrites(tmp_path):
    store = LocalBlobStore(str(tmp_path))

    assert await store.put("facebook/2024/01/1.json", b"first", "application/json") == PutResult.OK
    assert await store.put("facebook/2024/01/1.json", b"second", "application/json") == PutResult.EXISTS

    assert await store.get("facebook/2024/01/1.json") == b"first"
    sidecar = json.loads((tmp_path / "facebook/2024/01/1.json.meta.json").read_text())
    assert sidecar["content_type"] == "application/json"
    assert await store.exists("facebook/2024/01/1.json")


@pytest.mark.asyncio
async def test_get_missing_blob(tmp_path):
    store = LocalBlobStore(str(tmp_path))

    with pytest.raises(ArtifactNotFoundError):
        await store.get("centris/2024/01/missing.json")
    assert not await store.exists("centris/2024/01/missing.json")


@pytest.mark.asyncio
async def test_put_outside_root_is_an_error(tmp_path):
    store = LocalBlobStore(str(tmp_path / "root"))
    assert await store.put("../escape.json", b"{}", "application/json") == PutResult.ERROR


@pytest.mark.asyncio
async def test_find_matches_any_extension(tmp_path):
    store = LocalBlobStore(str(tmp_path))
    await store.put("facebook/123/image-1.png", b"png", "image/png")
    await store.put("facebook/123/image-10.jpg", b"jpg", "image/jpeg")

    assert await store.find("facebook/123/image-1") == "facebook/123/image-1.png"
    assert await store.find("facebook/123/image-0") is None
    assert await store.find("centris/999/image-0") is None
