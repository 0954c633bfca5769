"""
Unit tests for media materialization
"""

import httpx
import pytest

from ingestion.enrichment.media import MediaMaterializer, extension_for
from models.base import SourceName


def make_materializer(store, handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return MediaMaterializer(store, client=client, user_agent="tests/1.0")


def test_extension_for_content_types():
    assert extension_for("image/png; charset=binary", "image") == "png"
    assert extension_for(None, "image") == "jpg"
    assert extension_for("application/octet-stream", "video") == "mp4"


@pytest.mark.asyncio
async def test_materialize_stores_in_order(media_store):
    def handler(request):
        return httpx.Response(200, content=request.url.path.encode(), headers={"content-type": "image/png"})

    materializer = make_materializer(media_store, handler)
    paths, warnings = await materializer.materialize(
        ["https://cdn.test/a.png", "https://cdn.test/b.png"], "123", "image", SourceName.FACEBOOK
    )

    assert warnings == []
    assert paths == ["facebook/123/image-0.png", "facebook/123/image-1.png"]
    assert await media_store.get("facebook/123/image-1.png") == b"/b.png"


@pytest.mark.asyncio
async def test_failed_download_becomes_warning(media_store):
    def handler(request):
        if request.url.path == "/missing.jpg":
            return httpx.Response(404)
        return httpx.Response(200, content=b"img", headers={"content-type": "image/jpeg"})

    materializer = make_materializer(media_store, handler)
    paths, warnings = await materializer.materialize(
        ["https://cdn.test/missing.jpg", "https://cdn.test/ok.jpg"], "555", "image", SourceName.CENTRIS
    )

    assert paths == ["centris/555/image-1.jpg"]
    assert warnings == ["image 1: Failed to download: HTTP 404"]


@pytest.mark.asyncio
async def test_existing_objects_are_reused(media_store):
    await media_store.put("facebook/123/image-0.jpg", b"original", "image/jpeg")

    materializer = make_materializer(
        media_store, lambda request: httpx.Response(200, content=b"new", headers={"content-type": "image/jpeg"})
    )
    paths, warnings = await materializer.materialize(
        ["https://cdn.test/a.jpg"], "123", "image", SourceName.FACEBOOK
    )

    assert paths == ["facebook/123/image-0.jpg"]
    assert warnings == []
    assert await media_store.get("facebook/123/image-0.jpg") == b"original"


@pytest.mark.asyncio
async def test_stored_media_survives_expired_urls(media_store):
    await media_store.put("facebook/123/image-0.png", b"kept", "image/png")
    requested = []

    def handler(request):
        requested.append(request.url.path)
        return httpx.Response(403)

    materializer = make_materializer(media_store, handler)
    paths, warnings = await materializer.materialize(
        ["https://cdn.test/expired-a.jpg", "https://cdn.test/expired-b.jpg"], "123", "image", SourceName.FACEBOOK
    )

    assert paths == ["facebook/123/image-0.png"]
    assert warnings == ["image 2: Failed to download: HTTP 403"]
    assert requested == ["/expired-b.jpg"]
