"""
Media materialization: download remote images/videos and store them under
our own identifiers.

Per-URL failures become warnings; the batch always completes.
"""

from typing import List, Optional, Tuple

import httpx

from core.config import settings
from core.exceptions import MediaDownloadError
from ingestion.storage import LocalBlobStore, PutResult, media_path, media_stem
from models.base import SourceName
import logging

logger = logging.getLogger(__name__)

CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "video/mp4": "mp4",
    "video/quicktime": "mov",
    "video/webm": "webm",
}

DEFAULT_EXTENSIONS = {"image": "jpg", "video": "mp4"}


def extension_for(content_type: Optional[str], kind: str) -> str:
    """File extension for a response content type."""
    base = (content_type or "").split(";")[0].strip().lower()
    return CONTENT_TYPE_EXTENSIONS.get(base, DEFAULT_EXTENSIONS.get(kind, "jpg"))


class MediaMaterializer:
    """
    Relocate remote media into the owned media store.

    Paths: `{source}/{owner_id}/{kind}-{index}.{ext}`. An object already
    stored for a slot is reused without downloading, so a re-run keeps
    media whose remote URLs have since expired.
    """

    def __init__(
        self,
        store: LocalBlobStore,
        client: Optional[httpx.AsyncClient] = None,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.store = store
        self.client = client
        self.user_agent = user_agent or settings.MEDIA_USER_AGENT
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS

    async def materialize(
        self,
        urls: List[str],
        owner_id: str,
        kind: str,
        source: SourceName,
    ) -> Tuple[List[str], List[str]]:
        """
        Download and store each URL.

        Returns:
            (stored paths in input order with failures omitted, warnings)
        """
        paths: List[str] = []
        warnings: List[str] = []

        for index, url in enumerate(urls):
            try:
                paths.append(await self._materialize_one(url, owner_id, kind, source, index))
            except MediaDownloadError as e:
                warnings.append(f"{kind} {index + 1}: {e.message}")

        if warnings:
            logger.warning(f"{len(warnings)}/{len(urls)} {kind}(s) for {owner_id} not materialized")
        return paths, warnings

    async def _materialize_one(self, url: str, owner_id: str, kind: str, source: SourceName, index: int) -> str:
        stored = await self.store.find(media_stem(source, owner_id, kind, index))
        if stored is not None:
            logger.debug(f"Reusing stored media {stored}")
            return stored

        content, content_type = await self._download(url)
        path = media_path(source, owner_id, kind, index, extension_for(content_type, kind))

        outcome = await self.store.put(path, content, content_type or "application/octet-stream")
        if outcome == PutResult.ERROR:
            raise MediaDownloadError(f"Failed to store {path}", context={"url": url, "path": path})
        if outcome == PutResult.EXISTS:
            logger.debug(f"Reusing stored media {path}")
        return path

    async def _download(self, url: str) -> Tuple[bytes, Optional[str]]:
        headers = {"User-Agent": self.user_agent}
        try:
            if self.client is not None:
                response = await self.client.get(url, headers=headers, timeout=self.timeout, follow_redirects=True)
            else:
                async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                    response = await client.get(url, headers=headers)
        except httpx.HTTPError as e:
            raise MediaDownloadError(f"Failed to download: {type(e).__name__}", context={"url": url}, original_exception=e)

        if response.status_code != 200:
            raise MediaDownloadError(
                f"Failed to download: HTTP {response.status_code}",
                context={"url": url, "status_code": response.status_code},
            )
        return response.content, response.headers.get("content-type")
