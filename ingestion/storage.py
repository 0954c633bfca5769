"""
Append-only blob storage for raw artifacts and materialized media.

Objects are never overwritten: writing to an existing path reports
`PutResult.EXISTS` and leaves the stored bytes untouched, which keeps the
raw capture history auditable.

Raw artifact paths are partitioned as `{source}/{YYYY}/{MM}/{source_item_id}.json`.
"""

import asyncio
import enum
import json
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from core.exceptions import ArtifactNotFoundError, StorageError
from models.base import SourceName
import logging

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
SIDECAR_SUFFIX = ".meta.json"

SAFE_SEGMENT_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")


class PutResult(str, enum.Enum):
    OK = "ok"
    EXISTS = "exists"
    ERROR = "error"


def _safe_segment(value: str, label: str) -> str:
    value = str(value).strip()
    if not value or value in (".", "..") or not SAFE_SEGMENT_PATTERN.match(value):
        raise StorageError(f"Unsafe {label} for storage path: {value!r}", context={label: value})
    return value


def artifact_path(source: SourceName, source_item_id: str, captured_at: datetime) -> str:
    """Partitioned path for a raw artifact."""
    source = SourceName(source)
    item = _safe_segment(source_item_id, "source_item_id")
    return f"{source.value}/{captured_at:%Y}/{captured_at:%m}/{item}.json"


def media_stem(source: SourceName, owner_id: str, kind: str, index: int) -> str:
    """Media path without its extension."""
    source = SourceName(source)
    owner = _safe_segment(owner_id, "owner_id")
    return f"{source.value}/{owner}/{kind}-{index}"


def media_path(source: SourceName, owner_id: str, kind: str, index: int, extension: str) -> str:
    """Path for a materialized media object."""
    return f"{media_stem(source, owner_id, kind, index)}.{extension}"


class LocalBlobStore:
    """
    Filesystem-backed blob store rooted at `root`.

    Writes use exclusive creation, so two writers racing on one path
    cannot both succeed. File work runs in a worker thread and every
    handle is closed before control returns to the event loop.
    """

    def __init__(self, root: str):
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        full = (self.root / path).resolve()
        root = self.root.resolve()
        if root != full and root not in full.parents:
            raise StorageError(f"Path escapes storage root: {path}", context={"path": path})
        return full

    async def put(self, path: str, data: bytes, content_type: str) -> PutResult:
        try:
            full = self._resolve(path)
        except StorageError as e:
            logger.error(str(e))
            return PutResult.ERROR
        try:
            return await asyncio.to_thread(self._write, full, data, content_type)
        except OSError as e:
            logger.error(f"Failed to write blob {path}: {e}")
            return PutResult.ERROR

    def _write(self, full: Path, data: bytes, content_type: str) -> PutResult:
        full.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(full, "xb") as f:
                f.write(data)
        except FileExistsError:
            return PutResult.EXISTS

        sidecar = {
            "content_type": content_type,
            "size_bytes": len(data),
            "written_at": datetime.utcnow().isoformat(),
        }
        with open(f"{full}{SIDECAR_SUFFIX}", "w", encoding="utf-8") as f:
            json.dump(sidecar, f)
        return PutResult.OK

    async def get(self, path: str) -> bytes:
        full = self._resolve(path)
        try:
            return await asyncio.to_thread(full.read_bytes)
        except FileNotFoundError as e:
            raise ArtifactNotFoundError(
                f"No blob at {path}", context={"path": path}, original_exception=e
            )
        except OSError as e:
            raise StorageError(
                f"Failed to read blob {path}", context={"path": path}, original_exception=e
            )

    async def exists(self, path: str) -> bool:
        try:
            full = self._resolve(path)
        except StorageError:
            return False
        return await asyncio.to_thread(os.path.exists, full)

    async def find(self, stem: str) -> Optional[str]:
        """First stored path named `{stem}.<extension>`, or None."""
        try:
            full = self._resolve(stem)
        except StorageError:
            return None
        matches = await asyncio.to_thread(self._glob_objects, full)
        if not matches:
            return None
        return matches[0].relative_to(self.root.resolve()).as_posix()

    @staticmethod
    def _glob_objects(full: Path):
        if not full.parent.is_dir():
            return []
        return sorted(p for p in full.parent.glob(f"{full.name}.*") if not p.name.endswith(SIDECAR_SUFFIX))
