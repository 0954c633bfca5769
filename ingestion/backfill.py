"""
Backfill batch driver - run the pipeline over every pending item of a source.

Items are processed sequentially, each in its own session, with a fixed
minimum delay between items (geocoder rate limit). One bad item never
halts the batch. Cancellation is checked between items only.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import settings
from core.exceptions import PipelineException
from ingestion.pipeline import PipelineOrchestrator, ResultStatus
from ingestion.tracker import MetadataTracker
from models.base import SourceName
import logging

logger = logging.getLogger(__name__)

OrchestratorFactory = Callable[[AsyncSession], PipelineOrchestrator]


@dataclass
class BatchSummary:
    """Outcome of one batch run."""
    source: str
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    failures: List[Dict[str, str]] = field(default_factory=list)
    cancelled: bool = False
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed + self.skipped

    def record_failure(self, item_key: str, error: str):
        self.failed += 1
        self.failures.append({"item_key": item_key, "error": error})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "failures": self.failures,
            "cancelled": self.cancelled,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class BackfillRunner:
    """
    Drive `run_pipeline` over all items awaiting transformation.

    Attributes:
        session_factory: Creates one session per item
        orchestrator_factory: Builds an orchestrator around a session
        item_delay: Seconds to wait between items
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        orchestrator_factory: OrchestratorFactory,
        item_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session_factory = session_factory
        self.orchestrator_factory = orchestrator_factory
        self.item_delay = settings.BACKFILL_ITEM_DELAY_SECONDS if item_delay is None else item_delay
        self._sleep = sleep

    async def run(
        self,
        source: SourceName,
        force: bool = False,
        limit: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BatchSummary:
        source = SourceName(source)
        summary = BatchSummary(source=source.value)

        async with self.session_factory() as session:
            items = await MetadataTracker(session).list_for_backfill(source, force=force, limit=limit)
            item_ids = [m.source_item_id for m in items]

        summary.total = len(item_ids)
        logger.info(f"Backfill {source.value}: {summary.total} item(s) to process (force={force})")

        for index, source_item_id in enumerate(item_ids):
            if cancel_event is not None and cancel_event.is_set():
                summary.cancelled = True
                logger.warning(f"Backfill {source.value} cancelled after {summary.processed} item(s)")
                break

            if index > 0 and self.item_delay > 0:
                await self._sleep(self.item_delay)

            await self._process_item(summary, source, source_item_id, force)

            progress = f"[{index + 1}/{summary.total}]"
            logger.info(
                f"{progress} {source.value}:{source_item_id} "
                f"(ok={summary.succeeded} failed={summary.failed} skipped={summary.skipped})"
            )

        summary.completed_at = datetime.utcnow()
        logger.info(
            f"Backfill {source.value} finished: {summary.succeeded} succeeded, "
            f"{summary.failed} failed, {summary.skipped} skipped"
        )
        return summary

    async def _process_item(self, summary: BatchSummary, source: SourceName, source_item_id: str, force: bool):
        item_key = f"{source.value}:{source_item_id}"
        try:
            async with self.session_factory() as session:
                orchestrator = self.orchestrator_factory(session)
                result = await orchestrator.run_pipeline(source, source_item_id, force=force)
        except PipelineException as e:
            logger.error(f"{item_key} failed: {e}")
            summary.record_failure(item_key, e.message)
            return
        except Exception as e:
            logger.exception(f"Unexpected error processing {item_key}")
            summary.record_failure(item_key, f"{type(e).__name__}: {e}")
            return

        if result.status == ResultStatus.SUCCESS:
            summary.succeeded += 1
        elif result.status == ResultStatus.FAILED:
            details = result.error_details
            summary.record_failure(item_key, "; ".join(details) if isinstance(details, list) else str(details))
        else:
            summary.skipped += 1
