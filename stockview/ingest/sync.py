"""Full-refresh ingestion: feed -> typed records -> canonical rows -> store."""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from stockview.config import settings
from stockview.db.store import StockStore
from stockview.ingest.base import BaseFeedSource

logger = logging.getLogger(__name__)


@dataclass
class SyncSummary:
    """Outcome of one refresh attempt."""

    status: str  # "completed", "empty", "failed", "skipped"
    source: str = ""
    records_fetched: int = 0
    items_written: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    duration_ms: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "source": self.source,
            "records_fetched": self.records_fetched,
            "items_written": self.items_written,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "error": self.error,
        }


class StockSyncPipeline:
    """
    Pulls the whole feed and swaps it into the store.

    The download and mapping happen before the write transaction opens, so a
    failed fetch never touches the store. A feed that maps to zero records is
    not applied.
    """

    def __init__(
        self,
        store: StockStore,
        source: BaseFeedSource,
        batch_size: Optional[int] = None,
    ):
        self.store = store
        self.source = source
        self.batch_size = batch_size or settings.sync_batch_size

    async def run_once(self) -> SyncSummary:
        """
        Run one refresh.

        Raises:
            FetchError: Feed download failed
            FeedFormatError: Feed structure is malformed
            SQLAlchemyError: Store write failed (already rolled back)
        """
        source_name = self.source.get_source_name()
        summary = SyncSummary(status="running", source=source_name)
        start = time.monotonic()

        logger.info(f"Starting stock sync from {source_name}")
        records = await self.source.fetch_records()
        summary.records_fetched = len(records)

        if not records:
            logger.warning(f"No items found in {source_name}, keeping current snapshot")
            summary.status = "empty"
        else:
            summary.items_written = await self.store.replace_all(
                records, batch_size=self.batch_size
            )
            summary.status = "completed"
            logger.info(f"Synced {summary.items_written} items from {source_name}")

        summary.completed_at = datetime.now(timezone.utc)
        summary.duration_ms = int((time.monotonic() - start) * 1000)
        return summary
