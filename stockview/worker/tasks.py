"""Background refresh task with skip-if-busy serialization."""

import asyncio
import time
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from stockview import metrics
from stockview.ingest.sync import StockSyncPipeline, SyncSummary
from stockview.logging_config import get_logger


class TaskRunner:
    """
    Runs stock refreshes for the scheduler and the manual trigger.

    At most one refresh is in flight per process. A refresh requested while
    another is running is skipped, not queued. Failures are logged and
    recorded here; they never propagate to the caller.
    """

    def __init__(self, pipeline: StockSyncPipeline):
        self.pipeline = pipeline
        self._lock = asyncio.Lock()
        self.last_summary: Optional[SyncSummary] = None
        self.last_success: Optional[SyncSummary] = None

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def refresh_stock(self, trigger: str = "scheduled") -> SyncSummary:
        """Refresh the store from the feed unless a refresh is already running."""
        run_id = uuid4().hex
        log = get_logger(__name__, run_id=run_id, trigger=trigger)

        # No await between the check and the acquire, so this cannot race.
        if self._lock.locked():
            log.info("Stock refresh already in progress, skipping")
            metrics.stock_syncs_total.labels(status="skipped").inc()
            return SyncSummary(status="skipped", source=self.pipeline.source.get_source_name())

        async with self._lock:
            start = time.monotonic()
            try:
                summary = await self.pipeline.run_once()
            except Exception as e:
                log.exception(f"Stock refresh failed: {e}")
                summary = SyncSummary(
                    status="failed",
                    source=self.pipeline.source.get_source_name(),
                    completed_at=datetime.now(timezone.utc),
                    duration_ms=int((time.monotonic() - start) * 1000),
                    error=f"{type(e).__name__}: {e}",
                )

            metrics.stock_syncs_total.labels(status=summary.status).inc()
            metrics.stock_sync_duration_seconds.observe(time.monotonic() - start)

            self.last_summary = summary
            if summary.status == "completed":
                self.last_success = summary
                metrics.stock_items_total.set(summary.items_written)

            log.info(
                f"Stock refresh finished: status={summary.status} "
                f"items={summary.items_written} duration_ms={summary.duration_ms}"
            )
            return summary

    def status(self) -> dict:
        return {
            "running": self.is_running,
            "last_run": self.last_summary.to_dict() if self.last_summary else None,
            "last_success": self.last_success.to_dict() if self.last_success else None,
        }
