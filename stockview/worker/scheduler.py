"""APScheduler job definitions."""

import logging
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from stockview.config import settings
from stockview.worker.tasks import TaskRunner

logger = logging.getLogger(__name__)


def setup_scheduler(task_runner: TaskRunner) -> AsyncIOScheduler:
    """
    Setup and configure APScheduler.

    One interval job refreshes the stock snapshot every
    settings.sync_interval_minutes. With sync_on_startup the first run fires
    immediately instead of waiting one interval.

    Returns:
        Configured scheduler instance (not started)
    """
    scheduler = AsyncIOScheduler()
    sync_interval = max(1, int(settings.sync_interval_minutes))

    job_kwargs = {}
    if settings.sync_on_startup:
        job_kwargs["next_run_time"] = datetime.now()

    scheduler.add_job(
        task_runner.refresh_stock,
        IntervalTrigger(minutes=sync_interval),
        id="stock_sync",
        name="Refresh stock snapshot from feed",
        max_instances=1,  # Prevent overlapping runs
        coalesce=True,
        misfire_grace_time=300,
        replace_existing=True,
        **job_kwargs,
    )

    logger.info(
        "Scheduler configured: stock sync every %d minutes (on startup: %s)",
        sync_interval,
        settings.sync_on_startup,
    )

    return scheduler
