"""Manual refresh trigger and refresh status."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from stockview.api.deps import get_task_runner
from stockview.worker.tasks import TaskRunner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.post("")
async def trigger_sync(runner: TaskRunner = Depends(get_task_runner)):
    """Run a refresh now. Returns 409 if one is already in progress."""
    if runner.is_running:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A stock refresh is already in progress",
        )

    summary = await runner.refresh_stock(trigger="manual")
    if summary.status == "skipped":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A stock refresh is already in progress",
        )
    return summary.to_dict()


@router.get("/status")
async def sync_status(runner: TaskRunner = Depends(get_task_runner)):
    """Outcome of the last refresh and whether one is running now."""
    return runner.status()
