"""FastAPI dependencies."""

from fastapi import HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from stockview.db.store import StockStore
from stockview.worker.tasks import TaskRunner


def get_store(request: Request) -> StockStore:
    """The store created in the application lifespan."""
    return request.app.state.store


async def get_database(request: Request) -> AsyncSession:
    """Dependency for a read session on the current store."""
    async with get_store(request).session_factory() as session:
        yield session


def get_task_runner(request: Request) -> TaskRunner:
    runner = getattr(request.app.state, "task_runner", None)
    if runner is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sync runner not configured",
        )
    return runner
