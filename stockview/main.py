"""Main application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from stockview import metrics
from stockview.api.routes import stock, sync
from stockview.config import settings
from stockview.db.store import StockStore
from stockview.ingest.sheet_feed import GoogleSheetSource
from stockview.ingest.sync import StockSyncPipeline
from stockview.logging_config import setup_logging
from stockview.worker.scheduler import setup_scheduler
from stockview.worker.tasks import TaskRunner

logger = logging.getLogger(__name__)


def create_app(
    store: Optional[StockStore] = None,
    task_runner: Optional[TaskRunner] = None,
    start_scheduler: bool = True,
    instrument: bool = True,
    configure_logging: bool = True,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        store: Store to serve from; created from settings when omitted
        task_runner: Refresh runner; built around the Google Sheet feed when omitted
        start_scheduler: Run the periodic refresh job
        instrument: Expose Prometheus metrics on /metrics
        configure_logging: Install console and JSON file log handlers on startup
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if configure_logging:
            setup_logging()
        logger.info("Starting Stockview...")

        app.state.store = store or StockStore()
        await app.state.store.init_schema()
        item_count = await app.state.store.count()
        metrics.stock_items_total.set(item_count)
        logger.info(f"Serving {item_count} stock items from the existing snapshot")

        app.state.task_runner = task_runner or TaskRunner(
            StockSyncPipeline(app.state.store, GoogleSheetSource())
        )

        scheduler = None
        if start_scheduler:
            scheduler = setup_scheduler(app.state.task_runner)
            scheduler.start()
            logger.info("Scheduler started")

        yield

        logger.info("Shutting down...")
        if scheduler:
            scheduler.shutdown(wait=False)
        if store is None:
            await app.state.store.dispose()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Stockview",
        description="Browse and search tyre/battery stock synced from the stock sheet",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if instrument:
        instrumentator = Instrumentator(
            should_group_status_codes=True,
            should_ignore_untemplated=True,
            excluded_handlers=["/metrics", "/health"],
        )
        instrumentator.instrument(app).expose(app, include_in_schema=True, tags=["monitoring"])

    app.include_router(stock.router)
    app.include_router(sync.router)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/favicon.ico")
    async def favicon():
        """Return empty favicon response to avoid 404 noise."""
        return Response(status_code=204)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "stockview.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
