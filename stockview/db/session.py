"""Async engine construction."""

import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from stockview.config import settings

logger = logging.getLogger(__name__)


def create_engine(database_url: str | None = None, echo: bool = False) -> AsyncEngine:
    """
    Create the async engine for the stock database.

    SQLite connections are switched to WAL so readers keep seeing the last
    committed snapshot while a refresh transaction is open. The driver's own
    transaction handling is turned off and an explicit BEGIN is emitted
    instead, so every statement in a session reads from one snapshot, SELECTs
    included.
    """
    url = database_url or settings.database_url
    engine = create_async_engine(url, echo=echo)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine.sync_engine, "connect")
        def _sqlite_pragmas(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute(f"PRAGMA busy_timeout={int(settings.database_busy_timeout_ms)}")
            cursor.close()

        @event.listens_for(engine.sync_engine, "begin")
        def _sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN")

    logger.debug(f"Created database engine for {engine.url.render_as_string(hide_password=True)}")
    return engine
