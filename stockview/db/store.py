"""Stock store: owns the engine and performs full-refresh replacement."""

import logging
from collections.abc import Iterable
from typing import Any, Optional

from sqlalchemy import delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from stockview import metrics
from stockview.db.models import Base, StockItem
from stockview.db.session import create_engine
from stockview.normalize.processor import to_row

logger = logging.getLogger(__name__)


class StockStore:
    """
    Explicit handle on the stock database.

    Created once at process start and passed to the ingestion pipeline and to
    request handlers. Readers open short-lived sessions; the refresh path
    swaps the whole table inside a single transaction.
    """

    def __init__(self, engine: Optional[AsyncEngine] = None, database_url: Optional[str] = None):
        self.engine = engine or create_engine(database_url)
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def init_schema(self) -> None:
        """Create tables and indices if they do not exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Table stock_items and indices ready")

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def count(self) -> int:
        async with self.session_factory() as session:
            result = await session.execute(select(func.count()).select_from(StockItem))
            return int(result.scalar_one())

    async def replace_all(self, records: Iterable[Any], batch_size: int = 500) -> int:
        """
        Replace the entire table with ``records`` in one transaction.

        Every row is built through ``to_row`` so shadows always match their
        raw fields. Records with a blank id are skipped and duplicate
        identifiers keep the last occurrence. If anything raises, the
        transaction rolls back and the previous snapshot is left untouched.

        Returns:
            Number of rows written
        """
        batch_size = max(1, int(batch_size))
        rows_by_id: dict[str, dict[str, Any]] = {}
        written = 0
        skipped = 0

        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(delete(StockItem))

                for record in records:
                    row = to_row(record)
                    if not str(row["id"] or "").strip():
                        skipped += 1
                        continue
                    rows_by_id[row["id"]] = row

                rows = list(rows_by_id.values())
                for start in range(0, len(rows), batch_size):
                    batch = rows[start:start + batch_size]
                    await session.execute(insert(StockItem), batch)
                    await session.flush()
                    written += len(batch)

        if skipped:
            metrics.feed_rows_rejected_total.labels(reason="blank_id").inc(skipped)
            logger.warning(f"Skipped {skipped} records with a blank id")
        logger.info(f"Replaced stock snapshot with {written} items")
        return written
