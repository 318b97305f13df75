"""
Stock search service.

Executes the query builder's statements and shapes results:
- Paged search with total match count
- Facet option lists for filter UIs
- Raw-field export rows
- Quantity/remarks edits
"""

import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockview import metrics
from stockview.db.models import StockItem
from stockview.search.query_builder import FACETS, StockQuery, StockQueryBuilder

logger = logging.getLogger(__name__)

# Attributes an operator may edit in place. Neither has a canonical shadow.
EDITABLE_FIELDS = ("quantity", "remarks")


class StockItemNotFound(LookupError):
    """Raised when an edit targets an unknown identifier."""

    pass


class StockSearchService:
    """High-level stock search over a session."""

    def __init__(self, query_builder: Optional[StockQueryBuilder] = None):
        self.query_builder = query_builder or StockQueryBuilder()
        self.logger = logger

    async def search(self, db: AsyncSession, request: StockQuery) -> Dict[str, Any]:
        """
        Run a paged search.

        Returns:
            Dict with raw ``data`` rows, pre-pagination ``total``, and the
            effective ``page`` and ``page_size``
        """
        start_time = time.time()
        rows_query, count_query, metadata = self.query_builder.build_search_query(request)

        total = (await db.execute(count_query)).scalar_one()
        items = (await db.execute(rows_query)).scalars().all()

        elapsed = time.time() - start_time
        metrics.stock_searches_total.labels(
            has_text=str(bool(metadata["normalized_query"])).lower()
        ).inc()
        metrics.stock_search_duration_seconds.observe(elapsed)
        self.logger.debug(
            f"Search q={metadata['normalized_query']!r} filters={metadata['filter_count']} "
            f"total={total} in {elapsed * 1000:.1f}ms"
        )

        return {
            "data": [item.to_dict() for item in items],
            "total": int(total),
            "page": metadata["page"],
            "page_size": metadata["page_size"],
        }

    async def filter_options(self, db: AsyncSession, request: StockQuery) -> Dict[str, List[str]]:
        """Option list per facet, each computed without its own selection."""
        options = {}
        for facet in FACETS:
            result = await db.execute(self.query_builder.build_option_query(facet, request))
            options[facet] = [value for value in result.scalars().all() if value]
        return options

    async def export_rows(
        self, db: AsyncSession, ids: Optional[Sequence[str]] = None
    ) -> List[Dict[str, Any]]:
        """Raw rows for export, optionally restricted to ``ids``, ordered by id."""
        query = select(StockItem).order_by(StockItem.id)
        if ids:
            query = query.where(StockItem.id.in_(list(ids)))
        result = await db.execute(query)
        return [item.to_dict() for item in result.scalars().all()]

    async def update_item(
        self, db: AsyncSession, item_id: str, updates: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Apply an in-place edit to quantity and/or remarks.

        Other keys are ignored. The next full refresh replaces the edit.

        Raises:
            StockItemNotFound: If ``item_id`` is not in the current snapshot
        """
        item = await db.get(StockItem, item_id)
        if item is None:
            raise StockItemNotFound(item_id)

        for name in EDITABLE_FIELDS:
            if name in updates and updates[name] is not None:
                setattr(item, name, updates[name])

        await db.commit()
        await db.refresh(item)
        self.logger.info(f"Updated stock item {item_id}: {sorted(k for k in updates if k in EDITABLE_FIELDS)}")
        return item.to_dict()
