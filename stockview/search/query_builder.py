"""
Stock query builder.

Translates a structured stock query into SQLAlchemy statements:
- Free text: the whole query is canonicalized as one unit and matched as a
  contiguous substring of the canonical item description
- Facets: exact match on raw values, any of the selected values
- Sorting on an allow-list of raw columns, with id as tie-breaker
- Page/offset arithmetic that never goes negative
- Facet option lists that ignore the facet's own selection
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import ColumnElement, Select, and_, asc, desc, distinct, func, select

from stockview.config import settings
from stockview.db.models import StockItem
from stockview.normalize.canonical import canonicalize

logger = logging.getLogger(__name__)

# Request parameter -> raw column
FACETS: Dict[str, Any] = {
    "cities": StockItem.city,
    "brands": StockItem.brand,
    "products": StockItem.product,
    "segments": StockItem.segment,
    "rim_ahs": StockItem.rim_ah,
}

SORTABLE_COLUMNS: Dict[str, Any] = {
    "id": StockItem.id,
    "brand": StockItem.brand,
    "product": StockItem.product,
    "city": StockItem.city,
    "quantity": StockItem.quantity,
    "sell_price": StockItem.sell_price,
    "cost_price": StockItem.cost_price,
    "item_description": StockItem.item_description,
    "size": StockItem.size,
    "pattern": StockItem.pattern,
    "segment": StockItem.segment,
    "rim_ah": StockItem.rim_ah,
}

DEFAULT_SORT = "id"


@dataclass(frozen=True)
class StockQuery:
    """Caller's search request."""

    search: Optional[str] = None
    cities: Optional[Sequence[str]] = None
    brands: Optional[Sequence[str]] = None
    products: Optional[Sequence[str]] = None
    segments: Optional[Sequence[str]] = None
    rim_ahs: Optional[Sequence[str]] = None
    sort_by: Optional[str] = None
    sort_order: Optional[str] = "asc"
    page: Any = 1  # raw request values; resolve_page clamps or defaults them
    page_size: Any = None

    def facet_values(self, facet: str) -> List[str]:
        """Selected values for ``facet``, de-duplicated, blanks dropped."""
        values = getattr(self, facet) or []
        if isinstance(values, str):
            values = [values]
        seen = []
        for value in values:
            if value is None or value == "":
                continue
            if value not in seen:
                seen.append(value)
        return seen


class StockQueryBuilder:
    """Build stock search, count and facet-option statements."""

    def __init__(
        self,
        default_page_size: Optional[int] = None,
        max_page_size: Optional[int] = None,
    ):
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size
        self.logger = logger

    @property
    def default_page_size(self) -> int:
        return self._default_page_size or settings.default_page_size

    @property
    def max_page_size(self) -> int:
        return self._max_page_size or settings.max_page_size

    def normalize_query(self, query: Optional[str]) -> str:
        """Canonicalize the free-text query as one unit. Never split into terms."""
        return canonicalize(query)

    def build_text_condition(self, query: Optional[str]) -> Optional[ColumnElement]:
        """
        Contiguous-substring predicate on the canonical item description.

        Returns None when the canonical query is empty, meaning no constraint.
        """
        normalized = self.normalize_query(query)
        if not normalized:
            return None
        self.logger.debug(f"Search {query!r} -> canonical {normalized!r}")
        return StockItem.item_description_norm.contains(normalized, autoescape=True)

    def build_conditions(
        self, request: StockQuery, exclude_facet: Optional[str] = None
    ) -> List[ColumnElement]:
        """All active constraints, optionally leaving one facet out."""
        conditions = []

        text_condition = self.build_text_condition(request.search)
        if text_condition is not None:
            conditions.append(text_condition)

        for facet, column in FACETS.items():
            if facet == exclude_facet:
                continue
            values = request.facet_values(facet)
            if values:
                conditions.append(column.in_(values))

        return conditions

    def resolve_sort(self, sort_by: Optional[str], sort_order: Optional[str]) -> Tuple[str, str]:
        """Unknown sort keys fall back to id; anything but 'desc' means ascending."""
        key = sort_by if sort_by in SORTABLE_COLUMNS else DEFAULT_SORT
        if sort_by and key != sort_by:
            self.logger.debug(f"Ignoring unsortable column {sort_by!r}, using {DEFAULT_SORT!r}")
        direction = "desc" if str(sort_order or "").lower() == "desc" else "asc"
        return key, direction

    def resolve_page(self, page: Any, page_size: Any) -> Tuple[int, int, int]:
        """
        Clamp paging input.

        Returns:
            (page, page_size, offset) with page >= 1, 1 <= page_size <= max
        """
        try:
            page = int(page)
        except (TypeError, ValueError):
            page = 1
        try:
            page_size = int(page_size)
        except (TypeError, ValueError):
            page_size = self.default_page_size

        page = max(1, page)
        if page_size < 1:
            page_size = self.default_page_size
        page_size = min(page_size, self.max_page_size)

        return page, page_size, (page - 1) * page_size

    def build_search_query(self, request: StockQuery) -> Tuple[Select, Select, Dict[str, Any]]:
        """
        Build the page query and the matching count query.

        Returns:
            Tuple of (rows query, count query, metadata dict)
        """
        conditions = self.build_conditions(request)
        where_clause = and_(*conditions) if conditions else None

        count_query = select(func.count()).select_from(StockItem)
        rows_query = select(StockItem)
        if where_clause is not None:
            count_query = count_query.where(where_clause)
            rows_query = rows_query.where(where_clause)

        sort_key, direction = self.resolve_sort(request.sort_by, request.sort_order)
        sort_column = SORTABLE_COLUMNS[sort_key]
        order = desc if direction == "desc" else asc
        rows_query = rows_query.order_by(order(sort_column))
        if sort_key != "id":
            # Deterministic ordering for pagination
            rows_query = rows_query.order_by(order(StockItem.id))

        page, page_size, offset = self.resolve_page(request.page, request.page_size)
        rows_query = rows_query.limit(page_size).offset(offset)

        metadata = {
            "normalized_query": self.normalize_query(request.search),
            "filter_count": len(conditions),
            "sort_by": sort_key,
            "sort_order": direction,
            "page": page,
            "page_size": page_size,
        }
        return rows_query, count_query, metadata

    def build_option_query(self, facet: str, request: StockQuery) -> Select:
        """
        Distinct raw values for ``facet`` under every other active constraint.

        The facet's own selection is ignored so its option list shows what
        could still be picked, not just what is already picked.
        """
        column = FACETS[facet]
        conditions = self.build_conditions(request, exclude_facet=facet)
        conditions.append(column.is_not(None))
        conditions.append(column != "")
        return select(distinct(column)).where(and_(*conditions)).order_by(asc(column))
