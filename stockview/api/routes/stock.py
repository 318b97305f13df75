"""Stock browsing routes: search, filter options, export and edits."""

import csv
import io
import logging
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stockview.api.deps import get_database
from stockview.db.models import RAW_FIELDS
from stockview.search.query_builder import StockQuery
from stockview.search.service import StockItemNotFound, StockSearchService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["stock"])

search_service = StockSearchService()


# ============================================================================
# Request/Response Models
# ============================================================================


class StockItemResponse(BaseModel):
    """Raw stock record. Canonical shadow fields are never exposed."""

    id: str
    brand: str
    product: str
    city: str
    quantity: int
    sell_price: float
    cost_price: float
    remarks: str
    item_description: str
    size: str
    pattern: str
    segment: str
    rim_ah: str


class StockPageResponse(BaseModel):
    data: List[StockItemResponse]
    total: int
    page: int
    page_size: int


class FilterOptionsResponse(BaseModel):
    cities: List[str]
    brands: List[str]
    products: List[str]
    segments: List[str]
    rim_ahs: List[str]


class StockItemUpdate(BaseModel):
    quantity: Optional[int] = Field(None, ge=0)
    remarks: Optional[str] = Field(None, max_length=2000)


# ============================================================================
# Endpoints
# ============================================================================


@router.get("/stock", response_model=StockPageResponse)
async def get_stock(
    search: Optional[str] = Query(None, description="Free-text match on item description"),
    cities: Optional[List[str]] = Query(None),
    brands: Optional[List[str]] = Query(None),
    products: Optional[List[str]] = Query(None),
    segments: Optional[List[str]] = Query(None),
    rim_ahs: Optional[List[str]] = Query(None),
    sort_by: str = Query("id"),
    sort_order: str = Query("asc"),
    page: Optional[str] = Query(None, description="1-based page; invalid values mean 1"),
    page_size: Optional[str] = Query(None, description="Rows per page; invalid values mean the default"),
    db: AsyncSession = Depends(get_database),
):
    """Paged, filtered, sorted stock listing."""
    request = StockQuery(
        search=search,
        cities=cities,
        brands=brands,
        products=products,
        segments=segments,
        rim_ahs=rim_ahs,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        page_size=page_size,
    )
    try:
        return await search_service.search(db, request)
    except SQLAlchemyError:
        logger.exception("Error in /api/stock")
        raise HTTPException(status_code=500, detail="Failed to fetch stock data")


@router.get("/filters", response_model=FilterOptionsResponse)
async def get_filters(
    search: Optional[str] = Query(None),
    cities: Optional[List[str]] = Query(None),
    brands: Optional[List[str]] = Query(None),
    products: Optional[List[str]] = Query(None),
    segments: Optional[List[str]] = Query(None),
    rim_ahs: Optional[List[str]] = Query(None),
    db: AsyncSession = Depends(get_database),
):
    """Distinct values per facet given every other active filter."""
    request = StockQuery(
        search=search,
        cities=cities,
        brands=brands,
        products=products,
        segments=segments,
        rim_ahs=rim_ahs,
    )
    try:
        return await search_service.filter_options(db, request)
    except SQLAlchemyError:
        logger.exception("Error in /api/filters")
        raise HTTPException(status_code=500, detail="Failed to fetch filter options")


def _csv_value(value):
    if isinstance(value, Decimal):
        return format(value, "f")
    return value


@router.get("/export")
async def export_stock(
    ids: Optional[List[str]] = Query(None, description="Restrict export to these SKUs"),
    db: AsyncSession = Depends(get_database),
):
    """Download raw stock rows as CSV."""
    try:
        rows = await search_service.export_rows(db, ids)
    except SQLAlchemyError:
        logger.exception("Error in /api/export")
        raise HTTPException(status_code=500, detail="Failed to export data")

    if not rows:
        return Response(content="", media_type="text/csv")

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(RAW_FIELDS))
    writer.writeheader()
    for row in rows:
        writer.writerow({key: _csv_value(value) for key, value in row.items()})

    return Response(
        content=buffer.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="stock-export.csv"'},
    )


@router.patch("/stock/{item_id}", response_model=StockItemResponse)
async def update_stock_item(
    item_id: str,
    update: StockItemUpdate,
    db: AsyncSession = Depends(get_database),
):
    """Edit quantity and/or remarks of one item until the next refresh."""
    try:
        return await search_service.update_item(db, item_id, update.model_dump(exclude_unset=True))
    except StockItemNotFound:
        raise HTTPException(status_code=404, detail=f"Stock item {item_id} not found")
    except SQLAlchemyError:
        logger.exception(f"Error updating stock item {item_id}")
        raise HTTPException(status_code=500, detail="Failed to update stock item")
