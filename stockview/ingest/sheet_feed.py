"""Google Sheets CSV feed: download, parse and map rows to stock records."""

import csv
import io
import logging
from decimal import Decimal, InvalidOperation
from typing import Iterable, Mapping, Optional

import httpx

from stockview import metrics
from stockview.config import settings
from stockview.ingest.base import BaseFeedSource, FeedFormatError, StockRecord
from stockview.ingest.http_client import RetryPolicy, fetch_with_policy

logger = logging.getLogger(__name__)

# Feed column -> StockRecord attribute
TEXT_COLUMNS = {
    "Brand": "brand",
    "Product": "product",
    "City": "city",
    "Item Description": "item_description",
    "Size": "size",
    "Pattern": "pattern",
    "Segment": "segment",
    "RIM/AH": "rim_ah",
}
ID_COLUMN = "SKU"
QUANTITY_COLUMN = "Quantity"
SELL_PRICE_COLUMN = "Rate"
COST_PRICE_COLUMN = "Value"

# SQLite INTEGER is a signed 64-bit value
QUANTITY_MIN = -(2**63)
QUANTITY_MAX = 2**63 - 1


def _clean_number(value: Optional[str]) -> str:
    """Strip thousands separators and whitespace."""
    if value is None:
        return ""
    return str(value).replace(",", "").strip()


def parse_quantity(value: Optional[str]) -> int:
    """
    Parse a quantity cell such as ``"1,250"``.

    Blank, garbage or out-of-range values (beyond a 64-bit integer) become 0.
    """
    text = _clean_number(value)
    if not text:
        return 0
    try:
        quantity = int(Decimal(text))
        if QUANTITY_MIN <= quantity <= QUANTITY_MAX:
            return quantity
    except (InvalidOperation, ValueError, OverflowError):
        pass
    logger.debug(f"Unparseable quantity {value!r}, using 0")
    return 0


def parse_price(value: Optional[str]) -> Decimal:
    """Parse a price cell such as ``"12,499.50"``. Blank or garbage becomes 0."""
    text = _clean_number(value)
    if not text:
        return Decimal("0.00")
    try:
        price = Decimal(text)
        if price.is_finite():
            return price.quantize(Decimal("0.01"))
    except InvalidOperation:
        pass
    logger.debug(f"Unparseable price {value!r}, using 0")
    return Decimal("0.00")


def map_row(row: Mapping[str, Optional[str]]) -> Optional[StockRecord]:
    """
    Map one CSV row to a StockRecord.

    Returns:
        StockRecord, or None when the row has no SKU
    """
    sku = (row.get(ID_COLUMN) or "").strip()
    if not sku:
        return None

    text_values = {
        attr: (row.get(column) or "").strip()
        for column, attr in TEXT_COLUMNS.items()
    }

    return StockRecord(
        id=sku,
        quantity=parse_quantity(row.get(QUANTITY_COLUMN)),
        sell_price=parse_price(row.get(SELL_PRICE_COLUMN)),
        cost_price=parse_price(row.get(COST_PRICE_COLUMN)),
        remarks="",
        **text_values,
    )


def map_rows(rows: Iterable[Mapping[str, Optional[str]]]) -> list[StockRecord]:
    """Map feed rows, dropping rows without an identifier."""
    records = []
    rejected = 0
    for row in rows:
        record = map_row(row)
        if record is None:
            rejected += 1
            continue
        records.append(record)

    if rejected:
        metrics.feed_rows_rejected_total.labels(reason="missing_sku").inc(rejected)
        logger.warning(f"Dropped {rejected} feed rows without a SKU")
    return records


def parse_csv(csv_text: str) -> list[dict[str, Optional[str]]]:
    """
    Parse CSV text with a header row into dicts, skipping blank lines.

    Raises:
        FeedFormatError: If the header row is missing the SKU column
    """
    if csv_text.startswith("\ufeff"):
        csv_text = csv_text[1:]

    reader = csv.DictReader(io.StringIO(csv_text))
    try:
        fieldnames = [name.strip() for name in (reader.fieldnames or [])]
    except csv.Error as e:
        raise FeedFormatError(f"Unreadable CSV header: {e}") from e

    if ID_COLUMN not in fieldnames:
        raise FeedFormatError(
            f"Feed is missing the {ID_COLUMN!r} column (got {fieldnames[:10]})"
        )
    reader.fieldnames = fieldnames

    rows = []
    try:
        for row in reader:
            if not any((value or "").strip() for key, value in row.items() if key is not None):
                continue
            rows.append(row)
    except csv.Error as e:
        raise FeedFormatError(f"Malformed CSV at line {reader.line_num}: {e}") from e
    return rows


class GoogleSheetSource(BaseFeedSource):
    """Published Google Sheet exported as CSV."""

    def __init__(
        self,
        url: Optional[str] = None,
        policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url or settings.sheet_url
        self.policy = policy or RetryPolicy.from_settings(name="google_sheet")
        self._transport = transport

    def get_source_name(self) -> str:
        return "google_sheet"

    async def fetch_text(self) -> str:
        async with httpx.AsyncClient(transport=self._transport) as client:
            resp = await fetch_with_policy(client, self.url, self.policy)
        return resp.text

    async def fetch_records(self) -> list[StockRecord]:
        csv_text = await self.fetch_text()
        rows = parse_csv(csv_text)
        records = map_rows(rows)
        logger.info(f"Fetched {len(rows)} rows, mapped {len(records)} stock records")
        return records
