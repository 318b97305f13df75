"""Shared fixtures: temporary stock stores and an in-memory feed."""

import asyncio
from decimal import Decimal
from typing import List, Optional

import pytest

from stockview.db.store import StockStore
from stockview.ingest.base import BaseFeedSource, StockRecord


class StaticFeed(BaseFeedSource):
    """Feed that returns a fixed list, optionally failing or blocking first."""

    def __init__(
        self,
        records: List[StockRecord],
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        self.records = records
        self.error = error
        self.gate = gate
        self.calls = 0

    async def fetch_records(self) -> List[StockRecord]:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.records)

    def get_source_name(self) -> str:
        return "static"


def make_record(sku: str, **overrides) -> StockRecord:
    values = dict(
        id=sku,
        brand="JK",
        product="Tyre",
        city="Delhi",
        quantity=10,
        sell_price=Decimal("3500.00"),
        cost_price=Decimal("35000.00"),
        item_description=f"PCR TYRE {sku}",
        size="185/65 R15",
        pattern="TAXIMAX",
        segment="PCR",
        rim_ah="15",
    )
    values.update(overrides)
    return StockRecord(**values)


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'stock.db'}"


@pytest.fixture
async def store(database_url):
    """Empty store with schema created."""
    stock_store = StockStore(database_url=database_url)
    await stock_store.init_schema()
    try:
        yield stock_store
    finally:
        await stock_store.dispose()


@pytest.fixture
def sample_records() -> List[StockRecord]:
    """Small inventory spanning two cities, three brands and two segments."""
    return [
        make_record(
            "JK-185-65-R15",
            brand="JK",
            city="Delhi",
            item_description="PCR_TYRE_JK_185/65 R15_TAXIMAX 88H_88H_TUBELESS TYRE",
            size="185/65 R15",
            segment="PCR",
            rim_ah="15",
            quantity=40,
            sell_price=Decimal("3450.00"),
        ),
        make_record(
            "MRF-185-65-R15",
            brand="MRF",
            city="Mumbai",
            item_description="PCR TYRE MRF 185/65 R15 ZVTV TUBELESS",
            size="185/65 R15",
            segment="PCR",
            rim_ah="15",
            quantity=12,
            sell_price=Decimal("3900.00"),
        ),
        make_record(
            "CEAT-195-55-R16",
            brand="CEAT",
            city="Delhi",
            item_description="PCR TYRE CEAT 195/55 R16 SECURADRIVE",
            size="195/55 R16",
            segment="PCR",
            rim_ah="16",
            quantity=5,
            sell_price=Decimal("5200.00"),
        ),
        make_record(
            "EXIDE-35AH",
            brand="Exide",
            product="Battery",
            city="Mumbai",
            item_description="BATTERY, EXIDE MILEAGE 35AH",
            size="",
            pattern="",
            segment="Automotive Battery",
            rim_ah="35AH",
            quantity=0,
            sell_price=Decimal("4100.00"),
        ),
    ]


@pytest.fixture
async def seeded_store(store, sample_records):
    await store.replace_all(sample_records)
    return store
