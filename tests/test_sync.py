"""Tests for full-refresh ingestion, snapshot atomicity and refresh serialization."""

import asyncio

import pytest
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import select

from stockview.db.models import SHADOW_FIELDS, StockItem
from stockview.db.store import StockStore
from stockview.ingest.http_client import TransientFetchError
from stockview.ingest.sheet_feed import map_row
from stockview.ingest.sync import StockSyncPipeline
from stockview.normalize.canonical import canonicalize
from stockview.search.query_builder import StockQuery, StockQueryBuilder
from stockview.search.service import StockSearchService
from stockview.worker.scheduler import setup_scheduler
from stockview.worker.tasks import TaskRunner

from conftest import StaticFeed, make_record


async def load_items(store):
    async with store.session_factory() as db:
        result = await db.execute(select(StockItem).order_by(StockItem.id))
        return result.scalars().all()


class TestReplaceAll:

    @pytest.mark.asyncio
    async def test_shadows_match_raw_fields(self, store, sample_records):
        written = await store.replace_all(sample_records)

        assert written == 4
        for item in await load_items(store):
            for raw, shadow in SHADOW_FIELDS.items():
                assert getattr(item, shadow) == canonicalize(getattr(item, raw))

    @pytest.mark.asyncio
    async def test_duplicate_ids_keep_last_occurrence(self, store):
        written = await store.replace_all(
            [make_record("A", brand="JK"), make_record("B"), make_record("A", brand="MRF")]
        )

        items = await load_items(store)
        assert written == 2
        assert [item.id for item in items] == ["A", "B"]
        assert items[0].brand == "MRF"
        assert items[0].brand_norm == "mrf"

    @pytest.mark.asyncio
    async def test_refresh_replaces_previous_snapshot(self, seeded_store):
        await seeded_store.replace_all([make_record("NEW-1")])

        items = await load_items(seeded_store)
        assert [item.id for item in items] == ["NEW-1"]

    @pytest.mark.asyncio
    async def test_failure_mid_refresh_keeps_previous_snapshot(self, seeded_store):
        def broken_feed():
            yield make_record("X-1")
            yield make_record("X-2")
            raise RuntimeError("feed connection dropped")

        with pytest.raises(RuntimeError):
            await seeded_store.replace_all(broken_feed(), batch_size=1)

        items = await load_items(seeded_store)
        assert len(items) == 4
        assert "X-1" not in {item.id for item in items}

    @pytest.mark.asyncio
    async def test_readers_never_see_a_partial_snapshot(self, store):
        await store.replace_all([make_record(f"OLD-{i}") for i in range(3)])
        new_records = [make_record(f"NEW-{i:03d}") for i in range(60)]

        observed = set()
        refresh = asyncio.create_task(store.replace_all(new_records, batch_size=1))
        while not refresh.done():
            observed.add(await store.count())
        await refresh
        observed.add(await store.count())

        assert observed <= {3, 60}
        assert 60 in observed

    @pytest.mark.asyncio
    async def test_blank_ids_are_never_stored(self, store):
        written = await store.replace_all(
            [make_record(""), make_record("   "), make_record(None), make_record("A")]
        )

        assert written == 1
        assert [item.id for item in await load_items(store)] == ["A"]


class TestReadSnapshot:

    @pytest.mark.asyncio
    async def test_session_reads_stay_on_one_snapshot(self, seeded_store):
        builder = StockQueryBuilder()
        rows_query, count_query, _ = builder.build_search_query(StockQuery(page_size=50))

        async with seeded_store.session_factory() as db:
            total = (await db.execute(count_query)).scalar_one()
            await seeded_store.replace_all([make_record(f"NEW-{i}") for i in range(7)])
            rows = (await db.execute(rows_query)).scalars().all()

        assert total == 4
        assert len(rows) == 4
        assert not any(item.id.startswith("NEW-") for item in rows)
        assert await seeded_store.count() == 7

    @pytest.mark.asyncio
    async def test_search_total_matches_rows_when_refresh_commits_mid_request(
        self, seeded_store
    ):
        service = StockSearchService()
        new_records = [make_record(f"NEW-{i}") for i in range(7)]

        async with seeded_store.session_factory() as db:
            execute = db.execute
            refreshed = []

            async def execute_then_refresh(*args, **kwargs):
                result = await execute(*args, **kwargs)
                if not refreshed:
                    refreshed.append(await seeded_store.replace_all(new_records))
                return result

            db.execute = execute_then_refresh
            result = await service.search(db, StockQuery(page_size=50))

        assert refreshed == [7]
        assert result["total"] == len(result["data"]) == 4

    @pytest.mark.asyncio
    async def test_filter_options_come_from_one_snapshot(self, seeded_store):
        service = StockSearchService()

        async with seeded_store.session_factory() as db:
            execute = db.execute
            refreshed = []

            async def execute_then_refresh(*args, **kwargs):
                result = await execute(*args, **kwargs)
                if not refreshed:
                    refreshed.append(
                        await seeded_store.replace_all([make_record("NEW-1", brand="Apollo")])
                    )
                return result

            db.execute = execute_then_refresh
            options = await service.filter_options(db, StockQuery())

        assert refreshed == [1]
        assert options["brands"] == ["CEAT", "Exide", "JK", "MRF"]
        assert options["rim_ahs"] == ["15", "16", "35AH"]


class TestSyncPipeline:

    @pytest.mark.asyncio
    async def test_run_once_writes_feed(self, store, sample_records):
        pipeline = StockSyncPipeline(store, StaticFeed(sample_records), batch_size=2)

        summary = await pipeline.run_once()

        assert summary.status == "completed"
        assert summary.source == "static"
        assert summary.records_fetched == 4
        assert summary.items_written == 4
        assert summary.completed_at is not None
        assert await store.count() == 4

    @pytest.mark.asyncio
    async def test_empty_feed_is_not_applied(self, seeded_store):
        pipeline = StockSyncPipeline(seeded_store, StaticFeed([]))

        summary = await pipeline.run_once()

        assert summary.status == "empty"
        assert summary.items_written == 0
        assert await seeded_store.count() == 4

    @pytest.mark.asyncio
    async def test_fetch_error_propagates_without_touching_store(self, seeded_store):
        feed = StaticFeed([make_record("NEW")], error=TransientFetchError("HTTP 503"))
        pipeline = StockSyncPipeline(seeded_store, feed)

        with pytest.raises(TransientFetchError):
            await pipeline.run_once()

        assert await seeded_store.count() == 4

    @pytest.mark.asyncio
    async def test_oversized_quantity_cell_does_not_block_refresh(self, store):
        records = [
            map_row({"SKU": "BIG", "Quantity": "1e20", "Rate": "100"}),
            map_row({"SKU": "OK", "Quantity": "3", "Rate": "100"}),
        ]
        runner = TaskRunner(StockSyncPipeline(store, StaticFeed(records)))

        summary = await runner.refresh_stock()

        assert summary.status == "completed"
        items = await load_items(store)
        assert [(item.id, item.quantity) for item in items] == [("BIG", 0), ("OK", 3)]

    @pytest.mark.asyncio
    async def test_edits_are_overwritten_by_next_refresh(self, seeded_store, sample_records):
        async with seeded_store.session_factory() as db:
            item = await db.get(StockItem, "JK-185-65-R15")
            item.quantity = 1
            item.remarks = "hold"
            await db.commit()

        await StockSyncPipeline(seeded_store, StaticFeed(sample_records)).run_once()

        async with seeded_store.session_factory() as db:
            item = await db.get(StockItem, "JK-185-65-R15")
        assert item.quantity == 40
        assert item.remarks == ""


class TestTaskRunner:

    @pytest.mark.asyncio
    async def test_successful_refresh_is_recorded(self, store, sample_records):
        runner = TaskRunner(StockSyncPipeline(store, StaticFeed(sample_records)))

        summary = await runner.refresh_stock(trigger="manual")

        assert summary.status == "completed"
        status = runner.status()
        assert status["running"] is False
        assert status["last_run"]["status"] == "completed"
        assert status["last_success"]["items_written"] == 4

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, seeded_store):
        pipeline = StockSyncPipeline(seeded_store, StaticFeed([], error=TransientFetchError("timeout")))
        runner = TaskRunner(pipeline)

        summary = await runner.refresh_stock()

        assert summary.status == "failed"
        assert "TransientFetchError" in summary.error
        assert runner.last_success is None
        assert await seeded_store.count() == 4

    @pytest.mark.asyncio
    async def test_refresh_while_busy_is_skipped(self, store, sample_records):
        gate = asyncio.Event()
        feed = StaticFeed(sample_records, gate=gate)
        runner = TaskRunner(StockSyncPipeline(store, feed))

        first = asyncio.create_task(runner.refresh_stock())
        while feed.calls == 0:
            await asyncio.sleep(0)

        assert runner.is_running
        skipped = await runner.refresh_stock(trigger="manual")
        assert skipped.status == "skipped"
        assert feed.calls == 1

        gate.set()
        completed = await first
        assert completed.status == "completed"
        assert not runner.is_running
        # A skipped attempt does not replace the last real outcome
        assert runner.last_summary is completed

        again = await runner.refresh_stock()
        assert again.status == "completed"
        assert feed.calls == 2


class TestScheduler:

    def test_interval_job_is_registered(self, database_url):
        store = StockStore(database_url=database_url)
        runner = TaskRunner(StockSyncPipeline(store, StaticFeed([])))

        scheduler = setup_scheduler(runner)
        job = scheduler.get_job("stock_sync")

        assert job is not None
        assert isinstance(job.trigger, IntervalTrigger)
        assert job.max_instances == 1
        assert job.coalesce is True
