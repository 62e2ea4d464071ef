"""Tests for polling workers and the worker layer."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from ledger.errors import DuplicateSpan, StoreError
from ledger.models import Span
from ledger.storage import SpanQuery
from ledger.workers import PollingWorker, RequestWorker, WorkerLayer


class FlakyWorker(PollingWorker):
    """Fails on items whose input says so."""

    entity_type = "job"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.seen = []

    async def process(self, item, ctx):
        self.seen.append(item.id)
        if item.input.get("fail"):
            raise ValueError(f"cannot handle {item.id}")
        return {"handled": ctx.event["item"]["id"]}


async def add_jobs(store, specs):
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    spans = []
    for i, (span_id, fail) in enumerate(specs):
        spans.append(
            await store.insert(
                Span(
                    id=span_id,
                    entity_type="job",
                    who="user:alice",
                    did="queued",
                    this=span_id,
                    status="pending",
                    input={"fail": fail},
                    at=base + timedelta(seconds=i),
                )
            )
        )
    return spans


def make_worker(store, cls=FlakyWorker, **kwargs):
    return cls(
        name=kwargs.pop("name", "flaky"),
        storage=store,
        signer=store.signer,
        identity=store.identity,
        **kwargs,
    )


async def results_for(store, span_id):
    spans = await store.query(SpanQuery(id=span_id, order="seq_desc"))
    return spans[0]


class TestPollingWorker:
    """Tests for PollingWorker.run_once()."""

    async def test_failing_item_does_not_stop_batch(self, signed_storage):
        await add_jobs(signed_storage, [("j1", False), ("j2", True), ("j3", False)])
        worker = make_worker(signed_storage)

        report = await worker.run_once()

        assert report.selected == 3
        assert report.processed == 3
        assert (report.succeeded, report.failed, report.skipped) == (2, 1, 0)
        assert worker.seen == ["j1", "j2", "j3"]

        first = await results_for(signed_storage, "j1")
        second = await results_for(signed_storage, "j2")
        third = await results_for(signed_storage, "j3")

        assert first.status == "complete"
        assert first.output == {"handled": "j1"}
        assert third.status == "complete"
        assert second.status == "error"
        assert "cannot handle j2" in second.error["message"]
        assert second.output is None

    async def test_result_is_next_revision(self, signed_storage):
        await add_jobs(signed_storage, [("j1", False)])
        report = await make_worker(signed_storage).run_once()

        result = await results_for(signed_storage, "j1")
        assert report.result_ids == ["j1"]
        assert result.seq == 1
        assert result.related_to == ["j1"]
        assert result.who == "worker:flaky"
        assert result.did == "processed"
        assert result.duration_ms is not None
        assert result.is_signed

    async def test_results_in_processing_order(self, storage):
        await add_jobs(storage, [("j1", False), ("j2", False), ("j3", False)])
        report = await make_worker(storage).run_once()
        assert report.result_ids == ["j1", "j2", "j3"]

    async def test_processed_items_not_selected_again(self, storage):
        await add_jobs(storage, [("j1", False), ("j2", True)])
        worker = make_worker(storage)

        await worker.run_once()
        report = await worker.run_once()

        assert report.selected == 0
        assert worker.seen == ["j1", "j2"]

    async def test_batch_size_bounds_selection(self, storage):
        await add_jobs(storage, [(f"j{i}", False) for i in range(5)])
        worker = make_worker(storage, batch_size=2)

        report = await worker.run_once()
        assert report.selected == 2
        assert worker.seen == ["j0", "j1"]

    async def test_redelivery_counts_as_skipped(self, storage):
        """Two passes over the same snapshot: the second result loses."""
        await add_jobs(storage, [("j1", False)])
        first = make_worker(storage, name="a")
        second = make_worker(storage, name="b")

        snapshot = await first.select_batch()
        second.select_batch = AsyncMock(return_value=snapshot)
        first.select_batch = AsyncMock(return_value=snapshot)

        report_a = await first.run_once()
        report_b = await second.run_once()

        assert report_a.succeeded == 1
        assert report_b.skipped == 1
        assert second.seen == ["j1"]
        result = await results_for(storage, "j1")
        assert result.who == "worker:a"

    async def test_store_error_propagates(self, storage, monkeypatch):
        await add_jobs(storage, [("j1", False)])
        monkeypatch.setattr(
            storage, "insert", AsyncMock(side_effect=StoreError("disk full"))
        )

        with pytest.raises(StoreError):
            await make_worker(storage).run_once()

    async def test_duplicate_is_a_store_error(self):
        assert issubclass(DuplicateSpan, StoreError)

    async def test_base_process_not_implemented(self, storage):
        await add_jobs(storage, [("j1", False)])

        class Bare(PollingWorker):
            entity_type = "job"

        report = await make_worker(storage, cls=Bare, name="bare").run_once()
        assert report.failed == 1


class TestRequestWorker:
    """Tests for RequestWorker."""

    async def _request(self, store, **fields):
        return await store.insert(
            Span(
                entity_type="request",
                who="user:alice",
                this="summarize",
                status="pending",
                **fields,
            )
        )

    async def test_default_acknowledgement(self, storage):
        request = await self._request(storage)
        worker = RequestWorker(storage, storage.signer, storage.identity)

        report = await worker.run_once()

        assert worker.name == "request_worker"
        assert report.succeeded == 1
        result = await results_for(storage, request.id)
        assert result.output["request_id"] == request.id
        assert "processed_at" in result.output

    async def test_custom_handler(self, storage):
        request = await self._request(storage, input={"text": "hi"})

        async def handler(item, ctx):
            await ctx.insert_span(
                {"entity_type": "reply", "who": "bot", "this": item.id}
            )
            return {"echo": item.input["text"]}

        worker = RequestWorker(storage, storage.signer, storage.identity, handler=handler)
        await worker.run_once()

        result = await results_for(storage, request.id)
        assert result.output == {"echo": "hi"}
        assert len(await storage.query(SpanQuery(entity_type="reply"))) == 1

    async def test_ignores_other_kinds(self, storage):
        await add_jobs(storage, [("j1", False)])
        report = await RequestWorker(storage, storage.signer, storage.identity).run_once()
        assert report.selected == 0


class TestWorkerLayer:
    """Tests for WorkerLayer."""

    async def test_run_once_over_all_workers(self, storage):
        await add_jobs(storage, [("j1", False)])
        layer = WorkerLayer()
        layer.register_worker(make_worker(storage))
        layer.register_worker(RequestWorker(storage, storage.signer, storage.identity))

        reports = await layer.run_once()

        assert set(reports) == {"flaky", "request_worker"}
        assert reports["flaky"].succeeded == 1
        assert reports["request_worker"].selected == 0

    async def test_start_and_stop_polling(self, storage):
        worker = make_worker(storage)
        layer = WorkerLayer()
        layer.register_worker(worker)

        await layer.start(interval=0.01)
        await add_jobs(storage, [("j1", False)])
        for _ in range(100):
            if worker.seen:
                break
            await asyncio.sleep(0.01)
        await layer.stop()

        assert worker.seen == ["j1"]

    async def test_failing_pass_keeps_loop_alive(self, storage):
        worker = make_worker(storage)
        worker.run_once = AsyncMock(side_effect=[RuntimeError("boom"), None, None])
        layer = WorkerLayer()
        layer.register_worker(worker)

        await layer.start(interval=0.01)
        for _ in range(100):
            if worker.run_once.await_count >= 2:
                break
            await asyncio.sleep(0.01)
        await layer.stop()

        assert worker.run_once.await_count >= 2
