import asyncio

import pytest

from llm_fakes import FakeOrchestrator, make_response
from models.domain import BatchItemStatus, BatchSummary, GenerationSettings, ImageUpload
from services.llm_errors import ValidationError
from workers.batch_generator import BatchGenerationController

LIBRARY = "tag,definition\nAction,動作場面"


def uploads(count):
    return [ImageUpload(image=f"img-{i}".encode(), mime_type="image/png", filename=f"cover-{i}.png") for i in range(count)]


def make_controller(orchestrator, csv=LIBRARY, **kwargs):
    return BatchGenerationController(orchestrator, csv, GenerationSettings(), **kwargs)


class TestAddItems:
    def test_creates_pending_items_with_unique_ids(self):
        controller = make_controller(FakeOrchestrator())

        items = controller.add_items(uploads(3))

        assert [i.status for i in items] == [BatchItemStatus.PENDING] * 3
        assert len({i.id for i in items}) == 3
        assert items[0].filename == "cover-0.png"

    def test_replaces_previous_collection(self):
        controller = make_controller(FakeOrchestrator())
        controller.add_items(uploads(3))
        controller.active_item_id = controller.items[0].id
        controller.summary = BatchSummary(1, 0)

        controller.add_items(uploads(1))

        assert len(controller.items) == 1
        assert controller.active_item_id is None
        assert controller.summary is None


class TestRunBatch:
    @pytest.mark.asyncio
    async def test_processes_items_in_order(self):
        orchestrator = FakeOrchestrator([make_response(description=f"r{i}") for i in range(3)])
        finished, succeeded = [], []
        controller = make_controller(
            orchestrator,
            on_item_success=lambda result, item: succeeded.append(item.filename),
            on_batch_finished=finished.append,
        )
        controller.add_items(uploads(3))

        summary = await controller.run_batch()

        assert summary == BatchSummary(completed=3, failed=0, cancelled=False)
        assert finished == [summary]
        assert controller.summary == summary
        assert succeeded == ["cover-0.png", "cover-1.png", "cover-2.png"]
        assert [i.result.description for i in controller.items] == ["r0", "r1", "r2"]
        assert [r.image for r in orchestrator.requests] == [b"img-0", b"img-1", b"img-2"]
        assert all(r.pinned_tags is None and r.excluded_tags is None for r in orchestrator.requests)
        assert not controller.is_running

    @pytest.mark.asyncio
    async def test_failures_are_recorded_and_loop_continues(self):
        orchestrator = FakeOrchestrator([make_response(), ValidationError("bad json"), make_response()])
        controller = make_controller(orchestrator)
        controller.add_items(uploads(3))

        summary = await controller.run_batch()

        assert summary == BatchSummary(completed=2, failed=1)
        assert [i.status for i in controller.items] == [
            BatchItemStatus.COMPLETED,
            BatchItemStatus.ERROR,
            BatchItemStatus.COMPLETED,
        ]
        assert controller.items[1].error == "bad json"

    @pytest.mark.asyncio
    async def test_cancellation_mid_batch(self):
        orchestrator = FakeOrchestrator()
        finished = []
        controller = make_controller(orchestrator, on_batch_finished=finished.append)

        async def stop_while_processing():
            controller.stop()
            await asyncio.Event().wait()

        orchestrator.outcomes = [make_response(), make_response(), stop_while_processing]
        controller.add_items(uploads(5))

        summary = await controller.run_batch()

        assert [i.status for i in controller.items] == [
            BatchItemStatus.COMPLETED,
            BatchItemStatus.COMPLETED,
            BatchItemStatus.PENDING,
            BatchItemStatus.PENDING,
            BatchItemStatus.PENDING,
        ]
        assert len(orchestrator.requests) == 3
        assert summary == BatchSummary(completed=2, failed=0, cancelled=True)
        assert finished == []
        assert controller.summary is None
        assert not controller.is_running

    @pytest.mark.asyncio
    async def test_rerun_skips_completed_items(self):
        orchestrator = FakeOrchestrator()
        finished = []
        controller = make_controller(orchestrator, on_batch_finished=finished.append)

        async def stop_while_processing():
            controller.stop()
            await asyncio.Event().wait()

        orchestrator.outcomes = [make_response(), stop_while_processing]
        controller.add_items(uploads(3))
        await controller.run_batch()

        orchestrator.outcomes = [make_response(), make_response()]
        summary = await controller.run_batch()

        assert summary == BatchSummary(completed=3, failed=0)
        assert finished == [summary]
        assert [r.image for r in orchestrator.requests] == [b"img-0", b"img-1", b"img-1", b"img-2"]

    @pytest.mark.asyncio
    async def test_processing_leftovers_are_retried(self):
        orchestrator = FakeOrchestrator([make_response()])
        controller = make_controller(orchestrator)
        controller.add_items(uploads(1))
        controller.items[0].status = BatchItemStatus.PROCESSING

        summary = await controller.run_batch()

        assert summary.completed == 1
        assert controller.items[0].status == BatchItemStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_errored_items_are_retried_on_rerun(self):
        orchestrator = FakeOrchestrator([ValidationError("bad json"), make_response()])
        controller = make_controller(orchestrator)
        controller.add_items(uploads(1))
        await controller.run_batch()

        await controller.run_batch()

        assert controller.items[0].status == BatchItemStatus.COMPLETED
        assert controller.items[0].error is None

    @pytest.mark.asyncio
    async def test_refuses_without_library(self):
        orchestrator = FakeOrchestrator()
        controller = make_controller(orchestrator, csv=None)
        controller.add_items(uploads(2))

        assert await controller.run_batch() is None
        assert orchestrator.requests == []

    @pytest.mark.asyncio
    async def test_refuses_while_running(self):
        gate = asyncio.Event()

        async def slow():
            await gate.wait()
            return make_response()

        orchestrator = FakeOrchestrator([slow])
        controller = make_controller(orchestrator)
        controller.add_items(uploads(1))
        first = asyncio.ensure_future(controller.run_batch())
        while not orchestrator.requests:
            await asyncio.sleep(0.001)

        assert controller.is_running
        assert await controller.run_batch() is None
        gate.set()
        assert (await first).completed == 1

    @pytest.mark.asyncio
    async def test_empty_batch_reports_nothing(self):
        finished = []
        controller = make_controller(FakeOrchestrator(), on_batch_finished=finished.append)

        summary = await controller.run_batch()

        assert summary == BatchSummary(0, 0)
        assert finished == []
        assert controller.summary is None

    @pytest.mark.asyncio
    async def test_last_processed_item_stays_active(self):
        controller = make_controller(FakeOrchestrator())
        controller.add_items(uploads(2))

        await controller.run_batch()

        assert controller.active_item_id == controller.items[1].id


class TestReset:
    @pytest.mark.asyncio
    async def test_reset_clears_summary_and_active_item(self):
        controller = make_controller(FakeOrchestrator())
        controller.add_items(uploads(1))
        await controller.run_batch()

        controller.reset()

        assert controller.summary is None
        assert controller.active_item_id is None
        assert controller.items[0].status == BatchItemStatus.COMPLETED

    def test_stop_when_idle_is_noop(self):
        make_controller(FakeOrchestrator()).stop()
