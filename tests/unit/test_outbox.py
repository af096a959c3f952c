"""Unit tests for EventEmitter and OutboxProcessor."""

from datetime import timedelta

import pytest

from auditguard.api.application.pipeline import EventEmitter
from auditguard.api.domain.events import WorkflowSignal, utcnow
from auditguard.api.infrastructure.outbox_processor import OutboxProcessor


@pytest.mark.unit
class TestEventEmitter:

    @pytest.mark.asyncio
    async def test_event_and_signal_written_together(self, uow, store):
        message_id = await EventEmitter(uow).emit("company-a", "job-1", ["a1", "a2"], high_risk=1)

        assert len(store.events) == 1
        event = store.events[0]
        assert event.event_type == "compliance.audit.completed"
        assert event.company_id == "company-a"
        assert event.payload["auditIds"] == ["a1", "a2"]
        assert event.payload["auditCount"] == 2
        assert event.payload["highRisk"] == 1
        assert event.payload["source"] == "request"

        message = store.outbox[message_id]
        assert message["event_type"] == WorkflowSignal.AUDIT_COMPLETED
        assert message["payload"] == {"companyId": "company-a", "jobId": "job-1", "auditIds": ["a1", "a2"]}
        assert uow.commits == 1

    @pytest.mark.asyncio
    async def test_without_signal(self, uow, store):
        message_id = await EventEmitter(uow).emit(
            "company-a", "job-1", ["a1"], source="workflow", run_id="run-1", signal=False
        )

        assert message_id is None
        assert store.outbox == {}
        assert store.events[0].payload["runId"] == "run-1"
        assert store.events[0].payload["source"] == "workflow"

    @pytest.mark.asyncio
    async def test_no_audits_no_event(self, uow, store):
        assert await EventEmitter(uow).emit("company-a", "job-1", []) is None
        assert store.events == []
        assert store.outbox == {}

    @pytest.mark.asyncio
    async def test_failure_is_swallowed_and_nothing_committed(self, uow, store):
        store.fail_events = True

        assert await EventEmitter(uow).emit("company-a", "job-1", ["a1"]) is None

        assert store.events == []
        assert store.outbox == {}


async def _queue(uow, *job_ids):
    ids = []
    for job_id in job_ids:
        async with uow:
            ids.append(await uow.outbox.save(WorkflowSignal.audit_completed("company-a", job_id, ["a1"])))
            await uow.commit()
    return ids


@pytest.mark.unit
class TestOutboxProcessor:

    @pytest.mark.asyncio
    async def test_deliver_sends_and_marks(self, uow, store, dispatcher):
        [message_id] = await _queue(uow, "job-1")

        delivered = await OutboxProcessor(uow, dispatcher).deliver([message_id])

        assert delivered == 1
        assert dispatcher.sent[0]["name"] == WorkflowSignal.AUDIT_COMPLETED
        assert dispatcher.sent[0]["data"]["jobId"] == "job-1"
        assert dispatcher.sent[0]["signal_id"] == store.outbox[message_id]["event_id"]
        assert store.outbox[message_id]["published"] is True

    @pytest.mark.asyncio
    async def test_deliver_ignores_missing_ids(self, uow, dispatcher):
        assert await OutboxProcessor(uow, dispatcher).deliver([None]) == 0
        assert dispatcher.sent == []

    @pytest.mark.asyncio
    async def test_deliver_skips_already_published(self, uow, dispatcher):
        [message_id] = await _queue(uow, "job-1")
        processor = OutboxProcessor(uow, dispatcher)
        await processor.deliver([message_id])

        assert await processor.deliver([message_id]) == 0
        assert len(dispatcher.sent) == 1

    @pytest.mark.asyncio
    async def test_failed_send_counts_retry(self, uow, store, dispatcher):
        [message_id] = await _queue(uow, "job-1")
        dispatcher.fail = True

        assert await OutboxProcessor(uow, dispatcher).deliver([message_id]) == 0

        message = store.outbox[message_id]
        assert message["published"] is False
        assert message["retry_count"] == 1
        assert message["last_error"] == "broker unreachable"

    @pytest.mark.asyncio
    async def test_broker_down_leaves_batch(self, uow, store, dispatcher):
        [message_id] = await _queue(uow, "job-1")
        dispatcher.connected = False

        assert await OutboxProcessor(uow, dispatcher).sweep() == 0
        assert store.outbox[message_id]["published"] is False
        assert store.outbox[message_id]["retry_count"] == 0

    @pytest.mark.asyncio
    async def test_sweep_delivers_everything(self, uow, store, dispatcher):
        await _queue(uow, "job-1", "job-2", "job-3")

        assert await OutboxProcessor(uow, dispatcher).sweep() == 3
        assert [s["data"]["jobId"] for s in dispatcher.sent] == ["job-1", "job-2", "job-3"]
        assert all(m["published"] for m in store.outbox.values())

    @pytest.mark.asyncio
    async def test_sweep_respects_batch_size(self, uow, dispatcher):
        await _queue(uow, "job-1", "job-2", "job-3")

        assert await OutboxProcessor(uow, dispatcher, batch_size=2).sweep() == 2

    @pytest.mark.asyncio
    async def test_dead_letter_after_max_retries(self, uow, store, dispatcher):
        [message_id] = await _queue(uow, "job-1")
        store.outbox[message_id]["retry_count"] = 5

        assert await OutboxProcessor(uow, dispatcher, max_retries=5).sweep() == 1
        assert dispatcher.sent == []
        assert store.outbox[message_id]["published"] is True

    @pytest.mark.asyncio
    async def test_cleanup_removes_old_published(self, uow, store, dispatcher):
        old_id, fresh_id = await _queue(uow, "job-1", "job-2")
        store.outbox[old_id]["published"] = True
        store.outbox[old_id]["published_at"] = utcnow() - timedelta(hours=100)

        await OutboxProcessor(uow, dispatcher, retention_hours=72).sweep()

        assert old_id not in store.outbox
        assert fresh_id in store.outbox
