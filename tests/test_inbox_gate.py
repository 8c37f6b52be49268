import asyncio
import uuid

import pytest

from app.consumers.inbox_gate import InboxGate, InboxOutcome
from app.models.inbox import InboxMessage, InboxStatus
from app.stores.inbox_store import InboxStore
from app.testing.testing_mocks import AsyncMockUtil

from conftest import NOW


def make_gate():
    return InboxGate(InboxStore(), clock=lambda: NOW)


class TestInboxGate:
    @pytest.mark.asyncio
    async def test_first_delivery_runs_handler(self, db):
        handler = AsyncMockUtil()
        message_id = uuid.uuid4()

        outcome = await make_gate().handle(message_id, "order.placed.v1", "{}", handler)

        assert outcome == InboxOutcome.PROCESSED
        handler.assert_awaited_once()
        stored = await InboxMessage.get(id=message_id)
        assert stored.status == InboxStatus.PROCESSED
        assert stored.processed_on_utc == NOW
        assert stored.error is None

    @pytest.mark.asyncio
    async def test_second_delivery_is_a_no_op(self, db):
        handler = AsyncMockUtil()
        message_id = uuid.uuid4()
        gate = make_gate()

        await gate.handle(message_id, "order.placed.v1", "{}", handler)
        outcome = await gate.handle(str(message_id), "order.placed.v1", "{}", handler)

        assert outcome == InboxOutcome.DUPLICATE
        assert handler.await_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_deliveries_run_handler_once(self, db):
        calls = []
        message_id = uuid.uuid4()

        async def handler():
            calls.append(message_id)
            await asyncio.sleep(0)

        outcomes = await asyncio.gather(
            make_gate().handle(message_id, "order.placed.v1", "{}", handler),
            make_gate().handle(message_id, "order.placed.v1", "{}", handler),
        )

        assert len(calls) == 1
        assert sorted(outcomes) == sorted([InboxOutcome.PROCESSED, InboxOutcome.DUPLICATE])
        assert await InboxMessage.filter(id=message_id).count() == 1

    @pytest.mark.asyncio
    async def test_insert_conflict_counts_as_duplicate(self):
        """Both consumers passed the existence check; the unique id rejects the second insert."""
        store = InboxStore()
        store.exists = AsyncMockUtil(return_value=False)
        store.add = AsyncMockUtil(return_value=False)
        store.update = AsyncMockUtil()
        handler = AsyncMockUtil()

        outcome = await InboxGate(store).handle(uuid.uuid4(), "order.placed.v1", "{}", handler)

        assert outcome == InboxOutcome.DUPLICATE
        handler.assert_not_called()
        store.update.assert_not_called()

    @pytest.mark.asyncio
    async def test_handler_failure_is_recorded_and_not_retried(self, db):
        handler = AsyncMockUtil(side_effect=ValueError("insufficient inventory"))
        message_id = uuid.uuid4()
        gate = make_gate()

        outcome = await gate.handle(message_id, "order.placed.v1", "{}", handler)

        assert outcome == InboxOutcome.FAILED
        stored = await InboxMessage.get(id=message_id)
        assert stored.status == InboxStatus.FAILED
        assert stored.error == "insufficient inventory"
        assert stored.processed_on_utc is None

        # Redelivery of a failed message is still a duplicate
        redelivery = await gate.handle(message_id, "order.placed.v1", "{}", handler)
        assert redelivery == InboxOutcome.DUPLICATE
        assert handler.await_count == 1

    @pytest.mark.asyncio
    async def test_status_is_processing_while_handler_runs(self, db):
        message_id = uuid.uuid4()
        seen = []

        async def handler():
            seen.append((await InboxMessage.get(id=message_id)).status)

        await make_gate().handle(message_id, "order.placed.v1", "{}", handler)

        assert seen == [InboxStatus.PROCESSING]
