import pytest

from app.models.inbox import InboxStatus
from app.models.outbox import InvalidStatusTransition, OutboxStatus

from conftest import NOW, add_inbox, add_outbox


class TestOutboxStateMachine:
    @pytest.mark.asyncio
    async def test_pending_to_published(self, db):
        message = await add_outbox()
        message.record_failure("broker down")

        message.mark_published(NOW)

        assert message.status == OutboxStatus.PUBLISHED
        assert message.processed_on_utc == NOW
        assert message.error is None

    @pytest.mark.asyncio
    async def test_pending_to_dead_keeps_error(self, db):
        message = await add_outbox()
        message.mark_dead("Type Ghost is not registered.")

        assert message.status == OutboxStatus.DEAD
        assert message.error == "Type Ghost is not registered."
        assert message.processed_on_utc is None

    @pytest.mark.asyncio
    async def test_transient_failure_stays_pending(self, db):
        message = await add_outbox()
        message.record_failure("timeout")
        message.record_failure("timeout again")

        assert message.status == OutboxStatus.PENDING
        assert message.error == "timeout again"
        assert message.attempts == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("terminal", [OutboxStatus.PUBLISHED, OutboxStatus.DEAD])
    async def test_terminal_message_is_never_reopened(self, db, terminal):
        message = await add_outbox(status=terminal)

        with pytest.raises(InvalidStatusTransition):
            message.mark_published(NOW)
        with pytest.raises(InvalidStatusTransition):
            message.mark_dead("late")
        with pytest.raises(InvalidStatusTransition):
            message.record_failure("late")
        assert message.status == terminal


class TestInboxStateMachine:
    @pytest.mark.asyncio
    async def test_happy_path(self, db):
        message = await add_inbox(InboxStatus.NEW)
        message.mark_processing()
        message.mark_processed(NOW)

        assert message.status == InboxStatus.PROCESSED
        assert message.processed_on_utc == NOW

    @pytest.mark.asyncio
    async def test_failure_path(self, db):
        message = await add_inbox(InboxStatus.NEW)
        message.mark_processing()
        message.mark_failed("handler blew up")

        assert message.status == InboxStatus.FAILED
        assert message.error == "handler blew up"
        assert message.processed_on_utc is None

    @pytest.mark.asyncio
    async def test_cannot_skip_processing(self, db):
        message = await add_inbox(InboxStatus.NEW)

        with pytest.raises(InvalidStatusTransition):
            message.mark_processed(NOW)

    @pytest.mark.asyncio
    async def test_processed_is_terminal(self, db):
        message = await add_inbox(InboxStatus.PROCESSED)

        with pytest.raises(InvalidStatusTransition):
            message.mark_processing()
        with pytest.raises(InvalidStatusTransition):
            message.mark_failed("late")
