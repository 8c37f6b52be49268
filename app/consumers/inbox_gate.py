import logging
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from app.core.clock import utc_now
from app.models.inbox import InboxMessage, InboxStatus
from app.stores.inbox_store import InboxStore

log = logging.getLogger("inbox_gate")


class InboxOutcome(str, Enum):
    PROCESSED = "PROCESSED"  # Handler ran and succeeded
    FAILED = "FAILED"  # Handler ran and raised; recorded, not retried here
    DUPLICATE = "DUPLICATE"  # Id already seen; handler not run


class InboxGate:
    """
    Idempotency gate every consumer goes through before running business logic.

    An id is handled at most once: an existing inbox row, whatever its status, means the
    delivery is a duplicate. FAILED rows count as handled; redelivering them is up to the
    message bus and still ends here as a duplicate.
    """

    def __init__(self, store: Optional[InboxStore] = None, clock: Callable[[], datetime] = utc_now):
        self.store = store or InboxStore()
        self.clock = clock

    async def handle(
        self,
        message_id: Any,
        message_type: str,
        content: str,
        handler: Callable[[], Awaitable[Any]],
    ) -> InboxOutcome:
        message_id = message_id if isinstance(message_id, uuid.UUID) else uuid.UUID(str(message_id))

        # Idempotency Check
        if await self.store.exists(message_id):
            log.info(f"Idempotency: Message {message_id} already received.")
            return InboxOutcome.DUPLICATE

        message = InboxMessage(
            id=message_id,
            message_type=message_type,
            content=content,
            received_on_utc=self.clock(),
            status=InboxStatus.NEW,
        )
        # CRITICAL: two deliveries can both pass the check above; the unique id decides the winner
        if not await self.store.add(message):
            log.info(f"Idempotency: Message {message_id} inserted concurrently by another consumer.")
            return InboxOutcome.DUPLICATE

        message.mark_processing()
        await self.store.update(message)

        try:
            await handler()
        except Exception as e:
            message.mark_failed(str(e) or e.__class__.__name__)
            await self.store.update(message)
            log.error(f"Handler for {message_type} failed on message {message_id}: {e}")
            return InboxOutcome.FAILED

        message.mark_processed(self.clock())
        await self.store.update(message)
        log.info(f"Message {message_id} ({message_type}) processed.")
        return InboxOutcome.PROCESSED
