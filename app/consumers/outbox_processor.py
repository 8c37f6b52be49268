"""
Outbox publishing engine.

Each run selects a bounded batch of PENDING messages (oldest first), resolves their payload
type, publishes them and records the outcome of every message before moving on:

- unknown message type  -> DEAD, never retried
- publish/decode failure -> stays PENDING with 'error' set, retried by the next run
- success                -> PUBLISHED

Because retry is just "run again later", a crash mid-batch leaves every message whose outcome
was not yet persisted in PENDING, which is exactly the state the next run needs.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from app.core.clock import utc_now
from app.events.bus import EventBus
from app.events.registry import MessageTypeRegistry
from app.models.outbox import OutboxMessage
from app.stores.outbox_store import OutboxStore

log = logging.getLogger("outbox_processor")

# Long tracebacks in 'error' only bloat the table
MAX_ERROR_LENGTH = 2000


@dataclass
class BatchResult:
    published: int = 0
    dead: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: bool = False

    @property
    def total(self) -> int:
        return self.published + self.dead + self.failed + self.skipped


def _describe(exc: BaseException) -> str:
    text = str(exc) or exc.__class__.__name__
    return text[:MAX_ERROR_LENGTH]


class OutboxProcessor:
    def __init__(
        self,
        bus: EventBus,
        registry: MessageTypeRegistry,
        store: Optional[OutboxStore] = None,
        max_attempts: int = 0,
        publish_timeout: Optional[float] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        max_attempts: dead-letter a message after this many transient failures, 0 to retry forever.
        publish_timeout: seconds allowed for one bus publish call, None for no limit.
        """
        self.bus = bus
        self.registry = registry
        self.store = store or OutboxStore()
        self.max_attempts = max_attempts
        self.publish_timeout = publish_timeout
        self.clock = clock

    async def process(self, batch_size: int, cancellation: Optional[asyncio.Event] = None) -> BatchResult:
        """
        Publishes one batch of pending messages.

        Storage errors while persisting an outcome propagate and end the run; outcomes already
        persisted stay applied and the rest of the batch stays PENDING. Setting 'cancellation'
        stops the run before the next message.
        """
        log.debug("Scanning outbox for messages to publish...")
        messages = await self.store.get_unprocessed(batch_size)
        result = BatchResult()
        if not messages:
            return result

        for message in messages:
            if cancellation is not None and cancellation.is_set():
                log.info("Outbox run cancelled; remaining messages stay pending.")
                result.cancelled = True
                break
            await self._process_message(message, result)

        log.info(
            f"Outbox batch done: published={result.published} dead={result.dead} "
            f"failed={result.failed} skipped={result.skipped} of {len(messages)}"
        )
        return result

    async def _process_message(self, message: OutboxMessage, result: BatchResult):
        payload_type = self.registry.resolve(message.message_type)
        if payload_type is None:
            # Permanent failure: retrying cannot make an unregistered type appear
            log.error(f"Can't resolve type: {message.message_type} for message {message.id}")
            message.mark_dead(f"Type {message.message_type} is not registered.")
            await self.store.update(message)
            result.dead += 1
            return

        try:
            payload = self.registry.deserialize(payload_type, message.content)
            if payload is None:
                log.warning(f"Outbox message {message.id} has no payload; left untouched.")
                result.skipped += 1
                return
            await self._publish(payload, payload_type)
        except Exception as e:
            self._record_failure(message, e)
            if message.is_terminal:
                result.dead += 1
            else:
                result.failed += 1
            await self.store.update(message)
            return

        message.mark_published(self.clock())
        await self.store.update(message)
        result.published += 1
        log.info(f"Published event successfully. MessageId: {message.id}, Type: {message.message_type}")

    async def _publish(self, payload, payload_type):
        if self.publish_timeout is None:
            await self.bus.publish(payload, payload_type)
        else:
            await asyncio.wait_for(self.bus.publish(payload, payload_type), timeout=self.publish_timeout)

    def _record_failure(self, message: OutboxMessage, exc: Exception):
        error = _describe(exc)
        message.record_failure(error)
        if self.max_attempts > 0 and message.attempts >= self.max_attempts:
            message.mark_dead(f"Gave up after {message.attempts} attempts: {error}"[:MAX_ERROR_LENGTH])
            log.error(f"Outbox message {message.id} dead-lettered after {message.attempts} attempts: {error}")
        else:
            log.warning(
                f"Error processing outbox message {message.id} (attempt {message.attempts}), "
                f"will retry on next run: {error}",
                exc_info=exc,
            )
