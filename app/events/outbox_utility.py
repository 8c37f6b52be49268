from typing import Any, Optional

from app.events.integration_event import IntegrationEvent
from app.events.registry import MessageTypeRegistry
from app.models.outbox import OutboxMessage, OutboxStatus
from app.stores.outbox_store import OutboxStore

_default_store = OutboxStore()


async def create_outbox_message(
    event: IntegrationEvent,
    registry: MessageTypeRegistry,
    conn: Any = None,
    store: Optional[OutboxStore] = None,
) -> OutboxMessage:
    """
    Stages an outbox message for an integration event using the provided database
    connection (transaction).

    CRITICAL: Passing 'conn' ensures the message is created atomically with the business data.
    The event id becomes the outbox id, so a retried publish carries the same dedup key.
    """
    message = OutboxMessage(
        id=event.id,
        message_type=registry.name_of(type(event)),
        content=event.model_dump_json(),
        occurred_on_utc=event.occurred_on_utc,
        status=OutboxStatus.PENDING,
        attempts=0,
    )
    return await (store or _default_store).add(message, using_db=conn)
