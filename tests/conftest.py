import uuid
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from tortoise import Tortoise

from app.core.db import init_db
from app.events.bus import HandlerRegistry
from app.events.registry import MessageTypeRegistry
from app.models.inbox import InboxMessage, InboxStatus
from app.models.outbox import OutboxMessage, OutboxStatus
from app.testing import sample_messages
from app.testing.sample_messages import OrderPlaced

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory SQLite database per test."""
    await init_db(db_url="sqlite://:memory:")
    yield
    await Tortoise.close_connections()


@pytest.fixture
def registry():
    return MessageTypeRegistry([OrderPlaced])


@pytest.fixture
def handlers():
    handlers = HandlerRegistry()
    handlers.subscribe(OrderPlaced.message_type, sample_messages.handle_order_placed)
    return handlers


@pytest.fixture(autouse=True)
def clear_handled_orders():
    sample_messages.HANDLED_ORDERS.clear()
    yield
    sample_messages.HANDLED_ORDERS.clear()


def order_placed(minutes_ago: int = 0) -> OrderPlaced:
    return OrderPlaced(
        order_id=uuid.uuid4(),
        total_amount="25.98",
        occurred_on_utc=NOW - timedelta(minutes=minutes_ago),
    )


async def add_outbox(
    message_type: str = OrderPlaced.message_type,
    content: str = None,
    status: OutboxStatus = OutboxStatus.PENDING,
    occurred_on_utc: datetime = NOW,
    created_on_utc: datetime = NOW,
) -> OutboxMessage:
    if content is None:
        content = order_placed().model_dump_json()
    return await OutboxMessage.create(
        id=uuid.uuid4(),
        message_type=message_type,
        content=content,
        status=status,
        occurred_on_utc=occurred_on_utc,
        created_on_utc=created_on_utc,
    )


async def add_inbox(status: InboxStatus, received_on_utc: datetime = NOW) -> InboxMessage:
    return await InboxMessage.create(
        id=uuid.uuid4(),
        message_type=OrderPlaced.message_type,
        content="{}",
        status=status,
        received_on_utc=received_on_utc,
    )
