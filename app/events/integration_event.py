from datetime import datetime
from typing import ClassVar
import uuid

from pydantic import BaseModel, Field

from app.core.clock import utc_now


class IntegrationEvent(BaseModel):
    """
    Base class for events that cross the service boundary through the outbox.

    Subclasses set 'message_type' to the stable tag stored in the outbox row, e.g.:

        class OrderPlaced(IntegrationEvent):
            message_type: ClassVar[str] = "order.placed.v1"
            order_id: uuid.UUID
    """
    message_type: ClassVar[str] = ""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    occurred_on_utc: datetime = Field(default_factory=utc_now)
