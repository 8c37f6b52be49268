"""
Message bus boundary.

The outbox processor only needs 'publish(payload, payload_type)'. Real deployments plug in a
broker client; InProcessEventBus simulates the broker by delivering straight to local
handlers through the inbox gate, the same path a broker consumer loop would take.
"""
import logging
from typing import Awaitable, Callable, Dict, Protocol, Type

from pydantic import BaseModel

from app.consumers.inbox_gate import InboxGate, InboxOutcome
from app.events.registry import MessageTypeRegistry

log = logging.getLogger("event_bus")

MessageHandler = Callable[[BaseModel], Awaitable[None]]


class EventBus(Protocol):
    async def publish(self, payload: BaseModel, payload_type: Type[BaseModel]) -> None:
        """Ships one payload. Raising means the delivery failed and may be retried."""
        ...


class HandlerRegistry:
    """
    Static routing table from message type tag to its handler, filled at startup.
    One handler per message type: the inbox row is keyed by message id alone.
    """

    def __init__(self):
        self._handlers: Dict[str, MessageHandler] = {}

    def subscribe(self, message_type: str, handler: MessageHandler) -> MessageHandler:
        if message_type in self._handlers:
            raise ValueError(f"A handler is already subscribed to '{message_type}'.")
        self._handlers[message_type] = handler
        return handler

    def on(self, message_type: str):
        """Decorator form of subscribe()."""
        def decorator(handler: MessageHandler) -> MessageHandler:
            return self.subscribe(message_type, handler)
        return decorator

    def get(self, message_type: str):
        return self._handlers.get(message_type)

    def __contains__(self, message_type: str) -> bool:
        return message_type in self._handlers


class InProcessEventBus:
    """Delivers published payloads to local handlers, guarded by the inbox gate."""

    def __init__(self, registry: MessageTypeRegistry, handlers: HandlerRegistry, gate: InboxGate):
        self.registry = registry
        self.handlers = handlers
        self.gate = gate

    async def publish(self, payload: BaseModel, payload_type: Type[BaseModel]) -> None:
        message_type = self.registry.name_of(payload_type)
        handler = self.handlers.get(message_type)
        if handler is None:
            log.warning(f"No handler subscribed to {message_type}; message dropped.")
            return

        message_id = getattr(payload, "id", None)
        if message_id is None:
            raise ValueError(f"Payload {payload_type.__name__} has no id to deduplicate on.")

        async def run_handler():
            await handler(payload)

        outcome = await self.gate.handle(
            message_id=message_id,
            message_type=message_type,
            content=payload.model_dump_json(),
            handler=run_handler,
        )
        if outcome == InboxOutcome.DUPLICATE:
            log.info(f"Delivery of {message_type} ({message_id}) skipped as duplicate.")
