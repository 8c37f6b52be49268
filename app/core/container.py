"""
Builds the messaging components once at startup and hands them to the app.

Message types and their handlers belong to the hosting application. Each module listed in
MESSAGE_MODULES must expose 'register_messages(registry, handlers)', which is called here
before anything is published or consumed.
"""
import importlib
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from app.consumers.cleanup import InboxCleanupJob, OutboxCleanupJob
from app.consumers.inbox_gate import InboxGate
from app.consumers.outbox_processor import OutboxProcessor
from app.core.config import MESSAGE_MODULES, OUTBOX_MAX_ATTEMPTS, OUTBOX_PUBLISH_TIMEOUT
from app.events.bus import EventBus, HandlerRegistry, InProcessEventBus
from app.events.registry import MessageTypeRegistry
from app.jobs.scheduler import JobScheduler
from app.stores.inbox_store import InboxStore
from app.stores.outbox_store import OutboxStore

log = logging.getLogger("container")


@dataclass
class Messaging:
    registry: MessageTypeRegistry
    handlers: HandlerRegistry
    outbox_store: OutboxStore
    inbox_store: InboxStore
    gate: InboxGate
    bus: EventBus
    processor: OutboxProcessor
    outbox_cleanup: OutboxCleanupJob
    inbox_cleanup: InboxCleanupJob
    scheduler: JobScheduler


def load_message_modules(registry: MessageTypeRegistry, handlers: HandlerRegistry, modules: Iterable[str]):
    for module_name in modules:
        module = importlib.import_module(module_name)
        register = getattr(module, "register_messages", None)
        if register is None:
            raise ImportError(f"Message module {module_name} has no register_messages(registry, handlers).")
        register(registry, handlers)
        log.info(f"Loaded message module {module_name}")


def build_messaging(
    registry: Optional[MessageTypeRegistry] = None,
    handlers: Optional[HandlerRegistry] = None,
    bus: Optional[EventBus] = None,
    modules: Iterable[str] = MESSAGE_MODULES,
    **scheduler_options,
) -> Messaging:
    registry = registry if registry is not None else MessageTypeRegistry()
    handlers = handlers if handlers is not None else HandlerRegistry()
    load_message_modules(registry, handlers, modules)

    outbox_store = OutboxStore()
    inbox_store = InboxStore()
    gate = InboxGate(inbox_store)
    # Without a broker client the bus delivers to local handlers through the inbox gate
    bus = bus if bus is not None else InProcessEventBus(registry, handlers, gate)

    processor = OutboxProcessor(
        bus,
        registry,
        store=outbox_store,
        max_attempts=OUTBOX_MAX_ATTEMPTS,
        publish_timeout=OUTBOX_PUBLISH_TIMEOUT or None,
    )
    outbox_cleanup = OutboxCleanupJob(outbox_store)
    inbox_cleanup = InboxCleanupJob(inbox_store)
    scheduler = JobScheduler(processor, outbox_cleanup, inbox_cleanup, **scheduler_options)

    log.info(f"Messaging ready with {len(registry)} message type(s).")
    return Messaging(
        registry=registry,
        handlers=handlers,
        outbox_store=outbox_store,
        inbox_store=inbox_store,
        gate=gate,
        bus=bus,
        processor=processor,
        outbox_cleanup=outbox_cleanup,
        inbox_cleanup=inbox_cleanup,
        scheduler=scheduler,
    )
