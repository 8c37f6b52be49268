# app/models/__init__.py
from .outbox import OutboxMessage, OutboxStatus, InvalidStatusTransition
from .inbox import InboxMessage, InboxStatus

# Export all models
__all__ = [
    "InboxMessage",
    "InboxStatus",
    "InvalidStatusTransition",
    "OutboxMessage",
    "OutboxStatus",
]
