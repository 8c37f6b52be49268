from datetime import datetime
from enum import Enum
from typing import Optional
from tortoise import fields, models
import uuid

from app.core.clock import utc_now


class InvalidStatusTransition(ValueError):
    """Raised when a message is moved along an edge its state machine does not allow."""


class OutboxStatus(str, Enum):
    PENDING = "PENDING"  # Written by the business transaction, waiting to be published
    PUBLISHED = "PUBLISHED"  # Handed to the message bus (terminal)
    DEAD = "DEAD"  # Permanently unpublishable, kept for inspection (terminal)


OUTBOX_TERMINAL_STATUSES = (OutboxStatus.PUBLISHED, OutboxStatus.DEAD)


class OutboxMessage(models.Model):
    """
    The Outbox table stores integration events atomically with the business transaction.
    This is the core of the Transactional Outbox Pattern.

    A PENDING row with a non-empty error is a retryable failure waiting for the next
    publish run, not a corrupted row.
    """
    # Same id as the integration event; downstream consumers deduplicate on it
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    message_type = fields.CharField(max_length=255) # e.g., 'order.placed.v1'
    content = fields.TextField() # JSON-serialized payload
    occurred_on_utc = fields.DatetimeField() # Logical event time, used for FIFO batches
    created_on_utc = fields.DatetimeField(default=utc_now) # Physical insert time, used for retention
    processed_on_utc = fields.DatetimeField(null=True)
    status = fields.CharEnumField(OutboxStatus, default=OutboxStatus.PENDING)
    error = fields.TextField(null=True)
    attempts = fields.IntField(default=0) # Transient publish failures so far

    class Meta:
        table = "outbox_messages"
        indexes = [
            ("status", "occurred_on_utc"),  # Pending batch selection
            ("status", "created_on_utc"),   # Retention cleanup
        ]

    @property
    def is_terminal(self) -> bool:
        return self.status in OUTBOX_TERMINAL_STATUSES

    def _ensure_pending(self, target: OutboxStatus):
        if self.status != OutboxStatus.PENDING:
            raise InvalidStatusTransition(
                f"Outbox message {self.id} cannot move from {self.status.value} to {target.value}."
            )

    def mark_published(self, now: Optional[datetime] = None):
        """PENDING -> PUBLISHED. Stamps processed_on_utc and clears the last error."""
        self._ensure_pending(OutboxStatus.PUBLISHED)
        self.status = OutboxStatus.PUBLISHED
        self.processed_on_utc = now or utc_now()
        self.error = None

    def mark_dead(self, error: str):
        """PENDING -> DEAD. The error is kept as the audit trail."""
        self._ensure_pending(OutboxStatus.DEAD)
        self.status = OutboxStatus.DEAD
        self.error = error

    def record_failure(self, error: str):
        """Records a transient failure. Status stays PENDING so the next run retries it."""
        self._ensure_pending(OutboxStatus.PENDING)
        self.error = error
        self.attempts += 1

    def __str__(self):
        return f"OutboxMessage({self.id}, {self.message_type}, {self.status.value})"
