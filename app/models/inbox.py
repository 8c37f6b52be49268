from datetime import datetime
from enum import Enum
from typing import Optional
from tortoise import fields, models

from app.core.clock import utc_now
from app.models.outbox import InvalidStatusTransition


class InboxStatus(str, Enum):
    NEW = "NEW"
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"


class InboxMessage(models.Model):
    """
    Table used for Idempotency in Consumers. The primary key is the id supplied by the
    producer, so the first writer wins and any later delivery of the same id is a duplicate.
    """
    id = fields.UUIDField(primary_key=True)
    message_type = fields.CharField(max_length=255)
    content = fields.TextField()
    received_on_utc = fields.DatetimeField(default=utc_now)
    processed_on_utc = fields.DatetimeField(null=True)
    status = fields.CharEnumField(InboxStatus, default=InboxStatus.NEW)
    error = fields.TextField(null=True)

    class Meta:
        table = "inbox_messages"
        indexes = [
            ("status", "received_on_utc"),  # Retention cleanup
        ]

    def _move(self, allowed_from: InboxStatus, target: InboxStatus):
        if self.status != allowed_from:
            raise InvalidStatusTransition(
                f"Inbox message {self.id} cannot move from {self.status.value} to {target.value}."
            )
        self.status = target

    def mark_processing(self):
        self._move(InboxStatus.NEW, InboxStatus.PROCESSING)

    def mark_processed(self, now: Optional[datetime] = None):
        self._move(InboxStatus.PROCESSING, InboxStatus.PROCESSED)
        self.processed_on_utc = now or utc_now()
        self.error = None

    def mark_failed(self, error: str):
        self._move(InboxStatus.PROCESSING, InboxStatus.FAILED)
        self.error = error

    def __str__(self):
        return f"InboxMessage({self.id}, {self.message_type}, {self.status.value})"
