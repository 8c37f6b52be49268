from datetime import datetime
from typing import Any, Dict, List, Optional

from tortoise.functions import Count

from app.models.outbox import OutboxMessage, OutboxStatus, OUTBOX_TERMINAL_STATUSES

# Columns the publishing engine is allowed to change
_BOOKKEEPING_FIELDS = ["status", "error", "processed_on_utc", "attempts"]


class OutboxStore:
    """
    Persistence boundary for outbox messages. Pure data access: no publishing logic and
    no retries, storage errors surface to the caller.
    """

    async def add(self, message: OutboxMessage, using_db: Any = None) -> OutboxMessage:
        """
        Stages a new outbox message on the given connection.

        CRITICAL: Passing 'using_db' (the connection from in_transaction()) makes the insert
        commit or roll back together with the business writes.
        """
        await message.save(using_db=using_db, force_create=True)
        return message

    async def get_unprocessed(self, batch_size: int) -> List[OutboxMessage]:
        """Oldest PENDING messages first (by occurred_on_utc), at most batch_size of them."""
        if batch_size <= 0:
            return []
        return await (
            OutboxMessage.filter(status=OutboxStatus.PENDING)
            .order_by("occurred_on_utc", "created_on_utc")
            .limit(batch_size)
        )

    async def update(self, message: OutboxMessage) -> None:
        """Persists the bookkeeping columns immediately, outside any business transaction."""
        await message.save(update_fields=_BOOKKEEPING_FIELDS)

    async def delete_older_than(self, cutoff: datetime) -> int:
        """Set-based delete of PUBLISHED/DEAD messages created before cutoff. Never touches PENDING."""
        return await OutboxMessage.filter(
            status__in=list(OUTBOX_TERMINAL_STATUSES),
            created_on_utc__lt=cutoff,
        ).delete()

    async def get_by_id(self, message_id: Any) -> Optional[OutboxMessage]:
        return await OutboxMessage.get_or_none(id=message_id)

    async def list_by_status(self, status: OutboxStatus, limit: int = 50) -> List[OutboxMessage]:
        """Used by the inspection API, newest first so recent dead letters show up on top."""
        return await OutboxMessage.filter(status=status).order_by("-created_on_utc").limit(limit)

    async def count_by_status(self) -> Dict[str, int]:
        rows = await (
            OutboxMessage.all()
            .annotate(total=Count("id"))
            .group_by("status")
            .values("status", "total")
        )
        counts = {status.value: 0 for status in OutboxStatus}
        for row in rows:
            status = row["status"]
            counts[getattr(status, "value", status)] = row["total"]
        return counts
