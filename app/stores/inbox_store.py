from datetime import datetime
from typing import Any, Dict, List, Optional

from tortoise.exceptions import IntegrityError
from tortoise.functions import Count

from app.models.inbox import InboxMessage, InboxStatus

_BOOKKEEPING_FIELDS = ["status", "error", "processed_on_utc"]


class InboxStore:
    """Persistence boundary for inbox messages. The primary key on id is the idempotency guard."""

    async def exists(self, message_id: Any) -> bool:
        return await InboxMessage.filter(id=message_id).exists()

    async def get_by_id(self, message_id: Any) -> Optional[InboxMessage]:
        return await InboxMessage.get_or_none(id=message_id)

    async def add(self, message: InboxMessage, using_db: Any = None) -> bool:
        """
        Inserts a new inbox message. Returns False when another writer already inserted
        the same id (unique constraint conflict), True when this call won.
        """
        try:
            await message.save(using_db=using_db, force_create=True)
        except IntegrityError:
            return False
        return True

    async def update(self, message: InboxMessage) -> None:
        await message.save(update_fields=_BOOKKEEPING_FIELDS)

    async def delete_older_than(self, cutoff: datetime) -> int:
        """Set-based delete of PROCESSED messages received before cutoff."""
        return await InboxMessage.filter(
            status=InboxStatus.PROCESSED,
            received_on_utc__lt=cutoff,
        ).delete()

    async def list_by_status(self, status: InboxStatus, limit: int = 50) -> List[InboxMessage]:
        return await InboxMessage.filter(status=status).order_by("-received_on_utc").limit(limit)

    async def count_by_status(self) -> Dict[str, int]:
        rows = await (
            InboxMessage.all()
            .annotate(total=Count("id"))
            .group_by("status")
            .values("status", "total")
        )
        counts = {status.value: 0 for status in InboxStatus}
        for row in rows:
            status = row["status"]
            counts[getattr(status, "value", status)] = row["total"]
        return counts
