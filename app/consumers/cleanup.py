import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from app.core.clock import utc_now
from app.core.config import INBOX_RETENTION_DAYS, OUTBOX_RETENTION_DAYS
from app.stores.inbox_store import InboxStore
from app.stores.outbox_store import OutboxStore

log = logging.getLogger("retention_cleanup")


class _CleanupJob:
    """
    Deletes terminal messages older than the retention window in a single statement.

    Failures are logged and swallowed: a missed sweep only means the next one deletes more,
    and it must never stop the next scheduled cycle.
    """
    name = ""
    default_retention_days = 0

    def __init__(self, store, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    async def run(self, retention_days: Optional[int] = None) -> Optional[int]:
        days = self.default_retention_days if retention_days is None else retention_days
        if days < 0:
            raise ValueError("retention_days must not be negative")

        threshold = self.clock() - timedelta(days=days)
        log.info(f"Starting {self.name} cleanup job...")
        try:
            deleted = await self.store.delete_older_than(threshold)
        except Exception:
            log.exception(f"An error occurred while cleaning up the {self.name} table.")
            return None

        log.info(f"Successfully cleaned up {deleted} {self.name} messages older than {threshold.isoformat()}.")
        return deleted


class OutboxCleanupJob(_CleanupJob):
    """Removes PUBLISHED and DEAD outbox messages. PENDING ones are never deleted."""
    name = "outbox"
    default_retention_days = OUTBOX_RETENTION_DAYS

    def __init__(self, store: Optional[OutboxStore] = None, clock: Callable[[], datetime] = utc_now):
        super().__init__(store or OutboxStore(), clock)


class InboxCleanupJob(_CleanupJob):
    """Removes PROCESSED inbox messages. NEW, PROCESSING and FAILED ones are kept."""
    name = "inbox"
    default_retention_days = INBOX_RETENTION_DAYS

    def __init__(self, store: Optional[InboxStore] = None, clock: Callable[[], datetime] = utc_now):
        super().__init__(store or InboxStore(), clock)
