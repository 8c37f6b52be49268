import uuid
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.inbox import InboxStatus
from app.models.outbox import OutboxStatus


class OutboxMessageResponse(BaseModel):
    """Outbox row as shown by the inspection API. DEAD rows and their error are the audit trail."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    message_type: str
    content: str
    status: OutboxStatus
    occurred_on_utc: datetime
    created_on_utc: datetime
    processed_on_utc: Optional[datetime] = None
    error: Optional[str] = None
    attempts: int = 0


class InboxMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    message_type: str
    content: str
    status: InboxStatus
    received_on_utc: datetime
    processed_on_utc: Optional[datetime] = None
    error: Optional[str] = None


class StatusCountsResponse(BaseModel):
    counts: Dict[str, int]


class JobResponse(BaseModel):
    job_id: str
    description: str
    interval_seconds: float
    running: bool
    last_started_at: Optional[datetime] = None
    last_finished_at: Optional[datetime] = None
    last_status: Optional[str] = None
    last_error: Optional[str] = None


class BatchResultResponse(BaseModel):
    published: int
    dead: int
    failed: int
    skipped: int
    cancelled: bool = False


class CleanupRequest(BaseModel):
    retention_days: Optional[int] = Field(None, ge=0, description="Override the configured retention window.")
