from fastapi import APIRouter, Depends, HTTPException, Query
from uuid import UUID

from app.api.deps import get_messaging
from app.core.container import Messaging
from app.models.outbox import OutboxStatus
from app.schemas.messages import OutboxMessageResponse, StatusCountsResponse
from app.schemas.response import ListData, SuccessResponse

router = APIRouter()


@router.get("/messages", response_model=SuccessResponse)
async def list_outbox_messages(
    status: OutboxStatus = OutboxStatus.DEAD,
    limit: int = Query(50, ge=1, le=500),
    messaging: Messaging = Depends(get_messaging),
):
    """
    Lists outbox messages in a given status, newest first. Defaults to DEAD so operators can
    see permanently failed messages and why they failed.
    """
    messages = await messaging.outbox_store.list_by_status(status, limit=limit)
    items = [OutboxMessageResponse.model_validate(m).model_dump(mode="json") for m in messages]
    return SuccessResponse(data=ListData(count=len(items), items=items).model_dump())


@router.get("/messages/{message_id}", response_model=SuccessResponse)
async def get_outbox_message(message_id: UUID, messaging: Messaging = Depends(get_messaging)):
    """Fetches a single outbox message."""
    message = await messaging.outbox_store.get_by_id(message_id)
    if not message:
        raise HTTPException(status_code=404, detail="Outbox message not found")
    return SuccessResponse(data=OutboxMessageResponse.model_validate(message).model_dump(mode="json"))


@router.get("/stats", response_model=SuccessResponse)
async def outbox_stats(messaging: Messaging = Depends(get_messaging)):
    """Message counts per status. A growing PENDING count means publishing is falling behind."""
    counts = await messaging.outbox_store.count_by_status()
    return SuccessResponse(data=StatusCountsResponse(counts=counts).model_dump())
