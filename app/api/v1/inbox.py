from fastapi import APIRouter, Depends, HTTPException, Query
from uuid import UUID

from app.api.deps import get_messaging
from app.core.container import Messaging
from app.models.inbox import InboxStatus
from app.schemas.messages import InboxMessageResponse, StatusCountsResponse
from app.schemas.response import ListData, SuccessResponse

router = APIRouter()


@router.get("/messages", response_model=SuccessResponse)
async def list_inbox_messages(
    status: InboxStatus = InboxStatus.FAILED,
    limit: int = Query(50, ge=1, le=500),
    messaging: Messaging = Depends(get_messaging),
):
    """Lists inbox messages in a given status, newest first. Defaults to FAILED."""
    messages = await messaging.inbox_store.list_by_status(status, limit=limit)
    items = [InboxMessageResponse.model_validate(m).model_dump(mode="json") for m in messages]
    return SuccessResponse(data=ListData(count=len(items), items=items).model_dump())


@router.get("/messages/{message_id}", response_model=SuccessResponse)
async def get_inbox_message(message_id: UUID, messaging: Messaging = Depends(get_messaging)):
    message = await messaging.inbox_store.get_by_id(message_id)
    if not message:
        raise HTTPException(status_code=404, detail="Inbox message not found")
    return SuccessResponse(data=InboxMessageResponse.model_validate(message).model_dump(mode="json"))


@router.get("/stats", response_model=SuccessResponse)
async def inbox_stats(messaging: Messaging = Depends(get_messaging)):
    counts = await messaging.inbox_store.count_by_status()
    return SuccessResponse(data=StatusCountsResponse(counts=counts).model_dump())
