from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from ..models.message import (
    ConversationCreateRequest,
    ConversationResponse,
    MarkReadResponse,
    Message,
    MessageCreateRequest,
    MessageListResponse,
)
from ..repositories.exceptions import NotFoundRepositoryError
from ..services.exceptions import DomainValidationError, NotMatchedError
from ..services.message_service import MessagingService, get_messaging_service
from .deps import get_viewer_id

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.post("", response_model=ConversationResponse, response_model_by_alias=True)
async def open_conversation(
    payload: ConversationCreateRequest,
    viewer_id: str = Depends(get_viewer_id),
    service: MessagingService = Depends(get_messaging_service),
) -> ConversationResponse:
    try:
        conversation_id = await service.get_or_create_conversation(viewer_id, payload.other_user_id.strip())
    except DomainValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except NotMatchedError:
        raise HTTPException(status_code=404, detail="no match with this user") from None
    return ConversationResponse(conversationId=conversation_id)


@router.get("/{conversation_id}/messages", response_model=MessageListResponse, response_model_by_alias=True)
async def list_messages(
    conversation_id: str,
    before: Optional[int] = None,
    limit: int = 50,
    viewer_id: str = Depends(get_viewer_id),
    service: MessagingService = Depends(get_messaging_service),
) -> MessageListResponse:
    try:
        messages = await service.list_messages(conversation_id, viewer_id, before=before, limit=limit)
    except NotFoundRepositoryError:
        raise HTTPException(status_code=404, detail="conversation not found") from None
    except DomainValidationError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    next_cursor = messages[0].created_at if len(messages) >= max(1, limit) else None
    return MessageListResponse(messages=messages, next=next_cursor)


@router.post(
    "/{conversation_id}/messages",
    response_model=Message,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: str,
    payload: MessageCreateRequest,
    viewer_id: str = Depends(get_viewer_id),
    service: MessagingService = Depends(get_messaging_service),
) -> Message:
    try:
        return await service.send_message(conversation_id, viewer_id, payload.content)
    except NotFoundRepositoryError:
        raise HTTPException(status_code=404, detail="conversation not found") from None
    except DomainValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/{conversation_id}/read", response_model=MarkReadResponse)
async def mark_read(
    conversation_id: str,
    viewer_id: str = Depends(get_viewer_id),
    service: MessagingService = Depends(get_messaging_service),
) -> MarkReadResponse:
    try:
        updated = await service.mark_read(conversation_id, viewer_id)
    except NotFoundRepositoryError:
        raise HTTPException(status_code=404, detail="conversation not found") from None
    except DomainValidationError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    return MarkReadResponse(updated=updated)


__all__ = ["router"]
