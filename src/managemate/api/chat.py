"""Chat routes — store a module chat message and fan it out live."""

from fastapi import APIRouter, Depends, HTTPException, Query

from managemate.api.deps import get_chat_service
from managemate.schemas.chat import ChatMessageCreate, ChatMessageRead
from managemate.services.chat_service import ChatService

router = APIRouter()


@router.post("/chat/messages", response_model=ChatMessageRead, status_code=201)
async def post_chat_message(
    body: ChatMessageCreate,
    svc: ChatService = Depends(get_chat_service),
):
    """Persist a message, then publish it to room chat:{moduleId}."""
    try:
        return await svc.post_message(
            module_id=body.module_id,
            user_id=body.user_id,
            user_name=body.user_name,
            content=body.content,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/chat/messages/{module_id}", response_model=list[ChatMessageRead])
async def list_chat_messages(
    module_id: str,
    limit: int = Query(50, ge=1, le=200),
    svc: ChatService = Depends(get_chat_service),
):
    """Recent messages for a module, oldest first."""
    return await svc.history(module_id, limit=limit)
