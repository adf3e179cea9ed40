from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Request

from ..clients.user_directory import UserInfo
from ..dependencies import get_conversation_service, get_current_user
from ..rate_limiting import MESSAGE_LIMIT, limiter
from ..schemas.chat import (
    ConversationMessages,
    ConversationRead,
    ConversationSummary,
    MessageCreate,
    PauseResult,
    ResumeResult,
)
from ..services.chat_service import ConversationService

chat_router = APIRouter(prefix="/chat", tags=["Chat"])


@chat_router.get("", response_model=List[ConversationSummary])
async def list_chats(
    user: UserInfo = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    return await service.list_conversations(user.id)


@chat_router.post("/message/{chat_id}", response_model=ConversationRead)
@limiter.limit(MESSAGE_LIMIT)
async def send_message(
    request: Request,
    chat_id: UUID,
    payload: Optional[MessageCreate] = Body(default=None),
    user: UserInfo = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    payload = payload or MessageCreate()
    return await service.append_message(
        user.id, chat_id, payload.text, attachments=payload.attachments
    )


@chat_router.post("/{user_id}", response_model=ConversationRead)
async def create_chat(
    user_id: str,
    user: UserInfo = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    """Start a chat with another user, or get the one already open between you."""
    return await service.create_conversation(user.id, user_id)


@chat_router.patch("/{chat_id}/pause", response_model=PauseResult)
async def pause_chat(
    chat_id: UUID,
    user: UserInfo = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    conversation = await service.pause_conversation(user.id, chat_id)
    return PauseResult(
        chat_id=conversation.id,
        status=conversation.status,
        paused_by=conversation.paused_by,
        paused_at=conversation.paused_at,
    )


@chat_router.patch("/{chat_id}/resume", response_model=ResumeResult)
async def resume_chat(
    chat_id: UUID,
    user: UserInfo = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    conversation = await service.resume_conversation(user.id, chat_id)
    return ResumeResult(chat_id=conversation.id, status=conversation.status)


@chat_router.get("/{chat_id}", response_model=ConversationMessages)
async def get_chat(
    chat_id: UUID,
    user: UserInfo = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    return await service.get_conversation_for_user(user.id, chat_id)
