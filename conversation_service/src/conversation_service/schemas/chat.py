from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Response/request base: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class UserPublic(CamelModel):
    id: str
    display_name: Optional[str] = None


class MessageCreate(CamelModel):
    # Any type accepted here; the service rejects non-strings with a 400
    text: Any = Field(default=None, description="Message text; trimmed, must not be empty")
    attachments: Optional[List[Any]] = Field(default=None, description="Optional attachment descriptors")


class MessageRead(CamelModel):
    id: int
    sender: UserPublic
    text: str
    attachments: List[Any] = Field(default_factory=list)
    timestamp: datetime


class MessagePreview(CamelModel):
    sender_id: str
    text: str
    timestamp: datetime


class ConversationRead(CamelModel):
    id: UUID
    participants: List[str]
    status: str
    paused_by: Optional[str] = None
    paused_at: Optional[datetime] = None
    last_active: datetime
    closed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    messages: List[MessageRead] = Field(default_factory=list)


class ConversationSummary(CamelModel):
    id: UUID
    participants: List[str]
    status: str
    paused_by: Optional[str] = None
    paused_at: Optional[datetime] = None
    last_active: datetime
    other_participant: Optional[UserPublic] = None
    last_message: Optional[MessagePreview] = None
    unread_count: int = 0


class ConversationMessages(CamelModel):
    messages: List[MessageRead]
    status: str
    paused_by: Optional[str] = None
    paused_at: Optional[datetime] = None
    participants: List[str]
    name: str


class PauseResult(CamelModel):
    message: str = "Chat paused"
    chat_id: UUID
    status: str
    paused_by: Optional[str] = None
    paused_at: Optional[datetime] = None


class ResumeResult(CamelModel):
    message: str = "Chat resumed"
    chat_id: UUID
    status: str


class ConversationStatusEvent(CamelModel):
    chat_id: UUID
    status: str
    paused_by: Optional[str] = None
    paused_at: Optional[datetime] = None
    last_active: Optional[datetime] = None


class ConversationMessageEvent(CamelModel):
    chat_id: UUID
    message: MessageRead
