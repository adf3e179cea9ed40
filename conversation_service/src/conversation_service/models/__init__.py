"""
Public data models for the Conversation Service.
"""
from .base import Base
from .conversation import (
    OPEN_STATUSES,
    Conversation,
    ConversationStatus,
)
from .message import ConversationMessage
from .notification import Notification, NotificationType
from .user import ChatUser

__all__ = [
    "Base",
    "ChatUser",
    "Conversation",
    "ConversationMessage",
    "ConversationStatus",
    "Notification",
    "NotificationType",
    "OPEN_STATUSES",
]
