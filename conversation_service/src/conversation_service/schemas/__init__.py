from .chat import (
    ConversationMessageEvent,
    ConversationMessages,
    ConversationRead,
    ConversationStatusEvent,
    ConversationSummary,
    MessageCreate,
    MessagePreview,
    MessageRead,
    PauseResult,
    ResumeResult,
    UserPublic,
)
from .frames import FrameCommand, StompFrame

__all__ = [
    "ConversationMessageEvent",
    "ConversationMessages",
    "ConversationRead",
    "ConversationStatusEvent",
    "ConversationSummary",
    "FrameCommand",
    "MessageCreate",
    "MessagePreview",
    "MessageRead",
    "PauseResult",
    "ResumeResult",
    "StompFrame",
    "UserPublic",
]
