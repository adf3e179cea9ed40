from enum import Enum

from sqlalchemy import JSON, Boolean, Column, String, Text

from .base import Base, UTCDateTime, UUIDMixin, utcnow


class NotificationType(str, Enum):
    MATCH = "match"
    MESSAGE = "message"
    SYSTEM = "system"
    MODERATION = "moderation"


class Notification(UUIDMixin, Base):
    __tablename__ = "notifications"

    user_id = Column(String(64), nullable=False, index=True)
    type = Column(String(16), nullable=False, default=NotificationType.SYSTEM.value)
    title = Column(String(255), nullable=False, default="")
    body = Column(Text, nullable=False, default="")
    data = Column(JSON, nullable=True, default=dict)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
