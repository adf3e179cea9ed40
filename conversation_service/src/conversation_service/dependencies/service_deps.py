from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..clients.user_directory import DatabaseUserDirectory
from ..db import get_db
from ..services.chat_service import ConversationService
from ..services.notifications import NotificationSink, NullNotificationSink
from ..services.publisher import NullPublisher, Publisher


def get_publisher(request: Request) -> Publisher:
    """The application's publisher, wired once in the lifespan."""
    return getattr(request.app.state, "publisher", None) or NullPublisher()


def get_notification_sink(request: Request) -> NotificationSink:
    return getattr(request.app.state, "notifications", None) or NullNotificationSink()


def get_conversation_service(
    db: AsyncSession = Depends(get_db),
    publisher: Publisher = Depends(get_publisher),
    notifications: NotificationSink = Depends(get_notification_sink),
) -> ConversationService:
    return ConversationService(
        db=db,
        users=DatabaseUserDirectory(db),
        publisher=publisher,
        notifications=notifications,
    )
