"""
Notification sink.

Notifications are persisted first (the durable record a client can page
through later) and then pushed to the user's personal notification queue.
"""
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..logging_config import logger
from ..models import Notification, NotificationType
from .publisher import Publisher, user_notifications_queue


class NotificationSink(ABC):
    @abstractmethod
    async def emit(
        self,
        user_id: str,
        type: NotificationType = NotificationType.SYSTEM,
        title: str = "",
        body: str = "",
        data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        ...


class NullNotificationSink(NotificationSink):
    async def emit(self, user_id, type=NotificationType.SYSTEM, title="", body="", data=None):
        return None


class DatabaseNotificationSink(NotificationSink):
    """Persists to the notifications table, then publishes via the broker."""

    def __init__(self, session_factory: Callable[[], AsyncSession], publisher: Publisher):
        self.session_factory = session_factory
        self.publisher = publisher

    async def emit(
        self,
        user_id: str,
        type: NotificationType = NotificationType.SYSTEM,
        title: str = "",
        body: str = "",
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        async with self.session_factory() as session:
            notification = Notification(
                user_id=str(user_id),
                type=NotificationType(type).value,
                title=title,
                body=body,
                data=data or {},
                read=False,
            )
            session.add(notification)
            await session.commit()

        payload = {
            "id": str(notification.id),
            "user": notification.user_id,
            "type": notification.type,
            "title": notification.title,
            "body": notification.body,
            "data": notification.data,
            "read": notification.read,
            "createdAt": notification.created_at.isoformat(),
        }
        delivered = await self.publisher.publish(user_notifications_queue(user_id), payload)
        logger.debug(f"Notification {notification.id} for {user_id} pushed to {delivered} connection(s)")
        return notification
