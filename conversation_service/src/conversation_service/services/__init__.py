from .broker import StompBroker
from .chat_service import ConversationService
from .dispatch import DispatchResult, best_effort
from .notifications import DatabaseNotificationSink, NotificationSink, NullNotificationSink
from .publisher import NullPublisher, Publisher

__all__ = [
    "ConversationService",
    "DatabaseNotificationSink",
    "DispatchResult",
    "NotificationSink",
    "NullNotificationSink",
    "NullPublisher",
    "Publisher",
    "StompBroker",
    "best_effort",
]
