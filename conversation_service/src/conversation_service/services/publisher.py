from typing import Any, Dict, Optional, Protocol, runtime_checkable


@runtime_checkable
class Publisher(Protocol):
    """Something that can push a payload to a broker destination."""

    async def publish(
        self, destination: str, payload: Any, headers: Optional[Dict[str, str]] = None
    ) -> int:
        ...


class NullPublisher:
    """Publisher that drops everything. Used when no realtime layer is wired."""

    async def publish(
        self, destination: str, payload: Any, headers: Optional[Dict[str, str]] = None
    ) -> int:
        return 0


def chat_status_topic(conversation_id) -> str:
    return f"/topic/chat/{conversation_id}/status"


def chat_messages_topic(conversation_id) -> str:
    return f"/topic/chat/{conversation_id}/messages"


def user_status_queue(user_id) -> str:
    return f"/user/{user_id}/queue/conversation-status"


def user_messages_queue(user_id) -> str:
    return f"/user/{user_id}/queue/messages"


def user_notifications_queue(user_id) -> str:
    return f"/user/{user_id}/queue/notifications"
