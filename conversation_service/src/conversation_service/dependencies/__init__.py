from .service_deps import get_conversation_service, get_publisher
from .user_deps import get_current_user

__all__ = [
    "get_conversation_service",
    "get_current_user",
    "get_publisher",
]
