from .chat_router import chat_router
from .health_router import health_router
from .ws_router import ws_router

__all__ = [
    "chat_router",
    "health_router",
    "ws_router",
]
