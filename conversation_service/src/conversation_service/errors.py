"""
Domain errors for the conversation core.

Each error knows its HTTP status and how to render itself as a JSON body,
so routers never translate them by hand.
"""
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse

from .logging_config import logger


class ChatServiceError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def extra(self) -> Dict[str, Any]:
        return {}

    def to_body(self) -> Dict[str, Any]:
        return {"message": self.message, **self.extra()}


class ValidationError(ChatServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class NotFoundError(ChatServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ForbiddenError(ChatServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not a participant"


class ConflictError(ChatServiceError):
    """Action incompatible with the conversation's current status."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Conversation is not active"

    def __init__(self, message: Optional[str] = None, current_status: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status

    def extra(self) -> Dict[str, Any]:
        return {"status": self.current_status}


class QuotaExceededError(ChatServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Active conversations limit reached"

    def __init__(
        self,
        blocked_for: str,
        current_count: int,
        max_allowed: int,
        message: Optional[str] = None,
    ):
        super().__init__(message)
        self.blocked_for = blocked_for
        self.current_count = current_count
        self.max_allowed = max_allowed

    def extra(self) -> Dict[str, Any]:
        return {
            "blockedFor": self.blocked_for,
            "currentCount": self.current_count,
            "maxAllowed": self.max_allowed,
        }


async def chat_service_error_handler(request: Request, exc: ChatServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(
            f"{request.method} {request.url.path} rejected "
            f"({exc.status_code} {exc.__class__.__name__}): {exc.message}"
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())
