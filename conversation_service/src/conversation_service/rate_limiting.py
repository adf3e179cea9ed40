from fastapi import FastAPI, Request
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from .config import settings
from .logging_config import logger

MESSAGE_LIMIT = settings.MESSAGE_RATE_LIMIT

limiter = Limiter(
    key_func=get_remote_address,
    enabled=settings.RATE_LIMIT_ENABLED,
    strategy="fixed-window",
)


async def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """Custom handler for rate limit exceeded exceptions"""
    logger.warning(f"Rate limit exceeded for {request.client.host if request.client else '?'} on {request.url.path}")
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded"},
    )


def setup_rate_limiting(app: FastAPI) -> None:
    """Configure rate limiting for the FastAPI application"""
    app.state.limiter = limiter

    if settings.RATE_LIMIT_ENABLED:
        logger.info(f"Rate limiting enabled: messages={MESSAGE_LIMIT}")
    else:
        logger.info("Rate limiting is disabled")

    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
