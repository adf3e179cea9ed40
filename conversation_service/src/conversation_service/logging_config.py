import logging
import sys
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import settings

LOGGER_NAME = "conversation_service"

logger = logging.getLogger(LOGGER_NAME)


def setup_logging(log_level: str | None = None) -> logging.Logger:
    """
    Configure the service logger with a console handler.

    Args:
        log_level: Log level name; defaults to the configured LOGGING_LEVEL

    Returns:
        The configured service logger
    """
    level = getattr(logging, (log_level or settings.LOGGING_LEVEL).upper(), logging.INFO)
    logger.setLevel(level)

    # Prevent duplicate handlers on reload
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


def setup_middleware(app: FastAPI) -> None:
    """Install CORS and request timing middleware."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s -> %s (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response
