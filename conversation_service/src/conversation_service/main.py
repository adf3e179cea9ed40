import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .clients.user_directory import DatabaseUserDirectory
from .config import settings
from .db import create_tables, dispose_engine, get_session_factory, session_scope
from .errors import ChatServiceError, chat_service_error_handler
from .logging_config import logger, setup_logging, setup_middleware
from .rate_limiting import setup_rate_limiting
from .routers import chat_router, health_router, ws_router
from .security import AuthError, decode_user_token, user_id_from_claims
from .services.broker import StompBroker
from .services.notifications import DatabaseNotificationSink


async def authenticate_socket_user(token: str) -> Optional[str]:
    """Resolve a handshake token to a known, non-suspended user id."""
    try:
        user_id = user_id_from_claims(decode_user_token(token))
    except AuthError as e:
        logger.info(f"WebSocket token rejected: {e}")
        return None

    async with session_scope() as session:
        user = await DatabaseUserDirectory(session).get_user(user_id)
    if user is None or user.is_suspended():
        return None
    return user.id


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.logger.info(f"'{settings.PROJECT_NAME}' startup sequence initiated.")
    app.startup_time = time.time()

    try:
        await create_tables()
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    broker = StompBroker(
        authenticate_socket_user,
        server_name=settings.BROKER_SERVER_NAME,
        send_timeout=settings.BROKER_SEND_TIMEOUT,
    )
    app.state.broker = broker
    app.state.publisher = broker
    app.state.notifications = DatabaseNotificationSink(get_session_factory(), broker)
    app.logger.info("Application startup complete.")

    yield

    app.logger.info(f"'{settings.PROJECT_NAME}' shutdown sequence initiated.")
    await broker.shutdown()
    await dispose_engine()
    app.logger.info(f"'{settings.PROJECT_NAME}' shutdown sequence complete.")


# Configure logging before app initialization
setup_logging()

app = FastAPI(
    title=settings.PROJECT_NAME,
    description=(
        "Two-party conversations with pause/resume, active-slot quotas, "
        "and realtime delivery over STOMP-style WebSocket frames."
    ),
    version="0.1.0",
    root_path=settings.ROOT_PATH,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Health", "description": "Service health endpoints"},
        {"name": "Chat", "description": "Conversations and messages"},
        {"name": "WebSocket", "description": "Realtime broker endpoint"},
    ],
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    swagger_ui_parameters={"persistAuthorization": True},
)

# Initialize application logger
app.logger = logging.getLogger("conversation_service")

# Setup middleware
setup_middleware(app)
setup_rate_limiting(app)


# Exception handlers
app.add_exception_handler(ChatServiceError, chat_service_error_handler)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    app.logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors())})


# Routers
app.include_router(health_router)
app.include_router(chat_router)
app.include_router(ws_router)
