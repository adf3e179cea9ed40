import os
import tempfile

# Test settings must be in place before the service modules are imported.
os.environ.setdefault("CONVERSATION_SERVICE_ENVIRONMENT", "testing")
os.environ.setdefault("CONVERSATION_SERVICE_RATE_LIMIT_ENABLED", "false")
os.environ.setdefault(
    "CONVERSATION_SERVICE_DATABASE_URL",
    "sqlite+aiosqlite:///"
    + os.path.join(tempfile.gettempdir(), f"conversation_service_test_{os.getpid()}.db"),
)

from datetime import timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from conversation_service.clients.user_directory import DatabaseUserDirectory
from conversation_service.db import get_db
from conversation_service.models import Base, ChatUser
from conversation_service.models.base import utcnow
from conversation_service.services.chat_service import ConversationService

from fakes import RecordingPublisher, RecordingSink


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'chat.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    async with factory() as session:
        session.add_all(
            [
                ChatUser(id="alice", display_name="Alice", max_active_conversations=3),
                ChatUser(id="bob", display_name="Bob", max_active_conversations=3),
                ChatUser(id="carol", display_name="Carol", max_active_conversations=3),
                ChatUser(id="dave", display_name=None, max_active_conversations=3),
                ChatUser(
                    id="sam",
                    display_name="Suspended Sam",
                    suspended_until=utcnow() + timedelta(days=1),
                ),
                ChatUser(
                    id="root",
                    display_name="Admin",
                    is_admin=True,
                    suspended_until=utcnow() + timedelta(days=1),
                ),
            ]
        )
        await session.commit()

    yield factory
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def service(db_session, publisher, sink) -> ConversationService:
    return ConversationService(
        db=db_session,
        users=DatabaseUserDirectory(db_session),
        publisher=publisher,
        notifications=sink,
    )


@pytest_asyncio.fixture
async def client(db_session, publisher, sink) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client over the ASGI app, bound to the per-test database and
    recording side-effect collaborators.
    """
    from conversation_service.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.state.publisher = publisher
    app.state.notifications = sink

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
    del app.state.publisher
    del app.state.notifications
