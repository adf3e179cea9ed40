import pytest
from sqlalchemy import select

from conversation_service.models import Notification, NotificationType
from conversation_service.services.dispatch import best_effort
from conversation_service.services.notifications import DatabaseNotificationSink

from fakes import FailingPublisher, RecordingPublisher


@pytest.mark.asyncio
async def test_database_sink_persists_then_publishes(session_factory):
    publisher = RecordingPublisher()
    sink = DatabaseNotificationSink(session_factory, publisher)

    notification = await sink.emit(
        "bob",
        type=NotificationType.MESSAGE,
        title="New message",
        body="hello",
        data={"chatId": "c-1"},
    )

    async with session_factory() as session:
        stored = (await session.execute(select(Notification))).scalars().all()
    assert [(n.user_id, n.type, n.read) for n in stored] == [("bob", "message", False)]

    [payload] = publisher.to("/user/bob/queue/notifications")
    assert payload["id"] == str(notification.id)
    assert payload["data"] == {"chatId": "c-1"}
    assert payload["createdAt"]


@pytest.mark.asyncio
async def test_publish_failure_surfaces_through_best_effort(session_factory):
    sink = DatabaseNotificationSink(session_factory, FailingPublisher())

    result = await best_effort("notify bob", lambda: sink.emit("bob", title="x"))

    assert not result.ok
    assert isinstance(result.error, RuntimeError)
    async with session_factory() as session:
        stored = (await session.execute(select(Notification))).scalars().all()
    assert len(stored) == 1


@pytest.mark.asyncio
async def test_best_effort_returns_value_on_success():
    async def action():
        return 3

    result = await best_effort("publish", action)

    assert result.ok
    assert result.value == 3
    assert result.error is None
