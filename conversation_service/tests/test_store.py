import pytest

from conversation_service.crud import conversations as conversation_crud
from conversation_service.errors import ConflictError, NotFoundError, ValidationError
from conversation_service.models import OPEN_STATUSES, ConversationStatus


def test_normalize_pair_is_order_independent():
    assert conversation_crud.normalize_pair("bob", "alice") == ("alice", "bob")
    assert conversation_crud.normalize_pair("alice", "bob") == ("alice", "bob")


@pytest.mark.asyncio
async def test_create_stores_participants_sorted(db_session):
    conversation = await conversation_crud.create_conversation(db_session, "bob", "alice")

    assert conversation.participants == ["alice", "bob"]
    assert conversation.status == ConversationStatus.ACTIVE.value
    assert conversation.messages == []
    assert conversation.last_active.tzinfo is not None


@pytest.mark.asyncio
async def test_create_rejects_self_pair(db_session):
    with pytest.raises(ValidationError):
        await conversation_crud.create_conversation(db_session, "alice", "alice")


@pytest.mark.asyncio
async def test_second_open_conversation_for_pair_conflicts(db_session):
    await conversation_crud.create_conversation(db_session, "alice", "bob")

    with pytest.raises(ConflictError):
        await conversation_crud.create_conversation(db_session, "bob", "alice")

    found = await conversation_crud.find_by_pair(db_session, "bob", "alice", statuses=OPEN_STATUSES)
    assert found is not None


@pytest.mark.asyncio
async def test_closed_conversation_does_not_block_a_new_one(db_session):
    first = await conversation_crud.create_conversation(db_session, "alice", "bob")
    await conversation_crud.set_status(db_session, first.id, ConversationStatus.CLOSED)

    second = await conversation_crud.create_conversation(db_session, "alice", "bob")

    assert second.id != first.id
    found = await conversation_crud.find_by_pair(db_session, "alice", "bob", statuses=OPEN_STATUSES)
    assert found.id == second.id


@pytest.mark.asyncio
async def test_append_keeps_submission_order(db_session):
    conversation = await conversation_crud.create_conversation(db_session, "alice", "bob")
    before = conversation.last_active

    for i in range(5):
        await conversation_crud.append_message(db_session, conversation.id, "alice", f"msg {i}")

    reloaded = await conversation_crud.get_conversation(db_session, conversation.id, with_messages=True)
    assert [m.text for m in reloaded.messages] == [f"msg {i}" for i in range(5)]
    assert reloaded.last_active >= before


@pytest.mark.asyncio
async def test_append_to_paused_conversation_is_rejected(db_session):
    conversation = await conversation_crud.create_conversation(db_session, "alice", "bob")
    await conversation_crud.set_status(db_session, conversation.id, ConversationStatus.PAUSED, actor_id="alice")

    with pytest.raises(ConflictError) as exc_info:
        await conversation_crud.append_message(db_session, conversation.id, "bob", "hello?")

    assert exc_info.value.current_status == "paused"
    reloaded = await conversation_crud.get_conversation(db_session, conversation.id, with_messages=True)
    assert reloaded.messages == []


@pytest.mark.asyncio
async def test_append_to_missing_conversation(db_session):
    import uuid

    with pytest.raises(NotFoundError):
        await conversation_crud.append_message(db_session, uuid.uuid4(), "alice", "hi")


@pytest.mark.asyncio
async def test_set_status_stamps_and_clears_pause_fields(db_session):
    conversation = await conversation_crud.create_conversation(db_session, "alice", "bob")

    paused = await conversation_crud.set_status(
        db_session, conversation.id, ConversationStatus.PAUSED, actor_id="alice"
    )
    assert paused.status == "paused"
    assert paused.paused_by == "alice"
    assert paused.paused_at is not None

    resumed = await conversation_crud.set_status(db_session, conversation.id, ConversationStatus.ACTIVE)
    assert resumed.status == "active"
    assert resumed.paused_by is None
    assert resumed.paused_at is None


@pytest.mark.asyncio
async def test_set_status_respects_expected_status(db_session):
    conversation = await conversation_crud.create_conversation(db_session, "alice", "bob")

    with pytest.raises(ConflictError) as exc_info:
        await conversation_crud.set_status(
            db_session,
            conversation.id,
            ConversationStatus.ACTIVE,
            expected=[ConversationStatus.PAUSED],
        )
    assert exc_info.value.current_status == "active"


@pytest.mark.asyncio
async def test_list_for_user_orders_by_recent_activity(db_session):
    older = await conversation_crud.create_conversation(db_session, "alice", "bob")
    newer = await conversation_crud.create_conversation(db_session, "carol", "alice")
    await conversation_crud.create_conversation(db_session, "bob", "carol")

    await conversation_crud.append_message(db_session, older.id, "bob", "bump")

    listed = await conversation_crud.list_for_user(db_session, "alice")
    assert [c.id for c in listed] == [older.id, newer.id]


@pytest.mark.asyncio
async def test_count_active_by_participant_ignores_paused(db_session):
    first = await conversation_crud.create_conversation(db_session, "alice", "bob")
    await conversation_crud.create_conversation(db_session, "alice", "carol")
    await conversation_crud.set_status(db_session, first.id, ConversationStatus.PAUSED, actor_id="bob")

    counts = await conversation_crud.count_active_by_participant(db_session)

    assert counts == {"alice": 1, "carol": 1}
