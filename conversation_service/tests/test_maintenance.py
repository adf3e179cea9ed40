import pytest

from conversation_service.clients.user_directory import DatabaseUserDirectory
from conversation_service.crud import conversations as conversation_crud
from conversation_service.models import ConversationStatus
from conversation_service.services.maintenance import reconcile_active_counts, reconcile_user

from fakes import set_active_count


@pytest.mark.asyncio
async def test_reconcile_sets_counters_from_active_conversations(db_session):
    paused = await conversation_crud.create_conversation(db_session, "alice", "bob")
    await conversation_crud.create_conversation(db_session, "alice", "carol")
    await conversation_crud.set_status(db_session, paused.id, ConversationStatus.PAUSED, actor_id="alice")
    await set_active_count(db_session, "dave", 2)

    users = DatabaseUserDirectory(db_session)
    changed = await reconcile_active_counts(db_session, users)

    assert changed == {"alice": 1, "carol": 1, "dave": 0}
    assert (await users.get_user("alice")).active_conversations == 1
    assert (await users.get_user("bob")).active_conversations == 0
    assert (await users.get_user("dave")).active_conversations == 0


@pytest.mark.asyncio
async def test_reconcile_dry_run_writes_nothing(db_session):
    await conversation_crud.create_conversation(db_session, "alice", "bob")
    users = DatabaseUserDirectory(db_session)

    changed = await reconcile_active_counts(db_session, users, dry_run=True)

    assert changed == {"alice": 1, "bob": 1}
    assert (await users.get_user("alice")).active_conversations == 0


@pytest.mark.asyncio
async def test_reconcile_single_user(db_session):
    await conversation_crud.create_conversation(db_session, "alice", "bob")
    users = DatabaseUserDirectory(db_session)

    assert await reconcile_user(db_session, users, "bob") == 1
    assert (await users.get_user("bob")).active_conversations == 1
    assert (await users.get_user("alice")).active_conversations == 0
    assert await reconcile_user(db_session, users, "ghost") is None
