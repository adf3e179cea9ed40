import uuid

import pytest

from conversation_service.security import create_user_token

from fakes import auth_headers, set_active_count


async def start_chat(client, requester="alice", other="bob"):
    response = await client.post(f"/chat/{other}", headers=auth_headers(requester))
    assert response.status_code == 200, response.text
    return response.json()


@pytest.mark.asyncio
async def test_health_reports_database_and_broker(client):
    response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["database"] == "ok"
    assert body["broker"] == {"connections": 0, "destinations": 0}


@pytest.mark.asyncio
async def test_routes_require_a_token(client):
    assert (await client.get("/chat")).status_code == 401
    bad = {"Authorization": "Bearer not-a-jwt"}
    assert (await client.get("/chat", headers=bad)).status_code == 401


@pytest.mark.asyncio
async def test_unknown_user_token_is_unauthorized(client):
    response = await client.get("/chat", headers=auth_headers("ghost"))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_suspended_user_is_forbidden(client):
    response = await client.get("/chat", headers=auth_headers("sam"))

    assert response.status_code == 403
    assert "suspended" in response.json()["detail"].lower()


@pytest.mark.asyncio
async def test_suspended_admin_is_allowed(client):
    response = await client.get("/chat", headers=auth_headers("root"))
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_expired_token_is_rejected(client):
    token = create_user_token("alice", expires_in_seconds=-60)
    response = await client.get("/chat", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_chat_is_idempotent_with_camel_case_body(client):
    first = await start_chat(client, "alice", "bob")
    second = await start_chat(client, "bob", "alice")

    assert first["id"] == second["id"]
    assert first["participants"] == ["alice", "bob"]
    assert first["status"] == "active"
    assert "lastActive" in first and "pausedBy" in first


@pytest.mark.asyncio
async def test_create_chat_errors(client):
    self_chat = await client.post("/chat/alice", headers=auth_headers("alice"))
    assert self_chat.status_code == 400
    assert self_chat.json()["message"]

    missing = await client.post("/chat/ghost", headers=auth_headers("alice"))
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_create_chat_quota_body(client, db_session):
    await set_active_count(db_session, "alice", 3, limit=3)

    response = await client.post("/chat/bob", headers=auth_headers("alice"))

    assert response.status_code == 403
    body = response.json()
    assert body["blockedFor"] == "alice"
    assert body["currentCount"] == 3
    assert body["maxAllowed"] == 3
    assert body["message"]


@pytest.mark.asyncio
async def test_send_message_and_read_back(client, publisher):
    chat = await start_chat(client)

    response = await client.post(
        f"/chat/message/{chat['id']}",
        json={"text": "hello", "attachments": [{"url": "https://example.org/a.png"}]},
        headers=auth_headers("alice"),
    )

    assert response.status_code == 200, response.text
    message = response.json()["messages"][-1]
    assert message["text"] == "hello"
    assert message["sender"] == {"id": "alice", "displayName": "Alice"}
    assert message["attachments"] == [{"url": "https://example.org/a.png"}]
    assert publisher.to("/user/bob/queue/messages")

    view = await client.get(f"/chat/{chat['id']}", headers=auth_headers("bob"))
    assert view.status_code == 200
    body = view.json()
    assert body["name"] == "Chat with Alice"
    assert [m["text"] for m in body["messages"]] == ["hello"]
    assert set(body) == {"messages", "status", "pausedBy", "pausedAt", "participants", "name"}


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{"text": "   "}, {}, None, {"text": 123}, {"text": ["hi"]}])
async def test_send_message_requires_text(client, payload):
    chat = await start_chat(client)

    kwargs = {"json": payload} if payload is not None else {}
    response = await client.post(f"/chat/message/{chat['id']}", headers=auth_headers("alice"), **kwargs)

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_send_message_to_unknown_chat(client):
    response = await client.post(
        f"/chat/message/{uuid.uuid4()}", json={"text": "hi"}, headers=auth_headers("alice")
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_pause_then_message_conflicts(client):
    chat = await start_chat(client)

    pause = await client.patch(f"/chat/{chat['id']}/pause", headers=auth_headers("alice"))
    assert pause.status_code == 200
    body = pause.json()
    assert body["chatId"] == chat["id"]
    assert body["status"] == "paused"
    assert body["pausedBy"] == "alice"
    assert body["pausedAt"]
    assert body["message"]

    blocked = await client.post(
        f"/chat/message/{chat['id']}", json={"text": "hello?"}, headers=auth_headers("bob")
    )
    assert blocked.status_code == 409
    assert blocked.json()["status"] == "paused"
    assert blocked.json()["message"]


@pytest.mark.asyncio
async def test_resume_routes(client, db_session):
    chat = await start_chat(client)
    await client.patch(f"/chat/{chat['id']}/pause", headers=auth_headers("alice"))

    await set_active_count(db_session, "bob", 3, limit=3)
    over_quota = await client.patch(f"/chat/{chat['id']}/resume", headers=auth_headers("bob"))
    assert over_quota.status_code == 403
    assert over_quota.json()["blockedFor"] == "bob"

    resumed = await client.patch(f"/chat/{chat['id']}/resume", headers=auth_headers("alice"))
    assert resumed.status_code == 200
    assert resumed.json()["chatId"] == chat["id"]
    assert resumed.json()["status"] == "active"

    again = await client.patch(f"/chat/{chat['id']}/resume", headers=auth_headers("alice"))
    assert again.status_code == 409
    assert again.json()["status"] == "active"


@pytest.mark.asyncio
async def test_non_participant_gets_403_everywhere(client):
    chat = await start_chat(client)
    carol = auth_headers("carol")

    responses = [
        await client.get(f"/chat/{chat['id']}", headers=carol),
        await client.post(f"/chat/message/{chat['id']}", json={"text": "hi"}, headers=carol),
        await client.patch(f"/chat/{chat['id']}/pause", headers=carol),
        await client.patch(f"/chat/{chat['id']}/resume", headers=carol),
    ]

    for response in responses:
        assert response.status_code == 403
        assert "messages" not in response.json()


@pytest.mark.asyncio
async def test_list_chats(client):
    chat = await start_chat(client)
    await client.post(f"/chat/message/{chat['id']}", json={"text": "hey"}, headers=auth_headers("bob"))

    response = await client.get("/chat", headers=auth_headers("alice"))

    assert response.status_code == 200
    [summary] = response.json()
    assert summary["id"] == chat["id"]
    assert summary["otherParticipant"] == {"id": "bob", "displayName": "Bob"}
    assert summary["lastMessage"]["text"] == "hey"
    assert summary["unreadCount"] == 1


@pytest.mark.asyncio
async def test_malformed_chat_id_is_a_validation_error(client):
    response = await client.get("/chat/not-a-uuid", headers=auth_headers("alice"))
    assert response.status_code == 422
    assert "detail" in response.json()
