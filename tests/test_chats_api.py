import json
from unittest.mock import Mock

import pytest
import redis


@pytest.fixture
def people(register):
    return register("Ada"), register("Bob"), register("Cy")


@pytest.fixture
def group(client, people):
    ada, bob, cy = people
    response = client.post(
        "/api/chat/group", json={"name": "Team", "users": [bob["_id"], cy["_id"]]}, headers=ada["headers"]
    )
    assert response.status_code == 200, response.text
    return response.json()


class TestOneOnOne:
    def test_access_chat_creates_then_reuses(self, client, people):
        ada, bob, _ = people

        first = client.post("/api/chat", json={"userId": bob["_id"]}, headers=ada["headers"])
        second = client.post("/api/chat", json={"userId": ada["_id"]}, headers=bob["headers"])

        assert first.status_code == 200
        assert first.json()["_id"] == second.json()["_id"]
        assert first.json()["chatName"] == "sender"

    def test_missing_user_id(self, client, people):
        assert client.post("/api/chat", json={}, headers=people[0]["headers"]).status_code == 400

    def test_unknown_user(self, client, people):
        response = client.post("/api/chat", json={"userId": "ghost"}, headers=people[0]["headers"])

        assert response.status_code == 404

    def test_fetch_chats(self, client, people, group):
        ada, bob, _ = people
        client.post("/api/chat", json={"userId": bob["_id"]}, headers=ada["headers"])

        chats = client.get("/api/chat", headers=ada["headers"]).json()

        assert len(chats) == 2
        assert chats[-1]["_id"] == group["_id"]


class TestGroups:
    def test_create_group(self, people, group):
        ada, _, _ = people

        assert group["isGroupChat"] is True
        assert group["groupAdmin"]["_id"] == ada["_id"]
        assert len(group["users"]) == 3

    def test_users_may_be_json_string(self, client, people):
        ada, bob, cy = people

        response = client.post(
            "/api/chat/group",
            json={"name": "Team", "users": json.dumps([bob["_id"], cy["_id"]])},
            headers=ada["headers"],
        )

        assert response.status_code == 200

    @pytest.mark.parametrize("body", [{"name": "Team"}, {"users": ["a", "b"]}])
    def test_missing_fields(self, client, people, body):
        assert client.post("/api/chat/group", json=body, headers=people[0]["headers"]).status_code == 400

    def test_too_few_users(self, client, people):
        ada, bob, _ = people

        response = client.post("/api/chat/group", json={"name": "Duo", "users": [bob["_id"]]}, headers=ada["headers"])

        assert response.status_code == 400

    def test_rename_add_remove(self, client, people, group):
        ada, _, cy = people
        headers = ada["headers"]

        renamed = client.put("/api/chat/rename", json={"chatId": group["_id"], "chatName": "Crew"}, headers=headers)
        removed = client.put("/api/chat/groupremove", json={"chatId": group["_id"], "userId": cy["_id"]}, headers=headers)
        added = client.put("/api/chat/groupadd", json={"chatId": group["_id"], "userId": cy["_id"]}, headers=headers)

        assert renamed.json()["chatName"] == "Crew"
        assert cy["_id"] not in {u["_id"] for u in removed.json()["users"]}
        assert cy["_id"] in {u["_id"] for u in added.json()["users"]}

    @pytest.mark.parametrize(
        "path,body",
        [
            ("/api/chat/rename", {"chatId": "missing", "chatName": "x"}),
            ("/api/chat/groupadd", {"chatId": "missing", "userId": "u"}),
            ("/api/chat/groupremove", {"chatId": "missing", "userId": "u"}),
        ],
    )
    def test_unknown_chat(self, client, people, path, body):
        assert client.put(path, json=body, headers=people[0]["headers"]).status_code == 404

    def test_only_admin_can_delete(self, client, people, group):
        ada, bob, _ = people

        assert client.delete(f"/api/chat/group/{group['_id']}", headers=bob["headers"]).status_code == 403
        assert client.delete(f"/api/chat/group/{group['_id']}", headers=ada["headers"]).status_code == 200
        assert client.delete(f"/api/chat/group/{group['_id']}", headers=ada["headers"]).status_code == 404


class TestReadState:
    def test_mark_read(self, client, people, group):
        ada, bob, _ = people
        client.post("/api/message", json={"chatId": group["_id"], "content": "hi"}, headers=ada["headers"])

        response = client.put(f"/api/chat/{group['_id']}/read", headers=bob["headers"])
        messages = client.get(f"/api/message/{group['_id']}", headers=bob["headers"]).json()

        assert response.status_code == 200
        assert messages[0]["readBy"] == [bob["_id"]]

    def test_mark_read_unknown_chat(self, client, people):
        assert client.put("/api/chat/missing/read", headers=people[0]["headers"]).status_code == 404


class TestUnknownReferences:
    def test_access_chat_with_index_key_id(self, client, people):
        ada, _, _ = people

        response = client.post("/api/chat", json={"userId": "email:ada@example.com"}, headers=ada["headers"])

        assert response.status_code == 404
        assert client.get("/api/chat", headers=ada["headers"]).json() == []

    def test_add_unknown_user_to_group(self, client, people, group):
        ada, _, _ = people

        response = client.put("/api/chat/groupadd", json={"chatId": group["_id"], "userId": "ghost"}, headers=ada["headers"])
        chats = client.get("/api/chat", headers=ada["headers"]).json()

        assert response.status_code == 404
        assert response.json()["detail"] == "User not found"
        assert len(chats[0]["users"]) == 3


class TestStorageFailures:
    def test_fetch_chats_storage_error(self, client, backend, people, monkeypatch):
        monkeypatch.setattr(backend, "list_chats", Mock(side_effect=redis.ConnectionError("connection refused")))

        response = client.get("/api/chat", headers=people[0]["headers"])

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to fetch chats"

    def test_send_message_storage_error(self, client, backend, people, group, monkeypatch):
        monkeypatch.setattr(backend, "create_message", Mock(side_effect=redis.TimeoutError("timed out")))

        response = client.post(
            "/api/message", json={"chatId": group["_id"], "content": "hi"}, headers=people[0]["headers"]
        )

        assert response.status_code == 500
