"""Shared fixtures: a fakeredis-backed store and an app wired to it."""

from unittest.mock import AsyncMock, Mock

import fakeredis
import pytest
from fastapi.testclient import TestClient

from app import create_app
from backend import RedisBackend, get_backend
from registry import ConnectionRegistry


@pytest.fixture
def backend() -> RedisBackend:
    return RedisBackend(fakeredis.FakeRedis(decode_responses=True))


@pytest.fixture
def app(backend):
    app = create_app()
    app.dependency_overrides[get_backend] = lambda: backend
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def register(client):
    """Register a user through the API and return its body plus auth headers."""

    def _register(name: str, email: str = None, password: str = "secret123"):
        response = client.post(
            "/api/user",
            json={"name": name, "email": email or f"{name.lower()}@example.com", "password": password},
        )
        assert response.status_code == 201, response.text
        user = response.json()
        user["headers"] = {"Authorization": f"Bearer {user['token']}"}
        return user

    return _register


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


def make_socket() -> Mock:
    websocket = Mock()
    websocket.send_json = AsyncMock()
    return websocket


def sent(websocket: Mock) -> list:
    """Frames sent to a fake socket, in order."""
    return [call.args[0] for call in websocket.send_json.call_args_list]
