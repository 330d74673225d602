"""
Shared pytest fixtures for backend tests.
Uses a temp-file SQLite database and a scripted fake AI gateway.
"""
import json
import pytest
import sqlite3
import sys
import os

import httpx
from jose import jwt

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import config
import database
import gateway

TEST_JWT_SECRET = "test-jwt-secret"


class FakeGateway:
    """
    Stands in for the chat completions gateway behind httpx.MockTransport.
    Responses are queued in call order; every request body is recorded.
    """

    def __init__(self):
        self.responses = []
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        if not self.responses:
            return httpx.Response(500, text="unexpected gateway call")
        return self.responses.pop(0)

    def reply(self, content: str):
        """Decision response without tool calls."""
        self.responses.append(httpx.Response(200, json={
            "choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": "stop"}]
        }))

    def reply_with_tools(self, *calls):
        """Decision response requesting tool calls, given as (name, arguments) pairs."""
        tool_calls = []
        for i, (name, arguments) in enumerate(calls):
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments)
            tool_calls.append({
                "id": f"call_{i}",
                "type": "function",
                "function": {"name": name, "arguments": arguments},
            })
        self.responses.append(httpx.Response(200, json={
            "choices": [{
                "message": {"role": "assistant", "content": None, "tool_calls": tool_calls},
                "finish_reason": "tool_calls",
            }]
        }))

    def stream(self, *deltas: str) -> bytes:
        """Streaming answer made of content deltas. Returns the exact body served."""
        body = "".join(
            f"data: {json.dumps({'choices': [{'delta': {'content': d}}]})}\n\n" for d in deltas
        ) + "data: [DONE]\n\n"
        self.responses.append(httpx.Response(
            200, content=body.encode("utf-8"), headers={"Content-Type": "text/event-stream"}
        ))
        return body.encode("utf-8")

    def fail(self, status_code: int, body: str = "upstream error"):
        self.responses.append(httpx.Response(status_code, text=body))

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    """Known secrets for every test."""
    monkeypatch.setattr(config, "AUTH_JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setattr(config, "AUTH_JWT_AUDIENCE", "authenticated")
    monkeypatch.setattr(config, "AI_GATEWAY_API_KEY", "test-gateway-key")


@pytest.fixture
def make_token():
    """Mint an access token the way the auth provider would."""
    def _make_token(user_id: str, secret: str = TEST_JWT_SECRET, **claims) -> str:
        payload = {"sub": user_id, "aud": "authenticated", "role": "authenticated"}
        payload.update(claims)
        return jwt.encode(payload, secret, algorithm="HS256")
    return _make_token


@pytest.fixture
def auth_headers(make_token):
    """Authorization headers for user-a."""
    return {"Authorization": f"Bearer {make_token('user-a')}"}


@pytest.fixture
def test_db(monkeypatch, tmp_path):
    """
    Create an isolated test database for each test.
    Uses a temp file (not :memory:) because database.py opens new connections per operation.
    """
    db_path = str(tmp_path / "test.db")
    monkeypatch.setattr(database, "DATABASE_PATH", db_path)
    monkeypatch.setattr(database, "init_db", lambda: None)

    # Create tables directly (skip alembic for tests)
    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE tasks (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            description TEXT,
            status TEXT NOT NULL DEFAULT 'todo',
            priority TEXT NOT NULL DEFAULT 'medium',
            due_date TEXT,
            tags TEXT,
            time_estimate INTEGER,
            position INTEGER NOT NULL DEFAULT 0,
            user_id TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
    """)
    conn.commit()
    conn.close()

    yield db_path


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def app_client(test_db, fake_gateway, monkeypatch):
    """
    Create a test client for the FastAPI app.
    Skips alembic and routes gateway traffic to the fake gateway.
    """
    from fastapi.testclient import TestClient
    import main

    # Skip alembic in tests - tables already created by test_db fixture
    monkeypatch.setattr(main, "init_db", lambda: None)
    monkeypatch.setattr(gateway, "create_client", fake_gateway.client)

    with TestClient(main.app) as client:
        yield client
