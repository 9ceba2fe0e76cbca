"""Pytest configuration and fixtures for testing."""

from __future__ import annotations

import json
import sys
import time
import uuid
from pathlib import Path
from typing import Any, Callable, Generator, Optional

import httpx
import jwt
import pytest

# Make the onemin_proxy package importable without installation
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from onemin_proxy.credentials.repository import CredentialRepository
from onemin_proxy.credentials.store import InMemoryKeyValueStore

AUTH_SECRET = "test-shared-secret"
UPSTREAM_BASE_URL = "http://upstream.local"


def make_jwt(exp_offset: Optional[int] = 3600, **claims: Any) -> str:
    """Build an HS256 JWT whose ``exp`` is ``exp_offset`` seconds from now.

    Pass ``exp_offset=None`` for a token without an ``exp`` claim.
    """
    payload: dict[str, Any] = {"sub": "user-1", "jti": uuid.uuid4().hex, **claims}
    if exp_offset is not None:
        payload["exp"] = int(time.time()) + exp_offset
    return jwt.encode(payload, "not-the-provider-key", algorithm="HS256")


def auth_headers(secret: str = AUTH_SECRET) -> dict[str, str]:
    return {"Authorization": f"Bearer {secret}"}


# =============================================================================
# Fake 1min.ai upstream
# =============================================================================


class FakeOneMin:
    """In-process stand-in for the 1min.ai API, served through MockTransport.

    Replies can be overridden per test by assigning the ``*_reply`` attributes
    (a ``(status, body)`` pair) or ``stream_body``.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.user_reply: tuple[int, Any] = (
            200,
            {"user": {"uuid": "user-uuid", "teams": [{"teamId": "team-1", "userName": "Ada"}]}},
        )
        self.conversation_reply: tuple[int, Any] = (200, {"conversation": {"uuid": "conv-1"}})
        self.completion_reply: tuple[int, Any] = (
            200,
            {
                "aiRecord": {"metadata": {"inputToken": 3, "outputToken": 2}},
                "aiRecordDetail": {"resultObject": ["Hello!"]},
            },
        )
        self.stream_status = 200
        self.stream_body: bytes = (
            b'event: content\ndata: {"content":"Hel"}\n\n'
            b'event: content\ndata: {"content":"lo"}\n\n'
            b"event: done\ndata: {}\n\n"
        )
        self.transport = httpx.MockTransport(self.handle)

    def calls_to(self, path_fragment: str) -> list[httpx.Request]:
        return [r for r in self.requests if path_fragment in r.url.path]

    def _json(self, reply: tuple[int, Any]) -> httpx.Response:
        status, body = reply
        if isinstance(body, (bytes, str)):
            return httpx.Response(status, content=body)
        return httpx.Response(status, json=body)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/users":
            return self._json(self.user_reply)
        if path.endswith("/features/conversations"):
            return self._json(self.conversation_reply)
        if path.endswith("/features/sse"):
            if request.url.params.get("isStreaming") == "true":
                return httpx.Response(
                    self.stream_status,
                    headers={"content-type": "text/event-stream"},
                    content=self.stream_body,
                )
            return self._json(self.completion_reply)
        return httpx.Response(404, json={"error": "not found"})

    def last_json(self, path_fragment: str) -> Any:
        return json.loads(self.calls_to(path_fragment)[-1].content)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def repository(store: InMemoryKeyValueStore) -> CredentialRepository:
    return CredentialRepository(store)


@pytest.fixture
def fake_upstream() -> FakeOneMin:
    return FakeOneMin()


@pytest.fixture
def models_file(tmp_path: Path) -> Path:
    path = tmp_path / "models.json"
    path.write_text(
        json.dumps(
            {
                "models": [
                    {
                        "modelId": "gpt-5",
                        "provider": "openai",
                        "status": "ACTIVE",
                        "createdAt": "2025-08-07T00:00:00.000Z",
                    },
                    {"modelId": "claude-3-haiku-20240307", "provider": "anthropic", "status": "ACTIVE"},
                    {"modelId": "old-model", "provider": "openai", "status": "INACTIVE"},
                ]
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def app_config(models_file: Path) -> dict[str, Any]:
    return {
        "proxy_settings": {
            "auth_secret": AUTH_SECRET,
            "upstream": {"base_url": UPSTREAM_BASE_URL},
            "models_path": str(models_file),
        },
        "database": {"backend": "memory"},
    }


@pytest.fixture
def client(
    app_config: dict[str, Any],
    store: InMemoryKeyValueStore,
    fake_upstream: FakeOneMin,
) -> Generator[Any, None, None]:
    """TestClient over an app wired to the in-memory store and FakeOneMin."""
    from fastapi.testclient import TestClient

    from onemin_proxy.main import create_app

    app = create_app(app_config, store=store, transport=fake_upstream.transport)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def register_token(client: Any) -> Callable[..., str]:
    """Register a fresh credential through the admin API and return it."""

    def _register(exp_offset: Optional[int] = 3600, note: str = "") -> str:
        token = make_jwt(exp_offset)
        resp = client.post("/admin/tokens", json={"token": token, "note": note}, headers=auth_headers())
        assert resp.status_code == 200, resp.text
        return token

    return _register
