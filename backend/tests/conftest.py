"""
Pytest fixtures for MinuteMind backend tests.
"""
import json
from datetime import timedelta
from urllib.parse import parse_qs

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient

from minutemind.config import Settings
from minutemind.integrations.gmail_client import MailDispatcher
from minutemind.integrations.google_auth import (
    CredentialBroker,
    GOOGLE_TOKEN_URL,
    GOOGLE_USERINFO_URL,
)
from minutemind.integrations.llm_client import CompletionClient
from minutemind.main import app
from minutemind.models.session import TokenSet, UserProfile, utcnow
from minutemind.services.auth_service import get_credential_broker
from minutemind.services.email_service import get_mail_dispatcher
from minutemind.services.session_service import SessionStore, get_session_store
from minutemind.services.summary_service import get_completion_client


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings():
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        google_client_id="client-id",
        google_client_secret="client-secret",
        google_redirect_uri="http://localhost:5000/auth/google/callback",
        frontend_url="http://localhost:3000",
        session_secret="test-secret",
        llm_api_key="test-key",
    )


@pytest.fixture
def store(settings):
    return SessionStore(settings)


@pytest.fixture
def profile():
    return UserProfile(
        email="test@example.com",
        name="Test User",
        picture="https://example.com/avatar.jpg",
    )


@pytest.fixture
def fresh_tokens():
    """Token set valid for another hour."""
    return TokenSet(
        access_token="fresh-access-token",
        refresh_token="mock-refresh-token",
        expiry=utcnow() + timedelta(hours=1),
    )


@pytest.fixture
def stale_tokens():
    """Token set whose access token expired a minute ago."""
    return TokenSet(
        access_token="stale-access-token",
        refresh_token="mock-refresh-token",
        expiry=utcnow() - timedelta(minutes=1),
    )


def _respond(status: int, body) -> httpx.Response:
    """JSON for dicts, raw text for strings (proxy pages and the like)."""
    if isinstance(body, str):
        return httpx.Response(status, text=body)
    return httpx.Response(status, json=body)


class GoogleStub:
    """
    Fake Google OAuth and Gmail endpoints for httpx.MockTransport.

    Records every request so tests can assert on what went over the wire.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.token_status = 200
        self.token_body = {
            "access_token": "new-access-token",
            "refresh_token": "new-refresh-token",
            "expires_in": 3599,
            "scope": "openid email",
            "token_type": "Bearer",
        }
        self.refresh_status = 200
        self.refresh_body = {"access_token": "refreshed-access-token", "expires_in": 3599}
        self.userinfo_status = 200
        self.userinfo_body = {
            "id": "123",
            "email": "test@example.com",
            "name": "Test User",
            "picture": "https://example.com/avatar.jpg",
        }
        self.send_status = 200
        self.send_body = {"id": "sent-message-id"}

    def calls_to(self, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url).startswith(url)]

    def form(self, request: httpx.Request) -> dict:
        return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}

    def sent_messages(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.url.path.endswith("/messages/send")]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)

        if url.startswith(GOOGLE_TOKEN_URL):
            if self.form(request).get("grant_type") == "refresh_token":
                return _respond(self.refresh_status, self.refresh_body)
            return _respond(self.token_status, self.token_body)

        if url.startswith(GOOGLE_USERINFO_URL):
            return _respond(self.userinfo_status, self.userinfo_body)

        if request.url.path.endswith("/messages/send"):
            return _respond(self.send_status, self.send_body)

        return httpx.Response(404, json={"error": "not found"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def google():
    return GoogleStub()


@pytest.fixture
def broker(settings, google):
    return CredentialBroker(settings, transport=google.transport())


@pytest.fixture
def dispatcher(google):
    return MailDispatcher(transport=google.transport())


@pytest.fixture
def mock_openai_response():
    """Create a mock chat completion response."""
    return MagicMock(
        choices=[
            MagicMock(
                message=MagicMock(content="Alice said X. Action items: none.")
            )
        ],
        usage=MagicMock(total_tokens=50),
    )


@pytest.fixture
def mock_openai(mock_openai_response):
    """AsyncOpenAI stand-in with a mocked chat.completions.create."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=mock_openai_response)
    return client


@pytest.fixture
def llm(settings, mock_openai):
    return CompletionClient(settings, client=mock_openai)


@pytest.fixture
def client(store, broker, dispatcher, llm):
    """TestClient with all upstreams replaced by fakes."""
    app.dependency_overrides[get_session_store] = lambda: store
    app.dependency_overrides[get_credential_broker] = lambda: broker
    app.dependency_overrides[get_mail_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_completion_client] = lambda: llm
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login(client, store, profile):
    """Log the test client in with the given token set."""

    def _login(token_set: TokenSet):
        session = store.create()
        store.set_user(session, profile, token_set)
        client.cookies.set("session", store.encode_cookie(session))
        return session

    return _login
