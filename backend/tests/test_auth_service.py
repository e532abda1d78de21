"""
Unit tests for the OAuth flow orchestration.
"""
import asyncio
from urllib.parse import parse_qs, urlparse

import pytest

from minutemind.integrations.google_auth import GOOGLE_TOKEN_URL
from minutemind.services.auth_service import AuthService, sanitize_target, split_state
from minutemind.utils.errors import (
    AuthExchangeError,
    InvalidStateError,
    NotAuthenticatedError,
    TokenRefreshError,
)


@pytest.fixture
def auth_service(store, broker):
    return AuthService(store, broker)


def state_from(url: str) -> str:
    return parse_qs(urlparse(url).query)["state"][0]


@pytest.mark.parametrize("target,expected", [
    ("dashboard", "dashboard"),
    ("meetings/42", "meetings/42"),
    ("", "dashboard"),
    ("//evil.example.com", "dashboard"),
    ("https://evil.example.com", "dashboard"),
    ("a//b", "dashboard"),
    ("../admin?x=1", "dashboard"),
])
def test_sanitize_target(target, expected):
    assert sanitize_target(target) == expected


def test_split_state():
    assert split_state("abc:meetings") == ("abc", "meetings")
    assert split_state("abc") == ("abc", "dashboard")
    assert split_state("") == ("", "dashboard")


class TestStartLogin:

    def test_state_carries_nonce_and_target(self, auth_service, store):
        session = store.create()

        url = auth_service.start_login(session, "meetings")

        nonce, target = split_state(state_from(url))
        assert nonce == session.oauth_nonce
        assert target == "meetings"

    def test_new_nonce_per_flow(self, auth_service, store):
        session = store.create()
        first = state_from(auth_service.start_login(session))
        second = state_from(auth_service.start_login(session))

        assert first != second


@pytest.mark.anyio
class TestCompleteLogin:

    async def test_success(self, auth_service, store):
        session = store.create()
        state = state_from(auth_service.start_login(session, "dashboard"))

        target = await auth_service.complete_login(session, "auth-code", state)

        assert target == "dashboard"
        assert session.user.email == "test@example.com"
        assert session.user.token_set.access_token == "new-access-token"
        assert session.oauth_nonce is None

    async def test_wrong_nonce(self, auth_service, store, google):
        session = store.create()
        auth_service.start_login(session)

        with pytest.raises(InvalidStateError):
            await auth_service.complete_login(session, "auth-code", "forged:dashboard")

        assert session.user is None
        assert google.requests == []

    async def test_no_pending_login(self, auth_service, store, google):
        session = store.create()

        with pytest.raises(InvalidStateError):
            await auth_service.complete_login(session, "auth-code", "dashboard")

        assert google.requests == []

    async def test_non_ascii_state(self, auth_service, store, google):
        session = store.create()
        auth_service.start_login(session)

        with pytest.raises(InvalidStateError):
            await auth_service.complete_login(session, "auth-code", "été:dashboard")

        assert session.user is None
        assert google.requests == []

    async def test_login_rotates_session_id(self, auth_service, store):
        session = store.create()
        old_id = session.session_id
        state = state_from(auth_service.start_login(session))

        await auth_service.complete_login(session, "auth-code", state)

        assert session.session_id != old_id
        assert store.lookup(old_id) is None
        assert store.lookup(session.session_id) is session

    async def test_nonce_is_single_use(self, auth_service, store):
        session = store.create()
        state = state_from(auth_service.start_login(session))
        await auth_service.complete_login(session, "auth-code", state)

        with pytest.raises(InvalidStateError):
            await auth_service.complete_login(session, "auth-code", state)

    async def test_failed_exchange_leaves_session_anonymous(self, auth_service, store, google):
        google.userinfo_status = 500
        session = store.create()
        state = state_from(auth_service.start_login(session))

        with pytest.raises(AuthExchangeError):
            await auth_service.complete_login(session, "auth-code", state)

        assert session.user is None


@pytest.mark.anyio
class TestEnsureAccessToken:

    async def test_fresh_token(self, auth_service, store, profile, fresh_tokens, google):
        session = store.create()
        store.set_user(session, profile, fresh_tokens)

        assert await auth_service.ensure_access_token(session) == "fresh-access-token"
        assert google.requests == []

    async def test_stale_token_is_refreshed_and_stored(self, auth_service, store, profile, stale_tokens):
        session = store.create()
        store.set_user(session, profile, stale_tokens)

        token = await auth_service.ensure_access_token(session)

        assert token == "refreshed-access-token"
        assert session.user.token_set.access_token == "refreshed-access-token"
        assert session.user.token_set.get_refresh_token() == "mock-refresh-token"

    async def test_refresh_failure_logs_out(self, auth_service, store, profile, stale_tokens, google):
        google.refresh_status = 400
        google.refresh_body = {"error": "invalid_grant"}
        session = store.create()
        store.set_user(session, profile, stale_tokens)

        with pytest.raises(TokenRefreshError):
            await auth_service.ensure_access_token(session)

        assert session.user is None

    async def test_malformed_refresh_response_logs_out(self, auth_service, store, profile, stale_tokens, google):
        google.refresh_body = "<html>proxy</html>"
        session = store.create()
        store.set_user(session, profile, stale_tokens)

        with pytest.raises(TokenRefreshError):
            await auth_service.ensure_access_token(session)

        assert session.user is None

    async def test_anonymous_session(self, auth_service, store):
        with pytest.raises(NotAuthenticatedError):
            await auth_service.ensure_access_token(store.create())

    async def test_concurrent_refresh_is_single_flight(self, auth_service, store, profile, stale_tokens, google):
        session = store.create()
        store.set_user(session, profile, stale_tokens)

        tokens = await asyncio.gather(*[auth_service.ensure_access_token(session) for _ in range(5)])

        assert set(tokens) == {"refreshed-access-token"}
        assert len(google.calls_to(GOOGLE_TOKEN_URL)) == 1
