"""
Authentication service.

This module orchestrates the OAuth flow against the session store:
1. Start login → per-flow nonce stored on the session → consent URL
2. Handle callback → verify nonce → exchange code → bind user to session
3. Keep the session's access token fresh before Gmail calls
"""
import re
import secrets
from functools import lru_cache
from typing import Tuple

from fastapi import Depends

from minutemind.config import get_settings
from minutemind.integrations.google_auth import CredentialBroker
from minutemind.models.session import Session
from minutemind.services.session_service import SessionStore, get_session_store
from minutemind.utils.errors import InvalidStateError, NotAuthenticatedError, TokenRefreshError
from minutemind.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TARGET = "dashboard"
_SAFE_TARGET = re.compile(r"^[A-Za-z0-9_\-/]{1,100}$")


def sanitize_target(target: str) -> str:
    """
    Reduce a post-login target to a relative path on the frontend.

    Anything that could leave the frontend origin falls back to the dashboard.
    """
    target = (target or "").strip().strip("/")
    if not target or not _SAFE_TARGET.match(target) or "//" in target:
        return DEFAULT_TARGET
    return target


def split_state(state: str) -> Tuple[str, str]:
    """Split an echoed state value into (nonce, target)."""
    nonce, _, target = (state or "").partition(":")
    return nonce, sanitize_target(target)


class AuthService:
    """
    Authentication service handling the OAuth flow for a session.

    Usage:
        auth_service = AuthService(store, broker)
        url = auth_service.start_login(session, "dashboard")
        target = await auth_service.complete_login(session, code, state)
        access_token = await auth_service.ensure_access_token(session)
    """

    def __init__(self, store: SessionStore, broker: CredentialBroker):
        self.store = store
        self.broker = broker

    def start_login(self, session: Session, target: str = DEFAULT_TARGET) -> str:
        """
        Begin a login flow and return the Google consent URL.

        The state sent to Google is "<nonce>:<target>". The nonce is kept on
        the session and must come back unchanged on the callback.
        """
        nonce = secrets.token_urlsafe(24)
        session.oauth_nonce = nonce
        state = f"{nonce}:{sanitize_target(target)}"
        logger.info("Starting OAuth login")
        return self.broker.build_consent_url(state)

    async def complete_login(self, session: Session, code: str, state: str) -> str:
        """
        Finish a login flow after Google redirects back.

        Flow:
        1. Verify and consume the nonce from state
        2. Exchange the code for tokens and the user's profile
        3. Give the session a new ID and bind user and tokens to it

        The caller must send the session cookie again, since the ID changed.

        Returns:
            Frontend path to redirect to

        Raises:
            InvalidStateError: If the nonce is missing or does not match
            AuthExchangeError: If the exchange fails
        """
        nonce, target = split_state(state)
        expected = session.oauth_nonce
        session.oauth_nonce = None
        # compare_digest only accepts ASCII str, state may be anything
        if not expected or not nonce or not secrets.compare_digest(nonce.encode(), expected.encode()):
            logger.warning("OAuth callback state mismatch")
            raise InvalidStateError()

        profile, token_set = await self.broker.exchange_code(code)
        self.store.rotate(session)
        self.store.set_user(session, profile, token_set)
        logger.info(f"Logged in user: {profile.email}")
        return target

    async def ensure_access_token(self, session: Session) -> str:
        """
        Get a usable access token for the session's user.

        Refreshes are serialized per session so concurrent requests do not
        each hit Google. A failed refresh logs the user out.

        Raises:
            NotAuthenticatedError: If the session has no user
            TokenRefreshError: If the token cannot be refreshed
        """
        async with session.refresh_lock:
            user = session.user
            if user is None:
                raise NotAuthenticatedError()

            current = user.token_set
            try:
                token_set = await self.broker.ensure_fresh(current)
            except TokenRefreshError:
                logger.warning(f"Token refresh failed, signing out: {user.email}")
                self.store.clear(session)
                raise

            if token_set is not current:
                self.store.update_tokens(session, token_set)
                logger.info(f"Refreshed token for: {user.email}")

            return token_set.access_token


@lru_cache()
def get_credential_broker() -> CredentialBroker:
    """FastAPI dependency returning the shared credential broker."""
    return CredentialBroker(get_settings())


def get_auth_service(
    store: SessionStore = Depends(get_session_store),
    broker: CredentialBroker = Depends(get_credential_broker),
) -> AuthService:
    return AuthService(store, broker)
