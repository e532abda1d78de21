"""
Session management service.

This module handles:
1. Creating and storing sessions in memory
2. Signing and validating session cookies (JWT-based)
3. Binding the logged-in user and their Google tokens to a session
4. Expiring sessions after an absolute lifetime or an idle period

The cookie carries only the session ID. User profile and tokens stay
server-side and are never sent to the browser.

Security: Sessions are stored in-memory, one store per process.
"""
import secrets
import threading
from datetime import datetime, timedelta
from typing import Optional

import jwt
from fastapi import Depends, Request, Response

from minutemind.config import Settings, get_settings
from minutemind.models.session import Session, SessionUser, TokenSet, UserProfile, utcnow
from minutemind.utils.errors import NotAuthenticatedError
from minutemind.utils.logger import get_logger

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"


class SessionStore:
    """
    Thread-safe in-memory session store.

    Usage:
        store = SessionStore(settings)
        session = store.get(request)
        store.set_user(session, profile, token_set)
        store.set_cookie(response, session)
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    @property
    def lifetime(self) -> timedelta:
        return timedelta(hours=self.settings.session_expire_hours)

    @property
    def idle_timeout(self) -> timedelta:
        return timedelta(minutes=self.settings.session_idle_minutes)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    # ------------------------------------------------------------------
    # Cookie encoding
    # ------------------------------------------------------------------

    def encode_cookie(self, session: Session) -> str:
        """Sign a cookie value holding only the session ID."""
        payload = {
            "sid": session.session_id,
            "iat": session.created_at,
            "exp": session.created_at + self.lifetime,
        }
        return jwt.encode(payload, self.settings.session_secret, algorithm=JWT_ALGORITHM)

    def decode_cookie(self, value: str) -> Optional[str]:
        """Return the session ID from a cookie, or None if it is not valid."""
        try:
            payload = jwt.decode(
                value,
                self.settings.session_secret,
                algorithms=[JWT_ALGORITHM],
            )
        except jwt.ExpiredSignatureError:
            logger.info("Session cookie expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid session cookie: {e}")
            return None
        return payload.get("sid")

    def set_cookie(self, response: Response, session: Session) -> None:
        """
        Attach the session cookie to a response.

        Production deployments serve the frontend from another site, so the
        cookie must be Secure and SameSite=None to be sent cross-site.
        Local development over plain HTTP uses a lax, non-secure cookie.
        """
        production = self.settings.is_production
        response.set_cookie(
            key=self.settings.session_cookie_name,
            value=self.encode_cookie(session),
            httponly=True,
            secure=production,
            samesite="none" if production else "lax",
            max_age=int(self.lifetime.total_seconds()),
            path="/",
        )

    def delete_cookie(self, response: Response) -> None:
        production = self.settings.is_production
        response.delete_cookie(
            key=self.settings.session_cookie_name,
            path="/",
            httponly=True,
            secure=production,
            samesite="none" if production else "lax",
        )

    # ------------------------------------------------------------------
    # Lookup and lifecycle
    # ------------------------------------------------------------------

    def get(self, request: Request) -> Session:
        """
        Return the session bound to the request's cookie.

        Creates a fresh anonymous session when the cookie is missing,
        invalid, or points to an expired or unknown session. The caller
        is responsible for sending the cookie of a new session.
        """
        cookie = request.cookies.get(self.settings.session_cookie_name)
        if cookie:
            session_id = self.decode_cookie(cookie)
            if session_id:
                session = self.lookup(session_id)
                if session is not None:
                    return session
        return self.create()

    def lookup(self, session_id: str) -> Optional[Session]:
        """Find a live session by ID and mark it as recently used."""
        now = utcnow()
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if self._is_expired(session, now):
                del self._sessions[session_id]
                logger.info("Session expired and was evicted")
                return None
            session.last_seen = now
            return session

    def create(self) -> Session:
        """Create and register a new anonymous session."""
        now = utcnow()
        session = Session(
            session_id=secrets.token_urlsafe(32),
            created_at=now,
            last_seen=now,
        )
        session._is_new = True
        with self._lock:
            self._sweep(now)
            self._sessions[session.session_id] = session
        logger.debug("Created new session")
        return session

    def rotate(self, session: Session) -> None:
        """
        Move the session to a new ID, invalidating the old cookie.

        Called on login so an ID planted before login cannot be reused.
        """
        with self._lock:
            self._sessions.pop(session.session_id, None)
            session.session_id = secrets.token_urlsafe(32)
            self._sessions[session.session_id] = session

    def set_user(self, session: Session, profile: UserProfile, token_set: TokenSet) -> None:
        """Bind the logged-in user to the session, replacing any previous one."""
        with self._lock:
            session.user = SessionUser(
                email=profile.email,
                name=profile.name,
                picture=profile.picture,
                token_set=token_set,
            )
        logger.info(f"Session user set: {profile.email}")

    def update_tokens(self, session: Session, token_set: TokenSet) -> None:
        """Store a refreshed token set for the session's user."""
        with self._lock:
            if session.user is not None:
                session.user.token_set = token_set

    def clear(self, session: Session) -> None:
        """Remove the user from the session (logout or revoked access)."""
        with self._lock:
            email = session.user.email if session.user else None
            session.user = None
            session.oauth_nonce = None
        if email:
            logger.info(f"Cleared session user: {email}")

    def delete(self, session: Session) -> None:
        """Drop the session entirely."""
        self.clear(session)
        with self._lock:
            self._sessions.pop(session.session_id, None)

    def _is_expired(self, session: Session, now: datetime) -> bool:
        if now - session.created_at > self.lifetime:
            return True
        return now - session.last_seen > self.idle_timeout

    def _sweep(self, now: datetime) -> None:
        # Caller holds self._lock
        expired = [
            session_id
            for session_id, session in self._sessions.items()
            if self._is_expired(session, now)
        ]
        for session_id in expired:
            del self._sessions[session_id]
        if expired:
            logger.info(f"Evicted {len(expired)} expired sessions")


# Process-wide session store
_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """FastAPI dependency returning the process-wide session store."""
    global _store
    if _store is None:
        _store = SessionStore(get_settings())
    return _store


async def get_current_session(
    request: Request,
    response: Response,
    store: SessionStore = Depends(get_session_store),
) -> Session:
    """
    FastAPI dependency to get the current session, creating one if needed.

    Sends the session cookie when the session is new.
    """
    session = store.get(request)
    if session.is_new:
        store.set_cookie(response, session)
        session._is_new = False
    return session


async def require_user(session: Session = Depends(get_current_session)) -> Session:
    """
    FastAPI dependency for routes that need a logged-in user.

    Raises:
        NotAuthenticatedError: If the session has no user
    """
    if not session.is_authenticated:
        raise NotAuthenticatedError()
    return session
