"""
Session-related Pydantic models.
"""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, Field, PrivateAttr, SecretStr

# Refresh this long before the provider's stated expiry
TOKEN_REFRESH_BUFFER = timedelta(minutes=5)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenSet(BaseModel):
    """Google OAuth2 tokens for one user."""
    access_token: str = Field(repr=False)
    refresh_token: Optional[SecretStr] = None
    expiry: Optional[datetime] = None
    scope: Optional[str] = None
    token_type: str = "Bearer"

    def is_fresh(self, now: Optional[datetime] = None) -> bool:
        """
        True if the access token can be used as-is.

        Without a known expiry the token is never assumed fresh.
        """
        if not self.access_token or self.expiry is None:
            return False
        now = now or utcnow()
        return now + TOKEN_REFRESH_BUFFER < self.expiry

    def get_refresh_token(self) -> Optional[str]:
        if self.refresh_token is None:
            return None
        return self.refresh_token.get_secret_value() or None


class UserProfile(BaseModel):
    """Profile fields from Google's userinfo endpoint."""
    email: str
    name: str
    picture: Optional[str] = None


class SessionUser(UserProfile):
    """Logged-in user bound to a session."""
    token_set: TokenSet


class Session(BaseModel):
    """Server-side session keyed by the id carried in the session cookie."""
    session_id: str
    user: Optional[SessionUser] = None
    # Nonce of the login flow in progress, checked on callback
    oauth_nonce: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    last_seen: datetime = Field(default_factory=utcnow)

    _refresh_lock: asyncio.Lock = PrivateAttr(default_factory=asyncio.Lock)
    _is_new: bool = PrivateAttr(default=False)

    @property
    def refresh_lock(self) -> asyncio.Lock:
        return self._refresh_lock

    @property
    def is_new(self) -> bool:
        return self._is_new

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None
