"""
Google OAuth client integration.

This module handles:
1. Generating OAuth consent URLs
2. Exchanging authorization codes for tokens and the user's profile
3. Refreshing expired access tokens

The broker is stateless: tokens are passed in and new token sets are
returned. Nothing is stored on the broker between calls, so one instance
is safely shared by concurrent requests for different users.
"""
from datetime import timedelta
from typing import Optional, Sequence, Tuple
from urllib.parse import urlencode

import httpx

from minutemind.config import Settings
from minutemind.models.session import TokenSet, UserProfile, utcnow
from minutemind.utils.errors import AuthExchangeError, TokenRefreshError
from minutemind.utils.logger import get_logger

logger = get_logger(__name__)

# Google OAuth endpoints
GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

# Identity plus send-only Gmail access
DEFAULT_SCOPES = (
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/gmail.send",
)

DEFAULT_EXPIRES_IN = 3600
REQUEST_TIMEOUT = 15.0


def _error_description(response: httpx.Response) -> str:
    """Best-effort error text from a Google OAuth error response."""
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        return data.get("error_description") or data.get("error") or f"HTTP {response.status_code}"
    return f"HTTP {response.status_code}"


def _json_object(response: httpx.Response) -> dict:
    """
    Decode a JSON object body.

    Raises:
        ValueError: If the body is not JSON or not an object
    """
    data = response.json()
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


def _token_set_from_response(response: httpx.Response, previous: Optional[TokenSet] = None) -> TokenSet:
    """
    Build a TokenSet from a token endpoint response.

    Google usually omits refresh_token on refresh, so the previous one
    is carried over.

    Raises:
        ValueError: If the body is malformed or has no access token
    """
    tokens = _json_object(response)
    if not tokens.get("access_token"):
        raise ValueError("no access token in response")

    expires_in = int(tokens.get("expires_in", DEFAULT_EXPIRES_IN))
    refresh_token = tokens.get("refresh_token")
    if not refresh_token and previous is not None:
        refresh_token = previous.get_refresh_token()

    return TokenSet(
        access_token=tokens["access_token"],
        refresh_token=refresh_token,
        expiry=utcnow() + timedelta(seconds=expires_in),
        scope=tokens.get("scope") or (previous.scope if previous else None),
        token_type=tokens.get("token_type") or "Bearer",
    )


class CredentialBroker:
    """
    Google OAuth2 client for delegated Gmail credentials.

    Usage:
        broker = CredentialBroker(settings)
        url = broker.build_consent_url(state)
        profile, tokens = await broker.exchange_code(code)
        tokens = await broker.ensure_fresh(tokens)
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            settings: Application settings with Google client credentials
            transport: Optional httpx transport (used by tests)
        """
        self.client_id = settings.google_client_id
        self.client_secret = settings.google_client_secret
        self.redirect_uri = settings.google_redirect_uri
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=REQUEST_TIMEOUT)

    def build_consent_url(self, state: str, scopes: Sequence[str] = DEFAULT_SCOPES) -> str:
        """
        Generate the Google consent URL.

        access_type=offline is what makes Google issue a refresh token, and
        prompt=consent makes it issue one again for returning users.

        Args:
            state: Opaque value echoed back on the callback
            scopes: OAuth scopes to request

        Returns:
            OAuth authorization URL string
        """
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(scopes),
            "access_type": "offline",
            "prompt": "consent",
            "include_granted_scopes": "true",
            "state": state,
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> Tuple[UserProfile, TokenSet]:
        """
        Exchange an authorization code for tokens and the user's profile.

        Codes are single-use, so a failure is never retried here; the user
        has to go through the consent redirect again.

        Args:
            code: Authorization code from Google callback

        Returns:
            Tuple of (profile, token_set)

        Raises:
            AuthExchangeError: If the exchange or the profile fetch fails
        """
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
        }

        async with self._client() as client:
            try:
                response = await client.post(GOOGLE_TOKEN_URL, data=data)
            except httpx.RequestError as e:
                logger.error(f"Token exchange request failed: {e}")
                raise AuthExchangeError("Failed to connect to Google for authentication")

            if response.status_code != 200:
                description = _error_description(response)
                logger.error(f"Token exchange failed: {description}")
                raise AuthExchangeError(f"Failed to exchange code: {description}")

            try:
                token_set = _token_set_from_response(response)
            except (ValueError, TypeError, OverflowError) as e:
                logger.error(f"Malformed token exchange response: {e}")
                raise AuthExchangeError("Invalid token response from Google")
            if token_set.get_refresh_token() is None:
                logger.warning("Token exchange returned no refresh token")

            profile = await self._fetch_profile(client, token_set.access_token)

        logger.info(f"Exchanged code for tokens: {profile.email}")
        return profile, token_set

    async def _fetch_profile(self, client: httpx.AsyncClient, access_token: str) -> UserProfile:
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            response = await client.get(GOOGLE_USERINFO_URL, headers=headers)
        except httpx.RequestError as e:
            logger.error(f"User info request failed: {e}")
            raise AuthExchangeError("Failed to connect to Google for user information")

        if response.status_code != 200:
            logger.error(f"Failed to get user info: {response.status_code}")
            raise AuthExchangeError("Failed to fetch user information")

        try:
            user_data = _json_object(response)
        except ValueError as e:
            logger.error(f"Malformed user info response: {e}")
            raise AuthExchangeError("Invalid user information from Google")

        email = user_data.get("email")
        if not email or not isinstance(email, str):
            raise AuthExchangeError("Google account has no email address")

        try:
            return UserProfile(
                email=email,
                name=user_data.get("name") or email,
                picture=user_data.get("picture"),
            )
        except ValueError as e:
            logger.error(f"Malformed user info response: {e}")
            raise AuthExchangeError("Invalid user information from Google")

    async def ensure_fresh(self, token_set: TokenSet) -> TokenSet:
        """
        Return a token set whose access token is usable right now.

        A fresh token set is returned unchanged without any network call.
        Otherwise the refresh token mints a new access token.

        Args:
            token_set: Current tokens of the user

        Returns:
            The same token set, or a new one with a new access token

        Raises:
            TokenRefreshError: Missing or revoked refresh token, or any
                other rejection by Google
        """
        if token_set.is_fresh():
            return token_set

        refresh_token = token_set.get_refresh_token()
        if not refresh_token:
            logger.warning("Access token stale and no refresh token available")
            raise TokenRefreshError("No refresh token available. Please sign in again.")

        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }

        async with self._client() as client:
            try:
                response = await client.post(GOOGLE_TOKEN_URL, data=data)
            except httpx.RequestError as e:
                logger.error(f"Token refresh request failed: {e}")
                raise TokenRefreshError("Failed to connect to Google for token refresh")

        if response.status_code != 200:
            description = _error_description(response)
            if "invalid_grant" in response.text:
                logger.warning("Refresh token revoked or expired")
                raise TokenRefreshError("Gmail access was revoked. Please sign in again.")
            logger.error(f"Token refresh failed: {description}")
            raise TokenRefreshError(f"Failed to refresh access token: {description}")

        try:
            refreshed = _token_set_from_response(response, previous=token_set)
        except (ValueError, TypeError, OverflowError) as e:
            logger.error(f"Malformed token refresh response: {e}")
            raise TokenRefreshError("Invalid token refresh response from Google")

        logger.info("Successfully refreshed access token")
        return refreshed
