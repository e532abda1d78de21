"""
Authentication routes for Google OAuth.

OAuth Flow:
1. Frontend sends the browser to GET /auth/google?state=<page>
2. Backend stores a nonce on the session and redirects to Google consent
3. User grants permissions on Google
4. Google redirects to GET /auth/google/callback with code and state
5. Backend checks the nonce, exchanges the code, binds the user to the session
6. Backend redirects to the frontend page named in state (default /dashboard)

Security:
- Session token is HTTP-only cookie (prevents XSS)
- SameSite=None + Secure for cross-origin cookies in production
- Tokens stored server-side, never sent to the browser
- state carries a per-flow nonce checked on callback (CSRF)
"""
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse, RedirectResponse

from minutemind.config import get_settings
from minutemind.models.session import Session
from minutemind.services.auth_service import AuthService, DEFAULT_TARGET, get_auth_service
from minutemind.services.session_service import (
    SessionStore,
    get_current_session,
    get_session_store,
)
from minutemind.utils.errors import AppError, InvalidStateError
from minutemind.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)
settings = get_settings()


@router.get("/google")
async def google_login(
    state: str = DEFAULT_TARGET,
    session: Session = Depends(get_current_session),
    store: SessionStore = Depends(get_session_store),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Redirect the browser to Google's consent page.

    Query params:
        state: Frontend page to land on after login (default: dashboard)
    """
    url = auth_service.start_login(session, state)
    response = RedirectResponse(url=url, status_code=302)
    store.set_cookie(response, session)
    return response


@router.get("/google/callback")
async def google_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    session: Session = Depends(get_current_session),
    store: SessionStore = Depends(get_session_store),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Handle Google OAuth callback.

    On success:
    - Bind user and tokens to the session
    - Set session cookie
    - Redirect to the frontend page from state

    On error:
    - 400 for a missing code or a state that does not match this session
    - 500 "Authentication Failed" when Google denies or the exchange fails

    Query params:
        code: Authorization code from Google (on success)
        state: "<nonce>:<page>" as sent in the consent redirect
        error: Error message from Google (on denial)
    """
    if error:
        logger.warning(f"OAuth error: {error}")
        session.oauth_nonce = None
        return PlainTextResponse("Authentication Failed", status_code=500)

    if not code:
        logger.warning("OAuth callback missing code")
        return PlainTextResponse("Missing authorization code", status_code=400)

    try:
        target = await auth_service.complete_login(session, code, state or "")
    except InvalidStateError as e:
        return PlainTextResponse(e.message, status_code=e.status_code)
    except AppError as e:
        logger.error(f"OAuth callback failed: {e.message}")
        return PlainTextResponse("Authentication Failed", status_code=500)

    response = RedirectResponse(
        url=f"{settings.frontend_url.rstrip('/')}/{target}",
        status_code=302,
    )
    store.set_cookie(response, session)
    logger.info("OAuth callback successful, session authenticated")
    return response
