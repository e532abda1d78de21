"""
User profile and logout endpoints.
"""
from fastapi import APIRouter, Depends, Response

from minutemind.models.session import Session
from minutemind.models.user import MeResponse
from minutemind.services.session_service import (
    SessionStore,
    get_current_session,
    get_session_store,
)
from minutemind.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.get("/me", response_model=MeResponse, response_model_exclude_none=True)
async def get_me(response: Response, session: Session = Depends(get_current_session)):
    """
    Get the logged-in user's profile.

    Returns 401 with loggedIn=false for anonymous sessions, including
    browsers that drop the session cookie.
    """
    user = session.user
    if user is None:
        response.status_code = 401
        return MeResponse(loggedIn=False)

    return MeResponse(
        loggedIn=True,
        email=user.email,
        name=user.name,
        picture=user.picture,
    )


@router.post("/logout")
async def logout(
    response: Response,
    session: Session = Depends(get_current_session),
    store: SessionStore = Depends(get_session_store),
):
    """
    Logout user by dropping the session and its cookie.
    """
    store.delete(session)
    store.delete_cookie(response)
    logger.info("User logged out")
    return {"success": True}
