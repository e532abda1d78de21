"""
User-related Pydantic models.
"""
from pydantic import BaseModel
from typing import Optional


class MeResponse(BaseModel):
    """Login status and profile of the current session."""
    loggedIn: bool
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None
