"""
Email-related Pydantic models.
"""
from pydantic import BaseModel
from typing import Optional


class SendEmailRequest(BaseModel):
    """Request to send an email from the logged-in user's account."""
    to: Optional[str] = None
    subject: Optional[str] = None
    content: Optional[str] = None

    def missing_fields(self) -> list[str]:
        return [
            field
            for field in ("to", "subject", "content")
            if not (getattr(self, field) or "").strip()
        ]
