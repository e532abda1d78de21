"""
Email sending endpoint.

Endpoint: POST /api/send-email
Request: { "to": "a@b.com", "subject": "Hi", "content": "..." }
Response: { "success": true }

Mail goes out from the logged-in user's own Gmail account.

Errors:
- 401: No logged-in session
- 400: Missing to, subject or content
- 500: Token refresh or Gmail send failed
"""
from typing import Optional

from fastapi import APIRouter, Depends

from minutemind.models.email import SendEmailRequest
from minutemind.models.session import Session
from minutemind.services.email_service import EmailService, get_email_service
from minutemind.services.session_service import require_user
from minutemind.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.post("/send-email")
async def send_email(
    session: Session = Depends(require_user),
    email_service: EmailService = Depends(get_email_service),
    request: Optional[SendEmailRequest] = None,
):
    """
    Send an email as the logged-in user.

    The session is checked before the body fields, so anonymous callers
    get 401 even when the body is missing or incomplete.
    """
    await email_service.send(session, request or SendEmailRequest())
    return {"success": True}
