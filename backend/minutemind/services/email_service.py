"""
Email service - sends mail as the logged-in user.

Validates the request, gets a fresh access token for the session and
hands it to the Gmail dispatcher. Nothing goes over the network when
the request is incomplete.
"""
from functools import lru_cache

from fastapi import Depends

from minutemind.integrations.gmail_client import MailDispatcher
from minutemind.models.email import SendEmailRequest
from minutemind.models.session import Session
from minutemind.services.auth_service import AuthService, get_auth_service
from minutemind.utils.errors import NotAuthenticatedError, ValidationError
from minutemind.utils.logger import get_logger

logger = get_logger(__name__)


class EmailService:
    """
    Email service for delegated sends.

    Usage:
        service = EmailService(auth_service, dispatcher)
        await service.send(session, request)
    """

    def __init__(self, auth_service: AuthService, dispatcher: MailDispatcher):
        self.auth_service = auth_service
        self.dispatcher = dispatcher

    async def send(self, session: Session, request: SendEmailRequest) -> str:
        """
        Send one email from the session user's account.

        Returns:
            Sent message ID

        Raises:
            NotAuthenticatedError: No logged-in user
            ValidationError: Missing to, subject or content
            TokenRefreshError: Access token could not be refreshed
            MailDispatchError: Gmail failed the send
        """
        if session.user is None:
            raise NotAuthenticatedError()

        missing = request.missing_fields()
        if missing:
            raise ValidationError("Missing email fields")

        access_token = await self.auth_service.ensure_access_token(session)

        # Token refresh may have logged the user out concurrently
        user = session.user
        if user is None:
            raise NotAuthenticatedError()

        return await self.dispatcher.send_on_behalf(
            sender_email=user.email,
            access_token=access_token,
            to=request.to.strip(),
            subject=request.subject,
            body=request.content,
        )


@lru_cache()
def get_mail_dispatcher() -> MailDispatcher:
    """FastAPI dependency returning the mail dispatcher."""
    return MailDispatcher()


def get_email_service(
    auth_service: AuthService = Depends(get_auth_service),
    dispatcher: MailDispatcher = Depends(get_mail_dispatcher),
) -> EmailService:
    return EmailService(auth_service, dispatcher)
