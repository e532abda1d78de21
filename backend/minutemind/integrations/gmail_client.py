"""
Gmail API client integration.

Sends one message on behalf of a user through the Gmail API, authorized
with that user's own access token.

Gmail API Reference: https://developers.google.com/gmail/api/reference/rest
"""
import base64
from email.mime.text import MIMEText
from typing import Optional

import httpx

from minutemind.utils.errors import MailDispatchError, ValidationError
from minutemind.utils.logger import get_logger

logger = get_logger(__name__)

# Gmail API base URL
GMAIL_API_BASE = "https://gmail.googleapis.com/gmail/v1/users/me"
REQUEST_TIMEOUT = 30.0


def build_message(sender_email: str, to: str, subject: str, body: str) -> str:
    """
    Build a plain text message and encode it for the Gmail API.

    Returns:
        base64url-encoded RFC 2822 message
    """
    message = MIMEText(body)
    message["from"] = sender_email
    message["to"] = to
    message["subject"] = subject
    return base64.urlsafe_b64encode(message.as_bytes()).decode("utf-8")


def _relay_diagnostic(response: httpx.Response) -> str:
    """Error text reported by Gmail for a failed send."""
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    if isinstance(error, str):
        return error
    return f"HTTP {response.status_code}"


class MailDispatcher:
    """
    Sends email as the logged-in user.

    Each send opens its own HTTP client with that user's bearer token and
    closes it afterwards; nothing authenticated is pooled across users.

    Usage:
        dispatcher = MailDispatcher()
        message_id = await dispatcher.send_on_behalf(email, access_token, to, subject, body)
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            transport: Optional httpx transport (used by tests)
        """
        self._transport = transport

    async def send_on_behalf(
        self,
        sender_email: str,
        access_token: str,
        to: str,
        subject: str,
        body: str,
    ) -> str:
        """
        Send one email from the user's Gmail account.

        Args:
            sender_email: Address of the logged-in user
            access_token: Fresh Google access token with gmail.send scope
            to: Recipient email address
            subject: Email subject
            body: Plain text body

        Returns:
            Sent message ID

        Raises:
            ValidationError: If to, subject or body is empty
            MailDispatchError: If Gmail rejects or fails the send
        """
        missing = [
            name
            for name, value in (("to", to), ("subject", subject), ("body", body))
            if not (value or "").strip()
        ]
        if missing:
            raise ValidationError(f"Missing email fields: {', '.join(missing)}")

        logger.info(f"Sending email from {sender_email} to {to}")

        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }
        request_body = {"raw": build_message(sender_email, to, subject, body)}

        async with httpx.AsyncClient(transport=self._transport, timeout=REQUEST_TIMEOUT) as client:
            try:
                response = await client.post(
                    f"{GMAIL_API_BASE}/messages/send",
                    headers=headers,
                    json=request_body,
                )
            except httpx.RequestError as e:
                logger.error(f"Gmail send request failed: {e}")
                raise MailDispatchError(f"Failed to send email: {e}")

        if not 200 <= response.status_code < 300:
            diagnostic = _relay_diagnostic(response)
            logger.error(f"Gmail send failed: {response.status_code} - {diagnostic}")
            raise MailDispatchError(f"Failed to send email: {diagnostic}")

        # The mail is out at this point; a body we can't read is not a failure
        message_id = ""
        try:
            data = response.json() if response.content else {}
        except ValueError:
            logger.warning("Gmail send succeeded with an unreadable response body")
            data = {}
        if isinstance(data, dict):
            message_id = str(data.get("id") or "")

        logger.info(f"Email sent: {message_id}")
        return message_id
