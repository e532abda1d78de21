"""
Custom error classes for the application.
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        status_code: int = 500,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert error to dictionary for response."""
        return {"error": self.message}


class NotAuthenticatedError(AppError):
    """Request needs a logged-in session."""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message, "AUTH_REQUIRED", status_code=401)


class AuthExchangeError(AppError):
    """Authorization code could not be exchanged for a user and tokens."""

    def __init__(self, message: str = "Failed to exchange authorization code"):
        super().__init__(message, "AUTH_EXCHANGE_FAILED", status_code=500)


class InvalidStateError(AppError):
    """OAuth callback state does not match the pending login."""

    def __init__(self, message: str = "Invalid OAuth state"):
        super().__init__(message, "INVALID_STATE", status_code=400)


class TokenRefreshError(AppError):
    """Access token could not be refreshed; the user must sign in again."""

    def __init__(self, message: str = "Failed to refresh access token"):
        super().__init__(message, "TOKEN_REFRESH_FAILED", status_code=500)


class MailDispatchError(AppError):
    """Gmail refused or failed to send the message."""

    def __init__(self, message: str = "Failed to send email"):
        super().__init__(message, "MAIL_DISPATCH_FAILED", status_code=500)


class ValidationError(AppError):
    """Missing or empty request fields."""

    def __init__(self, message: str = "Invalid request format."):
        super().__init__(message, "INVALID_REQUEST", status_code=400)


class UpstreamCompletionError(AppError):
    """Language model call failed."""

    def __init__(self, message: str = "Failed to summarize"):
        super().__init__(message, "COMPLETION_FAILED", status_code=500)
