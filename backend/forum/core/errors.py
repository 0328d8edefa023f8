"""Error taxonomy for the forum backend.

Every failure the auth core can produce is a ``ForumError`` subclass carrying
the HTTP status it maps to. Route code raises these; a single exception
handler installed by ``forum.main`` turns them into JSON responses.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse

from forum.core.logging import get_logger

logger = get_logger(__name__)


class ForumError(Exception):
    """Base class for all forum errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Bad request"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# Credentials and tokens

class Unauthorized(ForumError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class InvalidToken(ForumError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid token"


class MalformedToken(InvalidToken):
    default_message = "Malformed token"


class BadSignature(InvalidToken):
    default_message = "Invalid token signature"


class TokenExpired(InvalidToken):
    default_message = "Token expired"


class NoSuchUser(ForumError):
    """Token was valid but the principal it names does not exist."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "No such user"


class Forbidden(ForumError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Permission denied"


class Banned(Forbidden):
    default_message = "You have been banned"


# Request problems

class BadRequest(ForumError):
    pass


class CsrfMismatch(BadRequest):
    default_message = "CSRF token mismatch"


class MissingPkceState(BadRequest):
    default_message = "PKCE verifier not found in session"


class VerificationTokenError(BadRequest):
    default_message = "Invalid verification token"


class OldPasswordMismatch(BadRequest):
    default_message = "Old password is incorrect"


class InvalidRole(BadRequest):
    pass


class NotFound(ForumError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Conflict(ForumError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Name or email already registered"


# Password hashing

class EmptyPassword(BadRequest):
    default_message = "Empty password"


class PasswordTooLong(BadRequest):
    default_message = "Password too long"


class MalformedDigest(BadRequest):
    default_message = "Invalid password hash format"


# OAuth

class OAuthError(ForumError):
    """Provider-side failure; the message is the provider's error text."""

    default_message = "OAuth2 error"


class TokenExchangeFailed(OAuthError):
    default_message = "Token exchange failed"


class ProfileFetchFailed(OAuthError):
    default_message = "Failed to fetch user profile"


class ProviderNotConfigured(ForumError):
    status_code = status.HTTP_501_NOT_IMPLEMENTED
    default_message = "OAuth provider not configured"


class ProviderUnknown(ForumError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Unknown provider"


# Server side

class DatabaseError(ForumError):
    """Store failure. The message returned to clients is always generic."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Database error"


class ServerError(ForumError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Server error"


class MailDeliveryError(ServerError):
    default_message = "Failed to send email"


async def forum_error_handler(request: Request, exc: ForumError) -> JSONResponse:
    """Render a ForumError as ``{"status": "fail", "message": ...}``."""
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, error=type(exc).__name__)
    return JSONResponse(
        status_code=exc.status_code,
        content={"status": "fail", "message": exc.message},
    )
