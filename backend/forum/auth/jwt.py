"""JWT session token handling.

Tokens are HS256-signed and carry only the principal id (``sub``), the issue
time (``iat``) and the expiry (``exp``). Nothing is stored server side: a
token is valid iff its signature verifies against the server secret and its
expiry has not passed.
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt

from forum.core.errors import BadSignature, InvalidToken, MalformedToken, TokenExpired

DEFAULT_ALGORITHM = "HS256"


def create_access_token(
    user_id: str,
    secret: str,
    ttl_minutes: int,
    algorithm: str = DEFAULT_ALGORITHM,
    now: datetime | None = None,
) -> str:
    """Create a signed session token for a principal.

    Args:
        user_id: Principal id, stored as the ``sub`` claim
        secret: Symmetric signing secret
        ttl_minutes: Lifetime in minutes (negative values give an already expired token)
    """
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + timedelta(minutes=ttl_minutes)).timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_token(token: str, secret: str, algorithm: str = DEFAULT_ALGORITHM) -> str:
    """Verify a session token and return its subject.

    Raises:
        BadSignature: signature does not match the secret
        TokenExpired: expiry has passed
        MalformedToken: anything else (not a JWT, missing claims, wrong algorithm)
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            options={"require": ["sub", "iat", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpired()
    except jwt.InvalidSignatureError:
        raise BadSignature()
    except jwt.InvalidTokenError:
        raise MalformedToken()
    return payload["sub"]


def parse_subject(subject: str) -> str:
    """Normalize a token subject into a principal id.

    Raises:
        InvalidToken: the subject is not a UUID
    """
    try:
        return str(UUID(subject))
    except (ValueError, TypeError, AttributeError):
        raise InvalidToken("Invalid token subject")
