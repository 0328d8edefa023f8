"""Request gates.

Three FastAPI dependencies that run before a route body:

- ``get_current_user``: session token from the ``token`` cookie, else from
  ``Authorization: Bearer``; verified and resolved to a User
- ``require_not_banned``: runs ``get_current_user`` first, then rejects banned users
- ``require_roles(*roles)``: runs the two above, then checks the role

Any failure raises before the route body runs, so no side effects happen.
"""

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from forum.auth.cookies import SESSION_COOKIE
from forum.auth.jwt import decode_token, parse_subject
from forum.core.errors import Banned, Forbidden, InvalidToken, NoSuchUser, Unauthorized
from forum.core.logging import set_user_context
from forum.core.metrics import metrics
from forum.deps import SettingsDep, StoreDep
from forum.models import User, UserRole

security = HTTPBearer(auto_error=False)


def extract_token(request: Request, credentials: HTTPAuthorizationCredentials | None) -> str | None:
    """Cookie first, then bearer header."""
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        return token
    if credentials and credentials.credentials:
        return credentials.credentials
    return None


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: SettingsDep,
    store: StoreDep,
) -> User:
    """Get current authenticated user from the session token."""
    token = extract_token(request, credentials)
    if not token:
        metrics.record_gate_rejection("unauthenticated")
        raise Unauthorized("Not authenticated")

    try:
        user_id = parse_subject(decode_token(token, settings.jwt_secret_key, settings.jwt_algorithm))
    except InvalidToken:
        metrics.record_gate_rejection("invalid_token")
        raise

    user = await store.find_by_id(user_id)
    if user is None:
        metrics.record_gate_rejection("no_such_user")
        raise NoSuchUser()

    request.state.user = user
    set_user_context(user.id)
    return user


async def require_not_banned(
    user: Annotated[User, Depends(get_current_user)],
) -> User:
    if user.is_banned():
        metrics.record_gate_rejection("banned")
        raise Banned()
    return user


def require_roles(*roles: UserRole):
    """Build a gate admitting only the given roles (after auth and ban checks)."""
    allowed = frozenset(roles)

    async def role_check(user: Annotated[User, Depends(require_not_banned)]) -> User:
        if user.role not in allowed:
            metrics.record_gate_rejection("role")
            raise Forbidden()
        return user

    return role_check


CurrentUser = Annotated[User, Depends(get_current_user)]
ActiveUser = Annotated[User, Depends(require_not_banned)]
