"""Cookie helpers for the session token and the OAuth flow secrets."""

from fastapi import Response

from forum.auth.jwt import create_access_token
from forum.config import Settings
from forum.models import User

SESSION_COOKIE = "token"
CSRF_COOKIE_PREFIX = "csrf_token_"
PKCE_COOKIE_PREFIX = "pkce_verifier_"


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        max_age=settings.session_cookie_max_age,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        domain=settings.cookie_domain,
    )


def start_session(response: Response, user: User, settings: Settings) -> str:
    """Issue a session token for the user and put it in the session cookie."""
    token = create_access_token(user.id, settings.jwt_secret_key, settings.jwt_maxage, settings.jwt_algorithm)
    set_session_cookie(response, token, settings)
    return token


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=SESSION_COOKIE,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        domain=settings.cookie_domain,
    )


def csrf_cookie_name(state: str) -> str:
    return f"{CSRF_COOKIE_PREFIX}{state}"


def pkce_cookie_name(state: str) -> str:
    return f"{PKCE_COOKIE_PREFIX}{state}"


def set_flow_cookie(response: Response, name: str, value: str, settings: Settings) -> None:
    """Short-lived cookie holding one OAuth flow secret."""
    response.set_cookie(
        key=name,
        value=value,
        max_age=settings.oauth_cookie_max_age,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def clear_flow_cookie(response: Response, name: str, settings: Settings) -> None:
    response.delete_cookie(key=name, path="/", httponly=True, secure=settings.cookie_secure, samesite="lax")
