"""API routes."""

from forum.api.auth import router as auth_router
from forum.api.users import router as users_router
from forum.auth.oauth import router as oauth_router

__all__ = [
    "auth_router",
    "oauth_router",
    "users_router",
]
