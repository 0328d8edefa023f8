"""Database models."""

from forum.models.user import User, UserRole, ModerationWarning

__all__ = [
    "User",
    "UserRole",
    "ModerationWarning",
]
