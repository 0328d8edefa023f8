"""Forum account (principal) model."""

import enum
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from forum.core.errors import InvalidRole
from forum.database import Base


class UserRole(str, enum.Enum):
    """Account roles, most privileged first."""

    ADMIN = "Admin"
    MOD = "Mod"
    USER = "User"

    @classmethod
    def parse(cls, value: str) -> "UserRole":
        """Parse a role name case-insensitively.

        Raises:
            InvalidRole: the name is not a known role
        """
        for role in cls:
            if role.value.lower() == value.strip().lower():
                return role
        raise InvalidRole(f"Invalid user role: {value}")

    def __str__(self) -> str:
        return self.value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class User(Base):
    """Forum account.

    ``password`` is empty for accounts created through OAuth. At most one
    OAuth provider is bound at a time (``oauth_provider`` + ``oauth_uid``).
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("oauth_provider", "oauth_uid", name="uq_users_oauth_identity"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role", values_callable=lambda e: [r.value for r in e]),
        default=UserRole.USER,
        nullable=False,
    )
    verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Single-use token, shared by email verification and password reset
    verification_token: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    token_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    # Profile
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    avatar: Mapped[str | None] = mapped_column(String(512), nullable=True)

    # Moderation / presence
    banned_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_online: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # OAuth linkage
    oauth_provider: Mapped[str | None] = mapped_column(String(32), nullable=True)
    oauth_uid: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def is_banned(self, now: datetime | None = None) -> bool:
        """Banned iff banned_until is set and strictly in the future."""
        banned_until = _aware(self.banned_until)
        if banned_until is None:
            return False
        return banned_until > (now or _utcnow())

    def verification_expired(self, now: datetime | None = None) -> bool:
        expires_at = _aware(self.token_expires_at)
        if expires_at is None:
            return True
        return (now or _utcnow()) > expires_at

    def __repr__(self) -> str:
        return f"<User {self.name}>"


class ModerationWarning(Base):
    """Moderator warning, optionally accompanied by a ban."""

    __tablename__ = "user_warnings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    warn_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    warned_by: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    banned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
