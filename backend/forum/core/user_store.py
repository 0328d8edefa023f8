"""Account persistence.

``UserStore`` is the only place that talks SQL about accounts. Each method
is a single atomic change committed before it returns; nothing here
coordinates multi-step writes. SQLAlchemy failures surface as
``DatabaseError`` with a generic message, the details go to the log.
"""

import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from forum.auth.providers.base import OAuthProfile
from forum.core.errors import Conflict, DatabaseError, NotFound
from forum.core.logging import get_logger
from forum.models import ModerationWarning, User, UserRole

logger = get_logger(__name__)

# Columns update_fields may change
UPDATABLE_FIELDS = frozenset({
    "name",
    "email",
    "password",
    "role",
    "verified",
    "verification_token",
    "token_expires_at",
    "description",
    "avatar",
    "banned_until",
    "last_online",
    "oauth_provider",
    "oauth_uid",
})


class UserStore:
    """Data-store contract for accounts, bound to one session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def _guard(self, operation: str):
        try:
            yield
        except IntegrityError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Database operation failed", operation=operation, error=str(e))
            raise DatabaseError() from e

    async def _one(self, stmt) -> User | None:
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    # Lookups

    async def find_by_id(self, user_id: str) -> User | None:
        async with self._guard("find_by_id"):
            return await self._one(select(User).where(User.id == str(user_id)))

    async def find_by_name_or_email(self, name_or_email: str) -> User | None:
        """Input containing "@" is looked up by email only, anything else by name."""
        column = User.email if "@" in name_or_email else User.name
        async with self._guard("find_by_name_or_email"):
            return await self._one(select(User).where(column == name_or_email))

    async def find_by_email(self, email: str) -> User | None:
        async with self._guard("find_by_email"):
            return await self._one(select(User).where(User.email == email))

    async def find_by_verification_token(self, token: str) -> User | None:
        async with self._guard("find_by_verification_token"):
            return await self._one(select(User).where(User.verification_token == token))

    async def find_by_provider(self, provider: str, subject_id: str) -> User | None:
        async with self._guard("find_by_provider"):
            return await self._one(
                select(User).where(User.oauth_provider == provider, User.oauth_uid == subject_id)
            )

    async def name_taken(self, name: str) -> bool:
        async with self._guard("name_taken"):
            return await self._one(select(User.id).where(User.name == name)) is not None

    # Writes

    async def insert_user(
        self,
        name: str,
        email: str,
        password_hash: str | None = None,
        verification_token: str | None = None,
        token_expires_at: datetime | None = None,
        oauth_provider: str | None = None,
        oauth_uid: str | None = None,
        role: UserRole = UserRole.USER,
        verified: bool = False,
    ) -> User:
        """Insert a new account.

        Raises:
            Conflict: name, email or OAuth identity already in use
        """
        user = User(
            name=name,
            email=email,
            password=password_hash,
            verification_token=verification_token,
            token_expires_at=token_expires_at,
            oauth_provider=oauth_provider,
            oauth_uid=oauth_uid,
            role=role,
            verified=verified,
        )
        try:
            async with self._guard("insert_user"):
                self.db.add(user)
                await self.db.commit()
                await self.db.refresh(user)
        except IntegrityError:
            raise Conflict()
        return user

    async def update_fields(self, user_id: str, **fields: Any) -> User:
        """Update whitelisted columns of one account.

        Raises:
            ValueError: a field outside UPDATABLE_FIELDS was given
            Conflict: the update would break a uniqueness constraint
            NotFound: the account does not exist
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")

        try:
            async with self._guard("update_fields"):
                user = await self._one(select(User).where(User.id == str(user_id)))
                if user is None:
                    raise NotFound("No such user")
                for key, value in fields.items():
                    setattr(user, key, value)
                await self.db.commit()
                await self.db.refresh(user)
        except IntegrityError:
            raise Conflict()
        return user

    async def set_verification_token(self, user_id: str, token: str, expires_at: datetime) -> User:
        return await self.update_fields(user_id, verification_token=token, token_expires_at=expires_at)

    async def consume_verification_token(self, user_id: str) -> User:
        """Mark the account verified and clear its single-use token."""
        return await self.update_fields(
            user_id,
            verified=True,
            verification_token=None,
            token_expires_at=None,
        )

    async def touch_last_online(self, user_id: str) -> None:
        await self.update_fields(user_id, last_online=datetime.now(timezone.utc))

    async def warn_user(
        self,
        user_id: str,
        comment: str | None,
        warned_by: str,
        ban_days: int | None = None,
    ) -> ModerationWarning:
        """Record a warning; with ban_days, also ban until now + ban_days."""
        async with self._guard("warn_user"):
            user = await self._one(select(User).where(User.id == str(user_id)))
            if user is None:
                raise NotFound("No such user")
            warning = ModerationWarning(
                user_id=user.id,
                comment=comment,
                warned_by=str(warned_by),
                banned=bool(ban_days),
            )
            self.db.add(warning)
            if ban_days:
                user.banned_until = datetime.now(timezone.utc) + timedelta(days=ban_days)
            await self.db.commit()
            await self.db.refresh(warning)
        return warning

    async def unban_user(self, user_id: str) -> User:
        return await self.update_fields(user_id, banned_until=None)

    # OAuth

    async def reconcile_oauth(self, profile: OAuthProfile) -> User:
        """Find or create the account for an OAuth identity.

        Order matters:
        1. account already bound to (provider, subject id): returned unchanged
        2. account with the profile's email: the provider binding is set on it,
           replacing any previous one
        3. otherwise a new account is created with the binding

        If a concurrent callback creates the same account between the lookups
        and the insert, the unique constraints reject the insert and the
        lookups are retried once.
        """
        for attempt in range(2):
            user = await self.find_by_provider(profile.provider, profile.subject_id)
            if user is not None:
                return user

            if profile.email:
                user = await self.find_by_email(profile.email)
                if user is not None:
                    logger.info(
                        "Linking OAuth identity to existing account",
                        provider=profile.provider,
                        user_id=user.id,
                    )
                    return await self.update_fields(
                        user.id,
                        oauth_provider=profile.provider,
                        oauth_uid=profile.subject_id,
                    )

            try:
                return await self.insert_user(
                    name=await self._unique_name(profile.default_username()),
                    email=profile.email or f"{profile.provider}:{profile.subject_id}",
                    oauth_provider=profile.provider,
                    oauth_uid=profile.subject_id,
                    role=UserRole.USER,
                    verified=profile.email_verified,
                )
            except Conflict:
                if attempt:
                    raise
                logger.warning("OAuth account creation raced, retrying lookup", provider=profile.provider)
        raise Conflict()

    async def _unique_name(self, base: str) -> str:
        # "@" is reserved for emails in name-or-email login
        base = base.replace("@", "_")
        name = base[:90] or "user"
        while await self.name_taken(name):
            name = f"{base[:90]}_{secrets.token_hex(3)}"
        return name
