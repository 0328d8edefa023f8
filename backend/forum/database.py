"""Database connection and session management."""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from forum.config import Settings, get_settings


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# Lazy initialization to support testing with different databases
_engine = None
_async_session_maker = None


def get_engine(database_url: str | None = None):
    """Get or create the database engine.

    ``database_url`` defaults to the environment settings; it only takes
    effect when no engine exists yet.
    """
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            database_url or get_settings().database_url,
            echo=False,
            pool_pre_ping=True,
        )
    return _engine


def get_session_maker():
    """Get or create the session maker."""
    global _async_session_maker
    if _async_session_maker is None:
        _async_session_maker = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_maker


async def get_db() -> AsyncSession:
    """Dependency for getting database session."""
    async with get_session_maker()() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db(settings: Settings | None = None):
    """Bind the engine to ``settings.database_url`` and create tables."""
    from forum import models  # noqa: F401  (registers tables on Base.metadata)

    if settings is not None:
        await close_db()
    async with get_engine(settings.database_url if settings else None).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Close database connections."""
    global _engine, _async_session_maker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _async_session_maker = None
