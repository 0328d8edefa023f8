"""Shared FastAPI dependencies.

Process-wide components (settings, session registry, OAuth broker, mailer)
are built once in ``create_app`` and kept on ``app.state``; these
dependencies hand them to route functions.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from forum.auth.providers import OAuthBroker
from forum.config import Settings
from forum.core.logging import get_logger
from forum.core.mailer import Mailer
from forum.core.metrics import metrics
from forum.core.session_registry import SessionRegistry, TouchResult
from forum.core.user_store import UserStore
from forum.database import get_db
from forum.models import User

logger = get_logger(__name__)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_registry(request: Request) -> SessionRegistry:
    return request.app.state.session_registry


def get_oauth_broker(request: Request) -> OAuthBroker:
    return request.app.state.oauth_broker


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


def get_user_store(db: Annotated[AsyncSession, Depends(get_db)]) -> UserStore:
    return UserStore(db)


SettingsDep = Annotated[Settings, Depends(get_app_settings)]
RegistryDep = Annotated[SessionRegistry, Depends(get_session_registry)]
BrokerDep = Annotated[OAuthBroker, Depends(get_oauth_broker)]
MailerDep = Annotated[Mailer, Depends(get_mailer)]
StoreDep = Annotated[UserStore, Depends(get_user_store)]


async def touch_presence(registry: SessionRegistry, store: UserStore, user: User) -> TouchResult:
    """Refresh a principal's presence after a business action.

    A missing registry entry (e.g. after a restart) is recreated; a locked
    one is left alone. Neither fails the request.
    """
    result = registry.touch(user.id)
    metrics.record_touch(result.value)
    if result is TouchResult.ABSENT_KEY:
        registry.register(user.id, user.name)
    await store.touch_last_online(user.id)
    return result
