"""Forum auth service - Main FastAPI Application."""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from forum import __version__
from forum.api import auth_router, oauth_router, users_router
from forum.auth.providers import OAuthBroker
from forum.config import Settings, get_settings
from forum.core.errors import ForumError, forum_error_handler
from forum.core.logging import RequestLoggingMiddleware, get_logger, setup_logging
from forum.core.mailer import LoggingMailer, Mailer
from forum.core.metrics import setup_metrics
from forum.core.session_registry import SessionRegistry
from forum.core.slowapi_limiter import limiter
from forum.database import close_db, init_db

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    await init_db(app.state.settings)
    logger.info("Forum auth service started", providers=len(app.state.oauth_broker.list_providers()))
    yield
    await close_db()


def create_app(
    settings: Settings | None = None,
    oauth_transport: httpx.AsyncBaseTransport | None = None,
    mailer: Mailer | None = None,
) -> FastAPI:
    """Build the application and its process-wide components.

    ``oauth_transport`` replaces the network for provider calls and
    ``mailer`` replaces the logging mailer; both exist for tests.
    """
    settings = settings or get_settings()
    setup_logging(json_output=settings.log_json, level=settings.log_level)

    app = FastAPI(
        title="Forum Auth",
        description="Accounts, sessions and OAuth login for the forum",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.session_registry = SessionRegistry()
    app.state.oauth_broker = OAuthBroker.from_settings(settings, transport=oauth_transport)
    app.state.mailer = mailer or LoggingMailer()

    limiter.enabled = settings.rate_limit_enabled
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(ForumError, forum_error_handler)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.host_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Fixed /auth paths are registered before the /auth/{provider} routes
    app.include_router(auth_router)
    app.include_router(oauth_router)
    app.include_router(users_router)

    if settings.metrics_enabled:
        setup_metrics(app, providers=[p["name"] for p in app.state.oauth_broker.list_providers()])

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
