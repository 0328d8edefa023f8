"""OAuth login routes.

Flow: ``GET /auth/{provider}`` stores the CSRF token (and, for PKCE
providers, the code verifier) in short-lived cookies keyed by the state
and redirects to the provider. ``GET /auth/{provider}/callback`` checks
the state against its cookie, exchanges the code, reconciles the profile
with a local account and logs that account in.
"""

import secrets

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse

from forum.auth.cookies import (
    clear_flow_cookie,
    csrf_cookie_name,
    pkce_cookie_name,
    set_flow_cookie,
    start_session,
)
from forum.auth.providers import OAuthBroker
from forum.config import Settings
from forum.core.errors import BadRequest, CsrfMismatch, ForumError, OAuthError, forum_error_handler
from forum.core.logging import get_logger
from forum.core.metrics import metrics
from forum.core.slowapi_limiter import limiter
from forum.core.user_store import UserStore
from forum.deps import BrokerDep, RegistryDep, SettingsDep, StoreDep
from forum.models import User
from forum.schemas.auth import ProviderInfo, ProvidersResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["oauth"])


@router.get("/providers", response_model=ProvidersResponse)
async def get_providers(broker: BrokerDep):
    """List the OAuth providers that are configured."""
    return ProvidersResponse(providers=[ProviderInfo(**p) for p in broker.list_providers()])


@router.get("/{provider}")
@limiter.limit("20/minute")
async def oauth_login(provider: str, request: Request, settings: SettingsDep, broker: BrokerDep):
    """Start the OAuth flow with the given provider."""
    auth = broker.start(provider)

    response = RedirectResponse(auth.url, status_code=status.HTTP_302_FOUND)
    set_flow_cookie(response, csrf_cookie_name(auth.csrf_token), auth.csrf_token, settings)
    if auth.pkce_verifier:
        set_flow_cookie(response, pkce_cookie_name(auth.csrf_token), auth.pkce_verifier, settings)
    return response


def _clear_flow_cookies(response: Response, state: str, settings: Settings) -> None:
    clear_flow_cookie(response, csrf_cookie_name(state), settings)
    clear_flow_cookie(response, pkce_cookie_name(state), settings)


async def _finish_login(
    request: Request,
    provider: str,
    code: str | None,
    state: str | None,
    broker: OAuthBroker,
    store: UserStore,
) -> User:
    oauth_provider = broker.get(provider)

    if not code:
        raise BadRequest("Missing authorization code")
    if not state:
        raise CsrfMismatch("Missing state parameter")

    stored_csrf = request.cookies.get(csrf_cookie_name(state))
    if not stored_csrf:
        raise CsrfMismatch("CSRF token not found in session")
    if not secrets.compare_digest(stored_csrf, state):
        raise CsrfMismatch()

    pkce_verifier = None
    if oauth_provider.uses_pkce:
        pkce_verifier = request.cookies.get(pkce_cookie_name(state))

    try:
        profile = await broker.complete(provider, code, pkce_verifier)
    except OAuthError as e:
        metrics.record_auth_event("oauth_login", "provider_error")
        logger.warning("OAuth flow failed", provider=provider, error=e.message)
        raise

    return await store.reconcile_oauth(profile)


@router.get("/{provider}/callback")
@limiter.limit("20/minute")
async def oauth_callback(
    provider: str,
    request: Request,
    settings: SettingsDep,
    broker: BrokerDep,
    store: StoreDep,
    registry: RegistryDep,
    code: str | None = None,
    state: str | None = None,
):
    """Handle the provider redirect back to us.

    The flow cookies for ``state`` are single-use: they are cleared on the
    way out whether the login succeeded or not.
    """
    try:
        user = await _finish_login(request, provider, code, state, broker, store)
    except ForumError as e:
        response = await forum_error_handler(request, e)
        if state:
            _clear_flow_cookies(response, state, settings)
        return response

    registry.register(user.id, user.name)
    await store.touch_last_online(user.id)
    metrics.record_auth_event("oauth_login", "success")
    logger.info("OAuth login", user_id=user.id, provider=provider)

    if "application/json" in request.headers.get("accept", ""):
        response = JSONResponse({"status": "success", "message": user.id})
    else:
        response = RedirectResponse(url=settings.host_url, status_code=status.HTTP_302_FOUND)
    start_session(response, user, settings)
    _clear_flow_cookies(response, state, settings)
    return response
