"""OAuth Provider Registry.

``OAuthBroker`` owns the configured providers. A provider is enabled only
when its client id, client secret and redirect URI are all set; a disabled
provider is simply absent from the broker.
"""

from typing import Type

import httpx

from forum.auth.providers.base import AuthorizationRequest, OAuthConfig, OAuthProfile, OAuthProvider
from forum.auth.providers.discord_provider import DiscordProvider
from forum.auth.providers.facebook_provider import FacebookProvider
from forum.auth.providers.google_provider import GoogleProvider
from forum.config import Settings
from forum.core.errors import MissingPkceState, ProviderNotConfigured, ProviderUnknown
from forum.core.logging import get_logger

logger = get_logger(__name__)

PROVIDER_CLASSES: dict[str, Type[OAuthProvider]] = {
    "google": GoogleProvider,
    "facebook": FacebookProvider,
    "discord": DiscordProvider,
}


class OAuthBroker:
    """Entry point for the OAuth login flow of every provider."""

    def __init__(self):
        self._providers: dict[str, OAuthProvider] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "OAuthBroker":
        """Register every provider whose configuration is complete."""
        broker = cls()
        for name, provider_class in PROVIDER_CLASSES.items():
            config = OAuthConfig(
                client_id=getattr(settings, f"{name}_client_id"),
                client_secret=getattr(settings, f"{name}_client_secret"),
                redirect_uri=getattr(settings, f"{name}_redirect_uri"),
            )
            if not config.complete:
                continue
            broker.register(provider_class(config, timeout=settings.oauth_http_timeout, transport=transport))
            logger.info("Registered OAuth provider", provider=name)
        return broker

    def register(self, provider: OAuthProvider) -> None:
        self._providers[provider.name] = provider

    def get(self, name: str) -> OAuthProvider:
        """Look up an enabled provider.

        Raises:
            ProviderUnknown: no such provider exists at all
            ProviderNotConfigured: the provider exists but is not configured
        """
        provider = self._providers.get(name)
        if provider is not None:
            return provider
        if name in PROVIDER_CLASSES:
            raise ProviderNotConfigured(f"{PROVIDER_CLASSES[name].display_name} OAuth not configured")
        raise ProviderUnknown(f"Unknown provider: {name}")

    def is_enabled(self, name: str) -> bool:
        return name in self._providers

    def list_providers(self) -> list[dict]:
        return [
            {"name": p.name, "display_name": p.display_name, "pkce": p.uses_pkce}
            for p in self._providers.values()
        ]

    def start(self, name: str) -> AuthorizationRequest:
        return self.get(name).start()

    async def complete(self, name: str, code: str, pkce_verifier: str | None = None) -> OAuthProfile:
        """Exchange the code and fetch the profile.

        The caller has already checked the CSRF state; PKCE providers
        additionally need the verifier stored at start().
        """
        provider = self.get(name)
        if provider.uses_pkce and not pkce_verifier:
            raise MissingPkceState()
        access_token = await provider.exchange_code(code, pkce_verifier if provider.uses_pkce else None)
        return await provider.fetch_profile(access_token)
