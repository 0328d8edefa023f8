"""OAuth provider abstraction: Google, Facebook, Discord."""

from forum.auth.providers.base import AuthorizationRequest, OAuthConfig, OAuthProfile, OAuthProvider
from forum.auth.providers.registry import OAuthBroker

__all__ = [
    "AuthorizationRequest",
    "OAuthBroker",
    "OAuthConfig",
    "OAuthProfile",
    "OAuthProvider",
]
