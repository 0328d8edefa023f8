"""Base OAuth Provider Interface.

Every provider follows the same authorization-code flow; subclasses only
supply endpoints, scopes and a profile-shape adapter. All provider HTTP
calls go out with redirects disabled, so a malicious redirect chain cannot
point the server at an internal address.
"""

import base64
import hashlib
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from forum.core.errors import ProfileFetchFailed, TokenExchangeFailed
from forum.core.metrics import metrics


@dataclass
class OAuthProfile:
    """Normalized user information from an OAuth provider."""

    provider: str  # "google", "facebook", "discord"
    subject_id: str  # Provider-scoped user id
    email: str | None = None
    email_verified: bool = False
    display_name: str | None = None
    avatar_url: str | None = None
    raw_data: dict[str, Any] = field(default_factory=dict, repr=False)

    def default_username(self) -> str:
        """Display name, else the local part of the email, else provider_subject."""
        if self.display_name and self.display_name.strip():
            return self.display_name.strip()
        if self.email and "@" in self.email:
            return self.email.split("@", 1)[0]
        return f"{self.provider}_{self.subject_id}"


@dataclass
class OAuthConfig:
    """Credentials for one provider. All three values are required."""

    client_id: str
    client_secret: str
    redirect_uri: str

    @property
    def complete(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)


@dataclass
class AuthorizationRequest:
    """What start() hands back: where to send the browser and the flow secrets."""

    url: str
    csrf_token: str
    pkce_verifier: str | None = None


def generate_pkce_pair() -> tuple[str, str]:
    """Return (verifier, S256 challenge)."""
    verifier = secrets.token_urlsafe(64)
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return verifier, challenge


def _error_text(response: httpx.Response) -> str:
    """Best-effort extraction of a provider's error message."""
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):  # Facebook Graph API
            return str(error.get("message") or error)
        return str(data.get("error_description") or error or data.get("message") or data)
    return str(data)


class OAuthProvider(ABC):
    """Abstract base class for OAuth providers.

    Subclasses define:
    - name, AUTHORIZE_URL, TOKEN_URL, PROFILE_URL, SCOPES
    - parse_profile(): map the provider's JSON to an OAuthProfile
    """

    name: str
    display_name: str
    AUTHORIZE_URL: str
    TOKEN_URL: str
    PROFILE_URL: str
    SCOPES: list[str] = []
    uses_pkce: bool = False

    def __init__(
        self,
        config: OAuthConfig,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            follow_redirects=False,
            timeout=self.timeout,
            transport=self._transport,
        )

    def profile_params(self) -> dict[str, str]:
        """Extra query parameters for the profile request."""
        return {}

    def start(self) -> AuthorizationRequest:
        """Build the authorization URL and fresh flow secrets. No network I/O."""
        csrf_token = secrets.token_urlsafe(32)
        params = {
            "response_type": "code",
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "scope": " ".join(self.SCOPES),
            "state": csrf_token,
        }
        verifier = None
        if self.uses_pkce:
            verifier, challenge = generate_pkce_pair()
            params["code_challenge"] = challenge
            params["code_challenge_method"] = "S256"
        url = str(httpx.URL(self.AUTHORIZE_URL, params=params))
        return AuthorizationRequest(url=url, csrf_token=csrf_token, pkce_verifier=verifier)

    async def exchange_code(self, code: str, pkce_verifier: str | None = None) -> str:
        """Exchange an authorization code for an access token.

        Raises:
            TokenExchangeFailed: transport error, non-200 answer, or no token in the body
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.config.redirect_uri,
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
        }
        if pkce_verifier is not None:
            data["code_verifier"] = pkce_verifier

        try:
            with metrics.track_provider_call(self.name, "token_exchange"):
                async with self._client() as client:
                    response = await client.post(
                        self.TOKEN_URL,
                        data=data,
                        headers={"Accept": "application/json"},
                    )
        except httpx.HTTPError as e:
            raise TokenExchangeFailed(f"Token exchange failed: {e}") from e

        if response.status_code != 200:
            raise TokenExchangeFailed(_error_text(response))

        try:
            body = response.json()
        except ValueError as e:
            raise TokenExchangeFailed("Token endpoint returned invalid JSON") from e

        access_token = body.get("access_token") if isinstance(body, dict) else None
        if not access_token:
            raise TokenExchangeFailed("No access token in response")
        return access_token

    async def fetch_profile(self, access_token: str) -> OAuthProfile:
        """Fetch and normalize the user's profile.

        Raises:
            ProfileFetchFailed: transport error, non-200 answer, or unusable body
        """
        try:
            with metrics.track_provider_call(self.name, "profile"):
                async with self._client() as client:
                    response = await client.get(
                        self.PROFILE_URL,
                        params=self.profile_params(),
                        headers={
                            "Authorization": f"Bearer {access_token}",
                            "Accept": "application/json",
                        },
                    )
        except httpx.HTTPError as e:
            raise ProfileFetchFailed(f"Failed to get user info: {e}") from e

        if response.status_code != 200:
            raise ProfileFetchFailed(_error_text(response))

        try:
            data = response.json()
            return self.parse_profile(data)
        except (ValueError, KeyError, TypeError) as e:
            raise ProfileFetchFailed("Unexpected user info response") from e

    @abstractmethod
    def parse_profile(self, data: dict[str, Any]) -> OAuthProfile:
        """Map the provider's profile JSON to an OAuthProfile."""
        pass
