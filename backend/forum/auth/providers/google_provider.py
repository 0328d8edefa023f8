"""Google OAuth provider (authorization code + PKCE)."""

from typing import Any

from forum.auth.providers.base import OAuthProfile, OAuthProvider


class GoogleProvider(OAuthProvider):
    """Google accounts. The only provider that uses PKCE."""

    name = "google"
    display_name = "Google"
    AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    PROFILE_URL = "https://www.googleapis.com/oauth2/v3/userinfo"
    SCOPES = ["email", "profile"]
    uses_pkce = True

    def parse_profile(self, data: dict[str, Any]) -> OAuthProfile:
        return OAuthProfile(
            provider=self.name,
            subject_id=str(data["sub"]),
            email=data.get("email"),
            email_verified=bool(data.get("email_verified", False)),
            display_name=data.get("name"),
            avatar_url=data.get("picture"),
            raw_data=data,
        )
