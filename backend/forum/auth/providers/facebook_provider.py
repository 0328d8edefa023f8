"""Facebook OAuth provider."""

from typing import Any

from forum.auth.providers.base import OAuthProfile, OAuthProvider


class FacebookProvider(OAuthProvider):
    name = "facebook"
    display_name = "Facebook"
    AUTHORIZE_URL = "https://www.facebook.com/v19.0/dialog/oauth"
    TOKEN_URL = "https://graph.facebook.com/v19.0/oauth/access_token"
    PROFILE_URL = "https://graph.facebook.com/v19.0/me"
    SCOPES = ["email", "public_profile"]

    def profile_params(self) -> dict[str, str]:
        return {"fields": "id,name,email,picture"}

    def parse_profile(self, data: dict[str, Any]) -> OAuthProfile:
        picture = (data.get("picture") or {}).get("data") or {}
        email = data.get("email")
        return OAuthProfile(
            provider=self.name,
            subject_id=str(data["id"]),
            email=email,
            # Graph only returns confirmed addresses
            email_verified=email is not None,
            display_name=data.get("name"),
            avatar_url=picture.get("url"),
            raw_data=data,
        )
