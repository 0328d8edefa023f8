"""Discord OAuth provider."""

from typing import Any

from forum.auth.providers.base import OAuthProfile, OAuthProvider


class DiscordProvider(OAuthProvider):
    name = "discord"
    display_name = "Discord"
    AUTHORIZE_URL = "https://discord.com/api/oauth2/authorize"
    TOKEN_URL = "https://discord.com/api/oauth2/token"
    PROFILE_URL = "https://discord.com/api/users/@me"
    AVATAR_URL = "https://cdn.discordapp.com/avatars/{user_id}/{avatar}.png"
    SCOPES = ["identify", "email"]

    def parse_profile(self, data: dict[str, Any]) -> OAuthProfile:
        user_id = str(data["id"])
        avatar = data.get("avatar")
        return OAuthProfile(
            provider=self.name,
            subject_id=user_id,
            email=data.get("email"),
            email_verified=bool(data.get("verified", False)),
            display_name=data.get("global_name") or data.get("username"),
            avatar_url=self.AVATAR_URL.format(user_id=user_id, avatar=avatar) if avatar else None,
            raw_data=data,
        )
