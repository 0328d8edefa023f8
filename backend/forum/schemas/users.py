"""User request/response schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from forum.models import UserRole
from forum.schemas.auth import NAME_PATTERN


class UserOut(BaseModel):
    """Public view of an account; never includes password or tokens."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    role: UserRole
    verified: bool
    description: str | None = None
    avatar: str | None = None
    created_at: datetime | None = None
    last_online: datetime | None = None
    banned_until: datetime | None = None
    oauth_provider: str | None = None


class MeResponse(BaseModel):
    status: str = "success"
    user: UserOut


class ActiveSessionOut(BaseModel):
    user_id: str
    username: str
    login_time: datetime
    last_seen: datetime


class ActiveUsersResponse(BaseModel):
    status: str = "success"
    results: int
    users: list[ActiveSessionOut]


class PasswordUpdateRequest(BaseModel):
    old_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6, max_length=64)


class ProfileUpdateRequest(BaseModel):
    """Edit a profile. ``user_id`` defaults to the caller."""

    user_id: str | None = None
    name: str | None = Field(default=None, min_length=1, max_length=100, pattern=NAME_PATTERN)
    description: str | None = Field(default=None, max_length=2000)
    avatar: str | None = Field(default=None, max_length=512)


class RoleUpdateRequest(BaseModel):
    user_id: str
    role: str


class WarnUserRequest(BaseModel):
    user_id: str
    comment: str | None = Field(default=None, max_length=2000)
    ban_days: int | None = Field(default=None, ge=1, le=3650)


class UnbanUserRequest(BaseModel):
    user_id: str
