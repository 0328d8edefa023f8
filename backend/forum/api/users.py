"""User account routes: self-service and moderation."""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends

from forum.auth.gates import ActiveUser, require_roles
from forum.core.errors import BadRequest, Forbidden, MalformedDigest, OldPasswordMismatch
from forum.core.logging import get_logger
from forum.core.metrics import metrics
from forum.core.password_engine import password_engine
from forum.deps import RegistryDep, StoreDep, touch_presence
from forum.models import User, UserRole
from forum.schemas.auth import MessageResponse
from forum.schemas.users import (
    ActiveSessionOut,
    ActiveUsersResponse,
    MeResponse,
    PasswordUpdateRequest,
    ProfileUpdateRequest,
    RoleUpdateRequest,
    UnbanUserRequest,
    UserOut,
    WarnUserRequest,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

AdminUser = Annotated[User, Depends(require_roles(UserRole.ADMIN))]
ModeratorUser = Annotated[User, Depends(require_roles(UserRole.ADMIN, UserRole.MOD))]


def _user_id(value: str) -> str:
    try:
        return str(uuid.UUID(value))
    except ValueError:
        raise BadRequest("Invalid user id")


@router.get("/me", response_model=MeResponse)
async def get_me(user: ActiveUser, registry: RegistryDep, store: StoreDep):
    await touch_presence(registry, store, user)
    return MeResponse(user=UserOut.model_validate(user))


@router.get("/active", response_model=ActiveUsersResponse)
async def get_active_users(registry: RegistryDep):
    """Users seen within the activity window, most recent first."""
    sessions = [
        ActiveSessionOut(
            user_id=s.user_id,
            username=s.username,
            login_time=s.login_time,
            last_seen=s.last_seen,
        )
        for s in registry.list_active()
    ]
    metrics.set_active_sessions(len(sessions))
    return ActiveUsersResponse(results=len(sessions), users=sessions)


@router.put("/password", response_model=MessageResponse)
async def update_password(
    body: PasswordUpdateRequest,
    user: ActiveUser,
    registry: RegistryDep,
    store: StoreDep,
):
    """Change the caller's password. Accounts without one cannot use this."""
    if not user.password:
        raise OldPasswordMismatch()
    try:
        matches = password_engine.verify_password(body.old_password, user.password)
    except MalformedDigest:
        logger.error("Stored password digest is malformed", user_id=user.id)
        raise OldPasswordMismatch()
    if not matches:
        raise OldPasswordMismatch()

    await touch_presence(registry, store, user)
    await store.update_fields(user.id, password=password_engine.hash_password(body.new_password))
    logger.info("Password changed", user_id=user.id)
    return MessageResponse(message="Password updated successfully")


@router.put("/profile", response_model=MessageResponse)
async def update_profile(
    body: ProfileUpdateRequest,
    user: ActiveUser,
    registry: RegistryDep,
    store: StoreDep,
):
    """Edit a profile; Admin and Mod may edit anyone's."""
    await touch_presence(registry, store, user)

    target_id = _user_id(body.user_id) if body.user_id else user.id
    if target_id != user.id and user.role not in (UserRole.ADMIN, UserRole.MOD):
        raise Forbidden()

    fields = body.model_dump(exclude_unset=True, exclude={"user_id"})
    if "name" in fields and fields["name"] is None:
        raise BadRequest("Name cannot be empty")
    if not fields:
        raise BadRequest("Nothing to update")

    await store.update_fields(target_id, **fields)
    logger.info("Profile updated", user_id=target_id, updated_by=user.id)
    return MessageResponse(message="User updated successfully")


@router.put("/role", response_model=MessageResponse)
async def update_role(body: RoleUpdateRequest, admin: AdminUser, registry: RegistryDep, store: StoreDep):
    await touch_presence(registry, store, admin)

    role = UserRole.parse(body.role)
    target_id = _user_id(body.user_id)
    await store.update_fields(target_id, role=role)
    logger.info("Role changed", user_id=target_id, role=str(role), changed_by=admin.id)
    return MessageResponse(message="Role changed")


@router.put("/warn", response_model=MessageResponse)
async def warn_user(body: WarnUserRequest, moderator: ModeratorUser, registry: RegistryDep, store: StoreDep):
    """Record a warning; ``ban_days`` also bans the user for that long."""
    await touch_presence(registry, store, moderator)

    target_id = _user_id(body.user_id)
    await store.warn_user(target_id, body.comment, moderator.id, body.ban_days)
    logger.info("User warned", user_id=target_id, warned_by=moderator.id, ban_days=body.ban_days)
    return MessageResponse(message="User banned" if body.ban_days else "User warned")


@router.put("/unban", response_model=MessageResponse)
async def unban_user(body: UnbanUserRequest, moderator: ModeratorUser, registry: RegistryDep, store: StoreDep):
    await touch_presence(registry, store, moderator)

    target_id = _user_id(body.user_id)
    await store.unban_user(target_id)
    logger.info("User unbanned", user_id=target_id, unbanned_by=moderator.id)
    return MessageResponse(message="User unbanned")
