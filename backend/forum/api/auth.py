"""Account authentication routes.

Registration, password login and logout, email verification and the
password reset pair. Login, verification and OAuth callbacks all end the
same way: a session token in the ``token`` cookie and a fresh entry in the
session registry.
"""

import uuid
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import RedirectResponse

from forum.auth.cookies import clear_session_cookie, start_session
from forum.auth.gates import CurrentUser
from forum.core.errors import (
    Banned,
    EmptyPassword,
    Forbidden,
    MailDeliveryError,
    MalformedDigest,
    PasswordTooLong,
    Unauthorized,
    VerificationTokenError,
)
from forum.core.logging import get_logger
from forum.core.metrics import metrics
from forum.core.password_engine import password_engine
from forum.core.slowapi_limiter import limiter
from forum.deps import MailerDep, RegistryDep, SettingsDep, StoreDep
from forum.schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _new_single_use_token(lifetime: timedelta) -> tuple[str, datetime]:
    return str(uuid.uuid4()), datetime.now(timezone.utc) + lifetime


@router.post("/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
async def register(
    request: Request,
    body: RegisterRequest,
    settings: SettingsDep,
    store: StoreDep,
    mailer: MailerDep,
):
    """Create a password account.

    With email verification on, the account starts unverified and a
    verification link is mailed; a failed mail does not undo the account.
    """
    password_hash = password_engine.hash_password(body.password)

    if settings.email_verification:
        token, expires_at = _new_single_use_token(timedelta(hours=settings.verification_token_hours))
    else:
        token, expires_at = None, None

    user = await store.insert_user(
        name=body.name,
        email=body.email,
        password_hash=password_hash,
        verification_token=token,
        token_expires_at=expires_at,
        verified=not settings.email_verification,
    )
    logger.info("User registered", user_id=user.id)
    metrics.record_auth_event("register", "success")

    if not settings.email_verification:
        return MessageResponse(message="Registration successful")

    link = f"{settings.host_url}/auth/verify?token={token}"
    try:
        await mailer.send_verification(user.email, user.name, link)
    except MailDeliveryError as e:
        logger.error("Verification mail failed", user_id=user.id, error=e.message)

    return MessageResponse(message="Registration successful! Please check your email to verify your account.")


@router.post("/login", response_model=LoginResponse)
@limiter.limit("10/minute")
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    settings: SettingsDep,
    store: StoreDep,
    registry: RegistryDep,
):
    """Log in with name or email and password."""
    user = await store.find_by_name_or_email(body.username)
    if user is None or not user.password:
        metrics.record_auth_event("login", "invalid_credentials")
        raise Unauthorized("Invalid credentials")

    try:
        matches = password_engine.verify_password(body.password, user.password)
    except (EmptyPassword, PasswordTooLong):
        matches = False
    except MalformedDigest:
        logger.error("Stored password digest is malformed", user_id=user.id)
        matches = False
    if not matches:
        metrics.record_auth_event("login", "invalid_credentials")
        logger.info("Login failed", user_id=user.id)
        raise Unauthorized("Invalid credentials")

    if user.is_banned():
        metrics.record_auth_event("login", "banned")
        raise Banned()
    if settings.email_verification and not user.verified:
        metrics.record_auth_event("login", "unverified")
        raise Forbidden("Please verify your email first")

    start_session(response, user, settings)
    registry.register(user.id, user.name)
    await store.touch_last_online(user.id)

    metrics.record_auth_event("login", "success")
    logger.info("User logged in", user_id=user.id)
    return LoginResponse(role=user.role)


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response, user: CurrentUser, settings: SettingsDep):
    clear_session_cookie(response, settings)
    logger.info("User logged out", user_id=user.id)
    return MessageResponse(message="Logged out")


@router.get("/verify")
async def verify_email(
    token: str,
    settings: SettingsDep,
    store: StoreDep,
    registry: RegistryDep,
    mailer: MailerDep,
):
    """Consume a verification token and log the account in."""
    user = await store.find_by_verification_token(token)
    if user is None:
        raise VerificationTokenError("Invalid verification token")
    if user.verification_expired():
        raise VerificationTokenError("Verification token expired")

    user = await store.consume_verification_token(user.id)
    try:
        await mailer.send_welcome(user.email, user.name)
    except MailDeliveryError as e:
        logger.error("Welcome mail failed", user_id=user.id, error=e.message)

    response = RedirectResponse(url=f"{settings.host_url}/settings", status_code=status.HTTP_302_FOUND)
    start_session(response, user, settings)
    registry.register(user.id, user.name)
    metrics.record_auth_event("verify", "success")
    logger.info("Email verified", user_id=user.id)
    return response


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit("5/minute")
async def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    settings: SettingsDep,
    store: StoreDep,
    mailer: MailerDep,
):
    """Mail a reset link. Unknown addresses get the same answer."""
    message = MessageResponse(message="If that email is registered, a reset link has been sent.")

    user = await store.find_by_email(body.email)
    if user is None:
        return message

    token, expires_at = _new_single_use_token(timedelta(minutes=settings.reset_token_minutes))
    await store.set_verification_token(user.id, token, expires_at)

    link = f"{settings.host_url}/reset-password?token={token}"
    await mailer.send_password_reset(user.email, user.name, link)
    logger.info("Password reset requested", user_id=user.id)
    return message


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(body: ResetPasswordRequest, store: StoreDep):
    user = await store.find_by_verification_token(body.token)
    if user is None:
        raise VerificationTokenError("Invalid or expired reset token")
    if user.verification_expired():
        raise VerificationTokenError("Invalid or expired reset token")

    await store.update_fields(
        user.id,
        password=password_engine.hash_password(body.new_password),
        verification_token=None,
        token_expires_at=None,
    )
    metrics.record_auth_event("password_reset", "success")
    logger.info("Password reset", user_id=user.id)
    return MessageResponse(message="Password updated successfully")
