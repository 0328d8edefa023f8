"""End-to-end tests for the account authentication routes."""

import re
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from forum.auth.jwt import decode_token
from forum.core.errors import MailDeliveryError
from forum.core.mailer import Mailer
from forum.core.slowapi_limiter import limiter

from conftest import TEST_PASSWORD, create_user

REGISTRATION = {
    "name": "alice",
    "email": "alice@example.com",
    "password": "s3cret-pw",
    "password_confirm": "s3cret-pw",
}


def token_from_mail(body: str) -> str:
    return re.search(r"token=([\w-]+)", body).group(1)


class FailingMailer(Mailer):
    async def send(self, message):
        raise MailDeliveryError()


class TestRegistration:
    @pytest.mark.asyncio
    async def test_register_verify_login_scenario(self, client, mailer, store, settings):
        """Register, verify by mailed link, then log in with the password."""
        response = await client.post("/auth/register", json=REGISTRATION)
        assert response.status_code == 201
        assert response.json()["status"] == "success"

        # Not verified yet
        response = await client.post("/auth/login", json={"username": "alice", "password": "s3cret-pw"})
        assert response.status_code == 403

        [message] = mailer.outbox
        assert message.to == "alice@example.com"
        assert "http://forum.test/auth/verify?token=" in message.body

        response = await client.get("/auth/verify", params={"token": token_from_mail(message.body)})
        assert response.status_code == 302
        assert response.headers["location"] == "http://forum.test/settings"
        assert "token" in response.cookies
        assert mailer.outbox[-1].subject == "Welcome to the forum"

        client.cookies.clear()
        response = await client.post("/auth/login", json={"username": "alice@example.com", "password": "s3cret-pw"})
        assert response.status_code == 200
        body = response.json()
        assert body["role"] == "User"
        alice = await store.find_by_name_or_email("alice")
        assert decode_token(response.cookies["token"], settings.jwt_secret_key) == alice.id

        response = await client.get("/users/me")
        assert response.status_code == 200
        assert response.json()["user"]["name"] == "alice"

    @pytest.mark.asyncio
    async def test_register_duplicate(self, client, test_user):
        response = await client.post("/auth/register", json=REGISTRATION)
        assert response.status_code == 409
        assert response.json() == {"status": "fail", "message": "Name or email already registered"}

    @pytest.mark.asyncio
    async def test_register_password_mismatch(self, client):
        response = await client.post("/auth/register", json={**REGISTRATION, "password_confirm": "other-pw"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_register_password_too_long(self, client):
        long_password = "p" * 65
        response = await client.post(
            "/auth/register",
            json={**REGISTRATION, "password": long_password, "password_confirm": long_password},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_register_rejects_at_sign_in_name(self, client, store, test_user):
        response = await client.post(
            "/auth/register",
            json={**REGISTRATION, "name": "alice@example.com", "email": "other@example.com"},
        )
        assert response.status_code == 422
        assert await store.find_by_email("other@example.com") is None

    @pytest.mark.asyncio
    async def test_register_survives_mail_failure(self, make_app, store):
        app = make_app(mailer=FailingMailer())
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://forum.test") as client:
            response = await client.post("/auth/register", json=REGISTRATION)
        assert response.status_code == 201
        assert await store.find_by_email("alice@example.com") is not None

    @pytest.mark.asyncio
    async def test_register_without_verification(self, make_app, settings, mailer):
        app = make_app(settings.model_copy(update={"email_verification": False}))
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://forum.test") as client:
            await client.post("/auth/register", json=REGISTRATION)
            response = await client.post("/auth/login", json={"username": "alice", "password": "s3cret-pw"})
        assert response.status_code == 200
        assert len(mailer.outbox) == 0


class TestVerification:
    @pytest.mark.asyncio
    async def test_unknown_token(self, client):
        response = await client.get("/auth/verify", params={"token": "nope"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_expired_token(self, client, store):
        user = await create_user(store, verified=False)
        await store.set_verification_token(user.id, "old-token", datetime.now(timezone.utc) - timedelta(minutes=1))

        response = await client.get("/auth/verify", params={"token": "old-token"})

        assert response.status_code == 400
        assert response.json()["message"] == "Verification token expired"

    @pytest.mark.asyncio
    async def test_token_is_single_use(self, client, store):
        user = await create_user(store, verified=False)
        await store.set_verification_token(user.id, "once", datetime.now(timezone.utc) + timedelta(hours=1))

        assert (await client.get("/auth/verify", params={"token": "once"})).status_code == 302
        assert (await client.get("/auth/verify", params={"token": "once"})).status_code == 400

    @pytest.mark.asyncio
    async def test_verify_registers_session(self, app, client, store):
        user = await create_user(store, verified=False)
        await store.set_verification_token(user.id, "tok", datetime.now(timezone.utc) + timedelta(hours=1))

        await client.get("/auth/verify", params={"token": "tok"})

        assert user.id in app.state.session_registry


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_sets_cookie_and_registers(self, app, client, test_user, settings):
        response = await client.post("/auth/login", json={"username": "alice", "password": TEST_PASSWORD})

        assert response.status_code == 200
        set_cookie = response.headers["set-cookie"]
        assert set_cookie.startswith("token=")
        assert "HttpOnly" in set_cookie
        assert f"Max-Age={settings.jwt_maxage * 60}" in set_cookie
        assert "SameSite=lax" in set_cookie
        assert test_user.id in app.state.session_registry

        # The token only travels in the HttpOnly cookie
        assert "token" not in response.json()
        assert response.cookies["token"] not in response.text

    @pytest.mark.asyncio
    async def test_email_login_ignores_name_equal_to_email(self, client, store, test_user, settings):
        """An account named like another account's email cannot shadow it."""
        alice_id = test_user.id
        await create_user(store, name="alice@example.com", email="mallory@example.com", password="mallory-pw")

        response = await client.post("/auth/login", json={"username": "alice@example.com", "password": TEST_PASSWORD})

        assert response.status_code == 200
        assert decode_token(response.cookies["token"], settings.jwt_secret_key) == alice_id

    @pytest.mark.asyncio
    async def test_wrong_password(self, client, test_user):
        response = await client.post("/auth/login", json={"username": "alice", "password": "wrong"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    @pytest.mark.asyncio
    async def test_unknown_user_same_answer(self, client):
        response = await client.post("/auth/login", json={"username": "nobody", "password": "whatever"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    @pytest.mark.asyncio
    async def test_oauth_only_account_cannot_log_in(self, client, store):
        await create_user(store, name="oauthy", email="o@example.com", password=None)
        response = await client.post("/auth/login", json={"username": "oauthy", "password": "anything"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_banned_user_rejected(self, app, client, store, test_user):
        await store.update_fields(test_user.id, banned_until=datetime.now(timezone.utc) + timedelta(days=1))

        response = await client.post("/auth/login", json={"username": "alice", "password": TEST_PASSWORD})

        assert response.status_code == 403
        assert response.json()["message"] == "You have been banned"
        assert len(app.state.session_registry) == 0

    @pytest.mark.asyncio
    async def test_expired_ban_allows_login(self, client, store, test_user):
        await store.update_fields(test_user.id, banned_until=datetime.now(timezone.utc) - timedelta(seconds=1))
        response = await client.post("/auth/login", json={"username": "alice", "password": TEST_PASSWORD})
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_login_rate_limited(self, make_app, settings, test_user):
        limiter.reset()
        app = make_app(settings.model_copy(update={"rate_limit_enabled": True}))
        try:
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://forum.test") as client:
                statuses = [
                    (await client.post("/auth/login", json={"username": "alice", "password": "wrong"})).status_code
                    for _ in range(11)
                ]
        finally:
            limiter.reset()
            limiter.enabled = False
        assert statuses[:10] == [401] * 10
        assert statuses[10] == 429


class TestLogout:
    @pytest.mark.asyncio
    async def test_logout_clears_cookie(self, client, test_user):
        await client.post("/auth/login", json={"username": "alice", "password": TEST_PASSWORD})

        response = await client.post("/auth/logout")

        assert response.status_code == 200
        assert 'token=""' in response.headers["set-cookie"]
        assert (await client.get("/users/me")).status_code == 401

    @pytest.mark.asyncio
    async def test_logout_requires_auth(self, client):
        response = await client.post("/auth/logout")
        assert response.status_code == 401


class TestPasswordReset:
    @pytest.mark.asyncio
    async def test_forgot_and_reset(self, client, mailer, test_user):
        response = await client.post("/auth/forgot-password", json={"email": "alice@example.com"})
        assert response.status_code == 200

        [message] = mailer.outbox
        assert "http://forum.test/reset-password?token=" in message.body
        token = token_from_mail(message.body)

        response = await client.post(
            "/auth/reset-password",
            json={"token": token, "new_password": "brand-new-pw", "new_password_confirm": "brand-new-pw"},
        )
        assert response.status_code == 200

        old = await client.post("/auth/login", json={"username": "alice", "password": TEST_PASSWORD})
        new = await client.post("/auth/login", json={"username": "alice", "password": "brand-new-pw"})
        assert old.status_code == 401
        assert new.status_code == 200

        # The reset token is consumed
        again = await client.post(
            "/auth/reset-password",
            json={"token": token, "new_password": "third-pw-1", "new_password_confirm": "third-pw-1"},
        )
        assert again.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_email_answers_success_without_mail(self, client, mailer):
        response = await client.post("/auth/forgot-password", json={"email": "ghost@example.com"})
        assert response.status_code == 200
        assert len(mailer.outbox) == 0

    @pytest.mark.asyncio
    async def test_mail_failure_is_server_error(self, make_app, test_user):
        app = make_app(mailer=FailingMailer())
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://forum.test") as client:
            response = await client.post("/auth/forgot-password", json={"email": "alice@example.com"})
        assert response.status_code == 500
        assert response.json()["message"] == "Failed to send email"

    @pytest.mark.asyncio
    async def test_expired_reset_token(self, client, store, test_user):
        await store.set_verification_token(test_user.id, "stale", datetime.now(timezone.utc) - timedelta(seconds=1))
        response = await client.post(
            "/auth/reset-password",
            json={"token": "stale", "new_password": "brand-new-pw", "new_password_confirm": "brand-new-pw"},
        )
        assert response.status_code == 400


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.json() == {"status": "healthy"}
