"""Tests for session token creation and verification."""

import uuid
from datetime import datetime, timedelta, timezone

import jwt as pyjwt
import pytest

from forum.auth.jwt import create_access_token, decode_token, parse_subject
from forum.core.errors import BadSignature, InvalidToken, MalformedToken, TokenExpired

SECRET = "unit-test-secret-0123456789abcdef0123456789abcdef"


class TestTokenRoundTrip:
    def test_decode_returns_subject(self):
        user_id = str(uuid.uuid4())
        token = create_access_token(user_id, SECRET, 60)
        assert decode_token(token, SECRET) == user_id

    def test_claims_are_sub_iat_exp(self):
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        token = create_access_token("abc", SECRET, 30, now=now)
        payload = pyjwt.decode(token, options={"verify_signature": False})
        assert set(payload) == {"sub", "iat", "exp"}
        assert payload["exp"] - payload["iat"] == 30 * 60


class TestTokenFailures:
    """Each failure mode maps to its own error."""

    def test_expired_token(self):
        token = create_access_token(str(uuid.uuid4()), SECRET, -1)
        with pytest.raises(TokenExpired):
            decode_token(token, SECRET)

    def test_expired_token_via_issue_time(self):
        issued = datetime.now(timezone.utc) - timedelta(hours=2)
        token = create_access_token(str(uuid.uuid4()), SECRET, 60, now=issued)
        with pytest.raises(TokenExpired):
            decode_token(token, SECRET)

    def test_wrong_secret(self):
        token = create_access_token(str(uuid.uuid4()), SECRET, 60)
        with pytest.raises(BadSignature):
            decode_token(token, "another-secret-0123456789abcdef0123456789abcdef")

    def test_garbage_token(self):
        with pytest.raises(MalformedToken):
            decode_token("not-a-jwt", SECRET)

    def test_missing_claims(self):
        token = pyjwt.encode({"sub": "abc"}, SECRET, algorithm="HS256")
        with pytest.raises(MalformedToken):
            decode_token(token, SECRET)

    def test_token_errors_are_invalid_token(self):
        """Gates can catch every token problem as InvalidToken."""
        assert issubclass(TokenExpired, InvalidToken)
        assert issubclass(BadSignature, InvalidToken)
        assert issubclass(MalformedToken, InvalidToken)


class TestParseSubject:
    def test_uuid_subject_normalized(self):
        value = uuid.uuid4()
        assert parse_subject(str(value).upper()) == str(value)

    def test_non_uuid_subject(self):
        with pytest.raises(InvalidToken):
            parse_subject("not-a-uuid")
