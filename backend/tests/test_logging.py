"""Tests for structured logging and error rendering."""

import json
import logging

import pytest

from forum.core.errors import Banned, DatabaseError, ForumError, NoSuchUser, forum_error_handler
from forum.core.logging import StructuredFormatter, mask_sensitive


class TestMasking:
    def test_secrets_are_redacted(self):
        masked = mask_sensitive({
            "password": "hunter2",
            "pkce_verifier": "v",
            "csrf_token": "c",
            "user_id": "u1",
            "status_code": 200,
        })
        assert masked["password"] == "[REDACTED]"
        assert masked["pkce_verifier"] == "[REDACTED]"
        assert masked["csrf_token"] == "[REDACTED]"
        assert masked["user_id"] == "u1"
        assert masked["status_code"] == 200

    def test_nested_dicts(self):
        assert mask_sensitive({"body": {"secret": "x"}}) == {"body": {"secret": "[REDACTED]"}}

    def test_json_formatter_masks_extra_fields(self):
        record = logging.LogRecord("forum.test", logging.INFO, __file__, 1, "Login", None, None)
        record.extra_fields = {"user_id": "u1", "token": "abc"}
        entry = json.loads(StructuredFormatter().format(record))
        assert entry["message"] == "Login"
        assert entry["user_id"] == "u1"
        assert entry["token"] == "[REDACTED]"


class TestErrors:
    def test_status_codes(self):
        assert NoSuchUser().status_code == 401
        assert Banned().status_code == 403
        assert DatabaseError().status_code == 500
        assert ForumError("custom").message == "custom"

    @pytest.mark.asyncio
    async def test_handler_renders_fail_envelope(self):
        class FakeRequest:
            class url:
                path = "/x"

        response = await forum_error_handler(FakeRequest(), DatabaseError())
        assert response.status_code == 500
        assert json.loads(response.body) == {"status": "fail", "message": "Database error"}
