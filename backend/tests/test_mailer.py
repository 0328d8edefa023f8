"""Tests for the logging mailer."""

import pytest

from forum.core.mailer import LoggingMailer


@pytest.mark.asyncio
async def test_outbox_keeps_only_latest_messages():
    mailer = LoggingMailer(outbox_size=2)

    for name in ("ann", "ben", "cal"):
        await mailer.send_welcome(f"{name}@example.com", name)

    assert [m.to for m in mailer.outbox] == ["ben@example.com", "cal@example.com"]


@pytest.mark.asyncio
async def test_password_reset_message_carries_link():
    mailer = LoggingMailer()

    await mailer.send_password_reset("ann@example.com", "ann", "http://forum.test/reset-password?token=t")

    [message] = mailer.outbox
    assert message.subject == "Reset your Password"
    assert "http://forum.test/reset-password?token=t" in message.body
