"""Outbound mail.

Delivery itself is an external service; the forum only needs the three
messages below. ``LoggingMailer`` is the default and records each message
in the log instead of sending it.
"""

from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass

from forum.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class MailMessage:
    to: str
    subject: str
    body: str


class Mailer(ABC):
    """Mail delivery contract."""

    @abstractmethod
    async def send(self, message: MailMessage) -> None:
        pass

    async def send_verification(self, to: str, username: str, link: str) -> None:
        await self.send(MailMessage(
            to=to,
            subject="Email Verification",
            body=f"Hello {username},\n\nPlease verify your account: {link}\n",
        ))

    async def send_welcome(self, to: str, username: str) -> None:
        await self.send(MailMessage(
            to=to,
            subject="Welcome to the forum",
            body=f"Hello {username},\n\nYour account is verified. Welcome!\n",
        ))

    async def send_password_reset(self, to: str, username: str, link: str) -> None:
        await self.send(MailMessage(
            to=to,
            subject="Reset your Password",
            body=f"Hello {username},\n\nReset your password here: {link}\n",
        ))


class LoggingMailer(Mailer):
    """Writes messages to the log; keeps the latest ``outbox_size`` in ``outbox``."""

    def __init__(self, outbox_size: int = 100):
        self.outbox: deque[MailMessage] = deque(maxlen=outbox_size)

    async def send(self, message: MailMessage) -> None:
        self.outbox.append(message)
        logger.info("Mail queued", to=message.to, subject=message.subject)
