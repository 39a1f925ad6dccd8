import asyncio
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import List, Optional, Set

from homeservice.core.exceptions import NotificationFailure
from homeservice.core.logger import logger


@dataclass(frozen=True)
class OutboundEmail:
    to: str
    subject: str
    html: str
    kind: str = "generic"


class Notifier(ABC):
    @abstractmethod
    def send(self, to: str, subject: str, html_body: str) -> bool:
        """
        Deliver one message. Returns False when delivery is disabled,
        raises NotificationFailure when it was attempted and failed.
        """
        raise NotImplementedError


class SmtpNotifier(Notifier):
    """Sends HTML email over SMTP with STARTTLS (e.g. Gmail with an app password)."""

    def __init__(self, server: str, port: int, username: str, password: str,
                 sender_name: str = "", enabled: bool = True, timeout: float = 15.0):
        self.server = server
        self.port = port
        self.username = username
        self.password = password
        self.sender_name = sender_name
        self.enabled = enabled
        self.timeout = timeout

    def send(self, to: str, subject: str, html_body: str) -> bool:
        if not self.enabled:
            logger.info("ℹ️ Email notifications are disabled in config.")
            return False

        if not to:
            raise NotificationFailure("No recipient address")

        if not self.username or not self.password:
            raise NotificationFailure("SMTP credentials missing in .env")

        msg = MIMEMultipart()
        msg['From'] = f'"{self.sender_name}" <{self.username}>' if self.sender_name else self.username
        msg['To'] = to
        msg['Subject'] = subject
        msg.attach(MIMEText(html_body, 'html'))

        try:
            server = smtplib.SMTP(self.server, self.port, timeout=self.timeout)
            try:
                server.starttls()
                server.login(self.username, self.password)
                server.sendmail(self.username, to, msg.as_string())
            finally:
                server.quit()
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationFailure(f"SMTP delivery to {to} failed: {e}") from e

        logger.info(f"✅ Email sent to {to} with subject: '{subject}'")
        return True


class ConsoleNotifier(Notifier):
    """Logs and records messages instead of sending them. Used when SMTP is not configured."""

    def __init__(self):
        self.sent: List[OutboundEmail] = []

    def send(self, to: str, subject: str, html_body: str) -> bool:
        self.sent.append(OutboundEmail(to=to, subject=subject, html=html_body))
        logger.info(f"📧 [CONSOLE] Email to {to}: '{subject}'")
        return True


class NotificationDispatcher:
    """
    Runs notifier calls in worker threads with a timeout.
    `dispatch` is fire-and-forget: the caller returns before delivery and
    failures only reach the log. `deliver_or_raise` is for callers that must
    surface a failed send (OTP issuance).
    """

    def __init__(self, notifier: Notifier, timeout: float = 15.0):
        self.notifier = notifier
        self.timeout = timeout
        self._tasks: Set[asyncio.Task] = set()

    async def deliver_or_raise(self, message: OutboundEmail) -> bool:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.notifier.send, message.to, message.subject, message.html),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise NotificationFailure(f"Sending '{message.kind}' to {message.to} timed out") from e
        except NotificationFailure:
            raise
        except Exception as e:
            logger.opt(exception=e).error(f"❌ Unexpected notifier error for '{message.kind}' to {message.to}")
            raise NotificationFailure(f"Sending '{message.kind}' to {message.to} failed: {e}") from e

    async def deliver(self, message: OutboundEmail) -> bool:
        try:
            return await self.deliver_or_raise(message)
        except NotificationFailure as e:
            logger.error(f"❌ Notification '{message.kind}' to {message.to} failed: {e}")
        return False

    async def _deliver_all(self, messages: List[OutboundEmail]) -> None:
        for message in messages:
            await self.deliver(message)

    def dispatch(self, *messages: Optional[OutboundEmail]) -> Optional[asyncio.Task]:
        pending = [m for m in messages if m is not None]
        if not pending:
            return None
        task = asyncio.get_running_loop().create_task(self._deliver_all(pending))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every in-flight dispatch (shutdown, tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
