from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from homeservice.core.exceptions import NotificationFailure
from homeservice.services.notification_service import Notifier
from homeservice.services.verification_service import OtpVerifier

TZ = ZoneInfo("Asia/Kolkata")
NOW = datetime(2025, 6, 10, 10, 0, tzinfo=TZ)
TOMORROW = (NOW.date() + timedelta(days=1)).isoformat()
STAFF_EMAIL = "staff@example.com"
SERVICEABLE = ["560001", "560002", "560003", "400001", "400002"]


class FixedClock:
    """Manually advanced clock for expiry and past-slot checks."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FailingNotifier(Notifier):
    """Fails for the given recipients (all of them when none given), records the rest."""

    def __init__(self, fail_for=None):
        self.fail_for = set(fail_for or [])
        self.sent = []

    def send(self, to, subject, html_body):
        if not self.fail_for or to in self.fail_for:
            raise NotificationFailure(f"SMTP down for {to}")
        self.sent.append((to, subject))
        return True


def mark_verified(verifier: OtpVerifier, email: str) -> None:
    verifier.store.add_verified(email.strip().lower())
