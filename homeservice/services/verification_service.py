import secrets
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional, Set

from homeservice.core.clock import Clock, system_clock
from homeservice.core.exceptions import NotificationFailure, OtpExpired, OtpMismatch, OtpNotFound, ValidationError
from homeservice.core.logger import logger
from homeservice.services import email_templates
from homeservice.services.notification_service import NotificationDispatcher, OutboundEmail
from homeservice.services.validators import normalize_email

OTP_MIN = 100000
OTP_MAX = 999999


@dataclass(frozen=True)
class VerificationRecord:
    code: str
    expires_at: datetime


class VerificationStore(ABC):
    """Pending codes and the verified set, keyed by normalised email."""

    @abstractmethod
    def put(self, email: str, record: VerificationRecord) -> None:
        raise NotImplementedError

    @abstractmethod
    def get(self, email: str) -> Optional[VerificationRecord]:
        raise NotImplementedError

    @abstractmethod
    def remove_if_current(self, email: str, record: VerificationRecord) -> bool:
        """Delete the pending record only if it is still `record`. Returns True if deleted."""
        raise NotImplementedError

    @abstractmethod
    def add_verified(self, email: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def pop_verified(self, email: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def is_verified(self, email: str) -> bool:
        raise NotImplementedError


class MemoryVerificationStore(VerificationStore):
    def __init__(self) -> None:
        self._pending: Dict[str, VerificationRecord] = {}
        self._verified: Set[str] = set()
        self._lock = threading.Lock()

    def put(self, email: str, record: VerificationRecord) -> None:
        with self._lock:
            self._pending[email] = record

    def get(self, email: str) -> Optional[VerificationRecord]:
        with self._lock:
            return self._pending.get(email)

    def remove_if_current(self, email: str, record: VerificationRecord) -> bool:
        with self._lock:
            if self._pending.get(email) is record:
                del self._pending[email]
                return True
            return False

    def add_verified(self, email: str) -> None:
        with self._lock:
            self._verified.add(email)

    def pop_verified(self, email: str) -> bool:
        with self._lock:
            if email in self._verified:
                self._verified.discard(email)
                return True
            return False

    def is_verified(self, email: str) -> bool:
        with self._lock:
            return email in self._verified


def generate_otp() -> str:
    """Uniform 6-digit code in [100000, 999999] from a CSPRNG."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


class OtpVerifier:
    def __init__(self, store: VerificationStore, dispatcher: NotificationDispatcher,
                 clock: Clock = system_clock, ttl_minutes: int = 5,
                 company_name: str = email_templates.DEFAULT_COMPANY):
        self.store = store
        self.dispatcher = dispatcher
        self.clock = clock
        self.ttl = timedelta(minutes=ttl_minutes)
        self.company_name = company_name

    async def issue(self, email: str) -> datetime:
        """
        Generate a code, store it (replacing any previous one) and mail it.
        Returns the expiry instant. If the mail cannot be sent the code is
        withdrawn and NotificationFailure propagates.
        """
        email = normalize_email(email)
        code = generate_otp()
        record = VerificationRecord(code=code, expires_at=self.clock() + self.ttl)
        self.store.put(email, record)
        logger.info(f"📨 OTP issued for {email} (expires {record.expires_at.isoformat()})")

        subject, body = email_templates.otp_email(code, int(self.ttl.total_seconds() // 60), self.company_name)
        try:
            await self.dispatcher.deliver_or_raise(OutboundEmail(to=email, subject=subject, html=body, kind="otp"))
        except NotificationFailure:
            self.store.remove_if_current(email, record)
            logger.error(f"❌ OTP delivery to {email} failed, code withdrawn")
            raise
        return record.expires_at

    def check(self, email: str, code: str) -> None:
        """
        Verify a submitted code. On success the pending code is consumed and
        the email joins the verified set.

        Raises:
            OtpNotFound: no pending code for this email
            OtpExpired: the code expired (and has been removed)
            OtpMismatch: wrong code; the pending code and its expiry are unchanged
        """
        email = normalize_email(email)
        record = self.store.get(email)
        if record is None:
            raise OtpNotFound("No OTP found. Please request again.")

        if self.clock() > record.expires_at:
            self.store.remove_if_current(email, record)
            logger.info(f"⏰ OTP expired for {email}")
            raise OtpExpired("OTP expired. Please request again.")

        submitted = (code or "").strip()
        if not secrets.compare_digest(submitted.encode(), record.code.encode()):
            logger.warning(f"❌ Invalid OTP submitted for {email}")
            raise OtpMismatch("Invalid OTP.")

        if not self.store.remove_if_current(email, record):
            # Consumed or replaced by a concurrent request
            raise OtpNotFound("No OTP found. Please request again.")

        self.store.add_verified(email)
        logger.info(f"🎉 Email verified: {email}")

    def consume_verification(self, email: str) -> bool:
        """At-most-once use of a successful check. True only the first time."""
        try:
            email = normalize_email(email)
        except ValidationError:
            return False
        return self.store.pop_verified(email)

    def is_verified(self, email: str) -> bool:
        return self.store.is_verified(email.strip().lower())
