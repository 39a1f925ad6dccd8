from functools import lru_cache
from typing import Any, Dict, Optional

from homeservice.core.clock import system_clock
from homeservice.core.config import settings
from homeservice.core.config_loader import load_company_config, get_serviceable_postal_codes
from homeservice.core.logger import logger
from homeservice.services import email_templates
from homeservice.services.booking_service import BookingService
from homeservice.services.notification_service import (
    ConsoleNotifier, NotificationDispatcher, Notifier, SmtpNotifier,
)
from homeservice.services.scheduler import ReminderScheduler
from homeservice.services.store import BookingStore, MemoryBookingStore
from homeservice.services.verification_service import MemoryVerificationStore, OtpVerifier


_store: Optional[BookingStore] = None
_dispatcher: Optional[NotificationDispatcher] = None
_verifier: Optional[OtpVerifier] = None
_booking_service: Optional[BookingService] = None
_reminder_scheduler: Optional[ReminderScheduler] = None


@lru_cache
def get_company_config() -> Dict[str, Any]:
    return load_company_config()


def get_company_name() -> str:
    return get_company_config().get("company_name", email_templates.DEFAULT_COMPANY)


def resolve_staff_email() -> str:
    """
    Address for staff copies, reminders and the digest.
    STAFF_EMAIL, else the admin login address, else the SMTP sender account.
    """
    for candidate in (settings.STAFF_EMAIL, settings.ADMIN_EMAIL, settings.SMTP_USERNAME):
        if candidate and candidate.strip():
            return candidate.strip()
    logger.warning("⚠️ STAFF_EMAIL, ADMIN_EMAIL and SMTP_USERNAME are all empty: staff mail and the daily digest are disabled")
    return ""


def get_store() -> BookingStore:
    global _store
    if _store is None:
        if settings.STORE_PROVIDER.lower() == "supabase":
            from homeservice.services.db_service import SupabaseBookingStore
            _store = SupabaseBookingStore()
            logger.info("🗄️ Using Supabase booking store")
        else:
            _store = MemoryBookingStore()
            logger.info("🗄️ Using in-memory booking store")
    return _store


def get_notifier() -> Notifier:
    if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
        return SmtpNotifier(
            server=settings.SMTP_SERVER,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            sender_name=get_company_name(),
            enabled=settings.EMAIL_ENABLED,
            timeout=settings.NOTIFY_TIMEOUT_SECONDS,
        )
    logger.info("📧 SMTP credentials missing, emails go to the console")
    return ConsoleNotifier()


def get_dispatcher() -> NotificationDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher(get_notifier(), timeout=settings.NOTIFY_TIMEOUT_SECONDS)
    return _dispatcher


def get_verifier() -> OtpVerifier:
    global _verifier
    if _verifier is None:
        _verifier = OtpVerifier(
            store=MemoryVerificationStore(),
            dispatcher=get_dispatcher(),
            clock=system_clock,
            ttl_minutes=settings.OTP_TTL_MINUTES,
            company_name=get_company_name(),
        )
    return _verifier


def get_booking_service() -> BookingService:
    global _booking_service
    if _booking_service is None:
        _booking_service = BookingService(
            store=get_store(),
            verifier=get_verifier(),
            dispatcher=get_dispatcher(),
            serviceable_codes=get_serviceable_postal_codes(get_company_config()),
            clock=system_clock,
            staff_email=resolve_staff_email(),
            company_name=get_company_name(),
        )
    return _booking_service


def get_reminder_scheduler() -> ReminderScheduler:
    global _reminder_scheduler
    if _reminder_scheduler is None:
        _reminder_scheduler = ReminderScheduler(get_booking_service())
    return _reminder_scheduler


def override_booking_service(service: BookingService) -> None:
    """Install a pre-built service (tests, scripts). Dependent singletons follow it."""
    global _store, _dispatcher, _verifier, _booking_service, _reminder_scheduler
    _store = service.store
    _dispatcher = service.dispatcher
    _verifier = service.verifier
    _booking_service = service
    _reminder_scheduler = None


def reset_dependencies() -> None:
    global _store, _dispatcher, _verifier, _booking_service, _reminder_scheduler
    _store = None
    _dispatcher = None
    _verifier = None
    _booking_service = None
    _reminder_scheduler = None
    get_company_config.cache_clear()
