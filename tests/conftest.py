import pytest

from homeservice.services.booking_service import BookingService
from homeservice.services.notification_service import ConsoleNotifier, NotificationDispatcher
from homeservice.services.store import MemoryBookingStore
from homeservice.services.verification_service import MemoryVerificationStore, OtpVerifier
from tests.helpers import NOW, SERVICEABLE, STAFF_EMAIL, TOMORROW, FixedClock


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def notifier():
    return ConsoleNotifier()


@pytest.fixture
def dispatcher(notifier):
    return NotificationDispatcher(notifier, timeout=5)


@pytest.fixture
def verifier(dispatcher, clock):
    return OtpVerifier(MemoryVerificationStore(), dispatcher, clock=clock, ttl_minutes=5, company_name="Test Co")


@pytest.fixture
def store():
    return MemoryBookingStore()


@pytest.fixture
def service(store, verifier, dispatcher, clock):
    return BookingService(
        store=store,
        verifier=verifier,
        dispatcher=dispatcher,
        serviceable_codes=SERVICEABLE,
        clock=clock,
        staff_email=STAFF_EMAIL,
        company_name="Test Co",
    )


@pytest.fixture
def booking_payload():
    def _make(**overrides):
        data = {
            "name": "Asha Rao",
            "phone": "9876543210",
            "email": "asha@example.com",
            "address": "12 MG Road",
            "postal_code": "560001",
            "service_type": "Termite Control",
            "urgency": "Normal (3-5 days)",
            "date": TOMORROW,
            "time": "11:30",
            "instructions": "Ring twice",
        }
        data.update(overrides)
        return data
    return _make
