from datetime import datetime, timedelta, timezone

import pytest

from homeservice.core.exceptions import (
    Conflict, InvalidStatus, InvalidTransition, MissingFields, NotFound, NotServiceable,
    PastDateTime, Unverified, ValidationError,
)
from homeservice.models.db_models import Booking, BookingStatus, Urgency
from homeservice.services.booking_service import ALLOWED_TRANSITIONS, BookingService
from tests.helpers import NOW, STAFF_EMAIL, TOMORROW, mark_verified

ALL_STATUSES = list(BookingStatus)


async def _booking_in(service: BookingService, payload: dict, status: BookingStatus) -> Booking:
    booking = await service.create_booking_as_staff(payload)
    if status != BookingStatus.PENDING:
        booking = await service.store.update(booking.id, {"status": status})
    return booking


# --- Creation ---

@pytest.mark.asyncio
async def test_unverified_email_is_rejected(service, booking_payload):
    with pytest.raises(Unverified):
        await service.create_booking(booking_payload())
    assert await service.store.count() == 0

@pytest.mark.asyncio
async def test_verified_booking_is_created_pending(service, verifier, booking_payload, notifier, dispatcher):
    mark_verified(verifier, "asha@example.com")

    booking = await service.create_booking(booking_payload(email=" Asha@Example.com "))

    assert booking.status == BookingStatus.PENDING
    assert booking.verified is True
    assert booking.email == "asha@example.com"
    assert booking.urgency == Urgency.NORMAL
    assert booking.version == 1
    assert not verifier.is_verified("asha@example.com")
    assert await service.store.find_by_id(booking.id) == booking

    await dispatcher.drain()
    recipients = sorted(m.to for m in notifier.sent)
    assert recipients == ["asha@example.com", STAFF_EMAIL]

@pytest.mark.asyncio
async def test_camel_case_form_fields_are_accepted(service, verifier):
    mark_verified(verifier, "ravi@example.com")
    booking = await service.create_booking({
        "fullName": "Ravi K",
        "phoneNumber": "9000000000",
        "email": "ravi@example.com",
        "serviceAddress": "4 Residency Rd",
        "pincode": "560002",
        "serviceType": "Cockroach Control",
        "urgency": "Emergency (Same Day)",
        "date": TOMORROW,
        "time": "",
        "description": "",
    })
    assert booking.name == "Ravi K"
    assert booking.postal_code == "560002"
    assert booking.urgency == Urgency.EMERGENCY
    assert booking.time == ""

@pytest.mark.asyncio
async def test_missing_fields_do_not_consume_verification(service, verifier, booking_payload):
    mark_verified(verifier, "asha@example.com")

    with pytest.raises(MissingFields) as exc:
        await service.create_booking(booking_payload(name="", phone="  "))
    assert exc.value.fields == ["name", "phone"]
    assert verifier.is_verified("asha@example.com")

@pytest.mark.asyncio
async def test_missing_fields_reported_before_verification(service, booking_payload):
    with pytest.raises(MissingFields):
        await service.create_booking(booking_payload(date=""))

@pytest.mark.asyncio
async def test_not_serviceable_keeps_verification(service, verifier, booking_payload):
    mark_verified(verifier, "asha@example.com")

    with pytest.raises(NotServiceable):
        await service.create_booking(booking_payload(postal_code="110001"))
    assert verifier.is_verified("asha@example.com")

@pytest.mark.asyncio
async def test_past_slot_is_rejected(service, verifier, booking_payload):
    mark_verified(verifier, "asha@example.com")
    today = NOW.date().isoformat()

    with pytest.raises(PastDateTime):
        await service.create_booking(booking_payload(date=today, time="09:59"))
    booking = await service.create_booking(booking_payload(date=today, time="10:00"))
    assert booking.date == today

@pytest.mark.asyncio
async def test_malformed_date_is_a_validation_error(service, verifier, booking_payload):
    mark_verified(verifier, "asha@example.com")
    with pytest.raises(ValidationError):
        await service.create_booking(booking_payload(date="11/06/2025"))
    assert verifier.is_verified("asha@example.com")

@pytest.mark.asyncio
async def test_staff_booking_skips_otp_but_not_coverage(service, booking_payload):
    booking = await service.create_booking_as_staff(booking_payload())
    assert booking.verified is False
    assert booking.status == BookingStatus.PENDING

    with pytest.raises(NotServiceable):
        await service.create_booking_as_staff(booking_payload(postal_code="999999"))

@pytest.mark.asyncio
async def test_no_staff_email_means_customer_mail_only(store, verifier, dispatcher, clock, notifier, booking_payload):
    service = BookingService(store, verifier, dispatcher, ["560001"], clock=clock, staff_email="")
    await service.create_booking_as_staff(booking_payload())
    await dispatcher.drain()
    assert [m.to for m in notifier.sent] == ["asha@example.com"]


# --- State machine ---

@pytest.mark.asyncio
@pytest.mark.parametrize("current", ALL_STATUSES)
@pytest.mark.parametrize("target", ALL_STATUSES)
async def test_status_transition_matrix(service, booking_payload, current, target):
    booking = await _booking_in(service, booking_payload(), current)
    allowed = target in ALLOWED_TRANSITIONS[current]

    if allowed:
        updated = await service.set_status(booking.id, target.value)
        assert updated.status == target
        assert updated.version == booking.version + 1
    else:
        with pytest.raises(InvalidTransition):
            await service.set_status(booking.id, target.value)
        assert (await service.get_booking(booking.id)).status == current

def test_transition_table_shape():
    assert ALLOWED_TRANSITIONS[BookingStatus.PENDING] == {
        BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.COMPLETED,
    }
    assert ALLOWED_TRANSITIONS[BookingStatus.CONFIRMED] == {BookingStatus.CANCELLED, BookingStatus.COMPLETED}
    assert ALLOWED_TRANSITIONS[BookingStatus.COMPLETED] == set()
    assert ALLOWED_TRANSITIONS[BookingStatus.CANCELLED] == set()

@pytest.mark.asyncio
async def test_completed_booking_cannot_be_confirmed(service, booking_payload):
    booking = await _booking_in(service, booking_payload(), BookingStatus.COMPLETED)
    with pytest.raises(InvalidTransition):
        await service.set_status(booking.id, "confirmed")

@pytest.mark.asyncio
async def test_status_is_case_insensitive_and_closed(service, booking_payload):
    booking = await service.create_booking_as_staff(booking_payload())
    updated = await service.set_status(booking.id, "Confirmed")
    assert updated.status == BookingStatus.CONFIRMED

    with pytest.raises(InvalidStatus):
        await service.set_status(booking.id, "on-hold")

@pytest.mark.asyncio
async def test_set_status_unknown_booking(service):
    with pytest.raises(NotFound):
        await service.set_status("missing", "confirmed")

@pytest.mark.asyncio
async def test_cancellation_mail_carries_reason(service, booking_payload, notifier, dispatcher):
    booking = await service.create_booking_as_staff(booking_payload())
    await dispatcher.drain()
    notifier.sent.clear()

    await service.set_status(booking.id, "cancelled", reason="Customer travelling")
    await dispatcher.drain()

    assert len(notifier.sent) == 1
    assert notifier.sent[0].to == "asha@example.com"
    assert "cancelled" in notifier.sent[0].subject
    assert "Customer travelling" in notifier.sent[0].html


# --- Reschedule ---

@pytest.mark.asyncio
@pytest.mark.parametrize("current", [BookingStatus.PENDING, BookingStatus.CONFIRMED])
async def test_reschedule_ends_confirmed(service, booking_payload, current):
    booking = await _booking_in(service, booking_payload(), current)
    await service.store.update(booking.id, {"reminder_sent_for": booking.date})

    updated = await service.reschedule(booking.id, "2025-06-20", "15:00", reason="Rain")

    assert updated.status == BookingStatus.CONFIRMED
    assert updated.date == "2025-06-20"
    assert updated.time == "15:00"
    assert updated.reminder_sent_for is None

@pytest.mark.asyncio
@pytest.mark.parametrize("date, time, missing", [
    ("", "15:00", ["date"]),
    ("2025-06-20", None, ["time"]),
    (None, "", ["date", "time"]),
])
async def test_reschedule_requires_date_and_time(service, booking_payload, date, time, missing):
    booking = await service.create_booking_as_staff(booking_payload())
    with pytest.raises(MissingFields) as exc:
        await service.reschedule(booking.id, date, time)
    assert exc.value.fields == missing

@pytest.mark.asyncio
@pytest.mark.parametrize("current", [BookingStatus.COMPLETED, BookingStatus.CANCELLED])
async def test_reschedule_terminal_booking_fails(service, booking_payload, current):
    booking = await _booking_in(service, booking_payload(), current)
    with pytest.raises(InvalidTransition):
        await service.reschedule(booking.id, "2025-06-20", "15:00")

@pytest.mark.asyncio
async def test_reschedule_into_the_past_fails(service, booking_payload):
    booking = await service.create_booking_as_staff(booking_payload())
    with pytest.raises(PastDateTime):
        await service.reschedule(booking.id, "2025-06-09", "15:00")

@pytest.mark.asyncio
async def test_reschedule_unknown_booking(service):
    with pytest.raises(NotFound):
        await service.reschedule("missing", "2025-06-20", "15:00")


# --- Concurrency ---

@pytest.mark.asyncio
async def test_stale_version_update_conflicts(service, booking_payload):
    booking = await service.create_booking_as_staff(booking_payload())
    await service.store.update(booking.id, {"status": BookingStatus.CONFIRMED}, expected_version=booking.version)

    with pytest.raises(Conflict):
        await service.store.update(booking.id, {"status": BookingStatus.CANCELLED}, expected_version=booking.version)

@pytest.mark.asyncio
async def test_updated_at_is_monotonic(service, booking_payload):
    booking = await service.create_booking_as_staff(booking_payload())
    updated = await service.set_status(booking.id, "confirmed")
    assert updated.updated_at >= booking.updated_at
    assert updated.created_at == booking.created_at


# --- Queries ---

def _stored(name, created_minutes_ago, date=TOMORROW, time="10:00", status=BookingStatus.PENDING):
    return Booking(
        name=name, phone="1", email=f"{name.lower()}@example.com", address="x", postal_code="560001",
        service_type="General", date=date, time=time, status=status,
        created_at=datetime(2025, 6, 1, tzinfo=timezone.utc) - timedelta(minutes=created_minutes_ago),
    )

@pytest.mark.asyncio
async def test_list_for_admin_newest_first_with_filters(service, store):
    await store.insert(_stored("Old", 30))
    await store.insert(_stored("Newest", 1, status=BookingStatus.CONFIRMED))
    await store.insert(_stored("Middle", 10))

    assert [b.name for b in await service.list_for_admin()] == ["Newest", "Middle", "Old"]
    assert [b.name for b in await service.list_for_admin(status="pending")] == ["Middle", "Old"]
    assert [b.name for b in await service.list_for_admin(status="all", search="NEW")] == ["Newest"]

    with pytest.raises(InvalidStatus):
        await service.list_for_admin(status="archived")

@pytest.mark.asyncio
async def test_list_public_sorted_by_date_then_time(service, store):
    await store.insert(_stored("C", 1, date="2025-06-12", time="09:00"))
    await store.insert(_stored("B", 2, date="2025-06-11", time="16:00"))
    await store.insert(_stored("A", 3, date="2025-06-11", time="08:30"))

    assert [b.name for b in await service.list_public_sorted()] == ["A", "B", "C"]

@pytest.mark.asyncio
async def test_stats_counts_and_is_idempotent(service, store):
    await store.insert(_stored("A", 1))
    await store.insert(_stored("B", 2, status=BookingStatus.CONFIRMED))
    await store.insert(_stored("C", 3, status=BookingStatus.CONFIRMED))
    await store.insert(_stored("D", 4, status=BookingStatus.CANCELLED))

    first = await service.stats()
    second = await service.stats()

    assert first == second
    assert first.by_status() == {"pending": 1, "confirmed": 2, "completed": 0, "cancelled": 1}
    assert first.total == 4

@pytest.mark.asyncio
async def test_get_booking_not_found(service):
    with pytest.raises(NotFound):
        await service.get_booking("missing")
