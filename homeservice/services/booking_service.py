from typing import Any, Dict, Iterable, List, Optional, Union

import pydantic

from homeservice.core.clock import Clock, system_clock
from homeservice.core.exceptions import (
    InvalidStatus, InvalidTransition, MissingFields, NotFound, NotServiceable,
    PastDateTime, Unverified, ValidationError,
)
from homeservice.core.logger import logger
from homeservice.models.db_models import Booking, BookingCreate, BookingStats, BookingStatus
from homeservice.services import email_templates
from homeservice.services.notification_service import NotificationDispatcher, OutboundEmail
from homeservice.services.store import BookingStore
from homeservice.services.validators import (
    is_past, is_serviceable, normalize_date, normalize_email, normalize_time,
    normalize_urgency, require_fields, sanitize,
)
from homeservice.services.verification_service import OtpVerifier

# Reschedule is handled separately (pending/confirmed -> confirmed with a new slot)
ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.COMPLETED},
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED, BookingStatus.COMPLETED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}

RESCHEDULABLE = {BookingStatus.PENDING, BookingStatus.CONFIRMED}

BookingInput = Union[BookingCreate, Dict[str, Any]]


def parse_status(value: Any) -> BookingStatus:
    """Map a status string (any casing) to the enum. Raises InvalidStatus otherwise."""
    if isinstance(value, BookingStatus):
        return value
    try:
        return BookingStatus(str(value or "").strip().lower())
    except ValueError:
        raise InvalidStatus(f"Invalid status: {value}")


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


class BookingService:
    """
    Booking lifecycle engine.
    Operations return once the record is stored; e-mails go out through the
    dispatcher in the background and their outcome is only logged.
    """

    def __init__(self, store: BookingStore, verifier: OtpVerifier, dispatcher: NotificationDispatcher,
                 serviceable_codes: Iterable[str], clock: Clock = system_clock,
                 staff_email: str = "", company_name: str = email_templates.DEFAULT_COMPANY):
        self.store = store
        self.verifier = verifier
        self.dispatcher = dispatcher
        self.serviceable_codes = [str(c).strip() for c in serviceable_codes]
        self.clock = clock
        self.staff_email = (staff_email or "").strip()
        self.company_name = company_name

    # --- Creation ---

    def _prepare(self, payload: BookingInput) -> Dict[str, Any]:
        if isinstance(payload, dict):
            try:
                payload = BookingCreate.model_validate(payload)
            except pydantic.ValidationError as e:
                bad = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
                raise ValidationError(f"Invalid booking fields: {', '.join(bad)}")

        data = {k: sanitize(v) for k, v in payload.model_dump().items()}
        require_fields(data)

        data["email"] = normalize_email(data["email"])
        data["urgency"] = normalize_urgency(data.get("urgency"))
        data["date"] = normalize_date(data["date"])
        data["time"] = normalize_time(data.get("time"))
        data["instructions"] = data.get("instructions") or ""
        return data

    def _check_slot(self, data: Dict[str, Any]) -> None:
        if not is_serviceable(data["postal_code"], self.serviceable_codes):
            logger.info(f"🚫 Postal code {data['postal_code']} not serviceable")
            raise NotServiceable("Service not available in this area.")

        if is_past(data["date"], data["time"], self.clock()):
            raise PastDateTime("Cannot book for a past date or time.")

    def _creation_messages(self, booking: Booking) -> List[Optional[OutboundEmail]]:
        subject, body = email_templates.booking_received_customer(booking, self.company_name)
        messages = [OutboundEmail(to=booking.email, subject=subject, html=body, kind="booking_customer")]
        messages.append(self._staff_message(email_templates.booking_received_staff(booking, self.company_name),
                                            "booking_staff"))
        return messages

    def _staff_message(self, rendered, kind: str) -> Optional[OutboundEmail]:
        if not self.staff_email:
            return None
        subject, body = rendered
        return OutboundEmail(to=self.staff_email, subject=subject, html=body, kind=kind)

    async def create_booking(self, payload: BookingInput) -> Booking:
        """
        Public, OTP-gated creation.

        Raises (in check order):
            MissingFields / ValidationError: incomplete or malformed input
            Unverified: the email has no unconsumed OTP verification
            NotServiceable: postal code outside coverage
            PastDateTime: slot already elapsed
        """
        data = self._prepare(payload)

        if not self.verifier.is_verified(data["email"]):
            raise Unverified("Email not verified. Please verify OTP first.")

        self._check_slot(data)

        # Consumed last so a correctable error does not cost the customer a new OTP
        if not self.verifier.consume_verification(data["email"]):
            raise Unverified("Email not verified. Please verify OTP first.")

        booking = Booking(**data, status=BookingStatus.PENDING, verified=True)
        stored = await self.store.insert(booking)
        logger.info(f"✅ Booking {stored.id} created for {stored.email} on {stored.date} {stored.time}".rstrip())

        self.dispatcher.dispatch(*self._creation_messages(stored))
        return stored

    async def create_booking_as_staff(self, payload: BookingInput) -> Booking:
        """Staff entry (phone bookings). No OTP gate; coverage and past checks still apply."""
        data = self._prepare(payload)
        self._check_slot(data)

        booking = Booking(**data, status=BookingStatus.PENDING, verified=False)
        stored = await self.store.insert(booking)
        logger.info(f"📝 Booking {stored.id} created by staff for {stored.email}")

        self.dispatcher.dispatch(*self._creation_messages(stored))
        return stored

    # --- Transitions ---

    async def get_booking(self, booking_id: str) -> Booking:
        booking = await self.store.find_by_id(booking_id)
        if booking is None:
            raise NotFound("Booking not found")
        return booking

    async def set_status(self, booking_id: str, status: Any, reason: Optional[str] = None) -> Booking:
        target = parse_status(status)
        booking = await self.get_booking(booking_id)

        if not can_transition(booking.status, target):
            raise InvalidTransition(
                f"Cannot change status from {booking.status.value} to {target.value}"
            )

        updated = await self.store.update(booking_id, {"status": target}, expected_version=booking.version)
        if updated is None:
            raise NotFound("Booking not found")
        logger.info(f"🔄 Booking {booking_id}: {booking.status.value} -> {target.value}")

        if target != BookingStatus.PENDING:
            subject, body = email_templates.status_update(updated, target.value, sanitize(reason) or None,
                                                          self.company_name)
            self.dispatcher.dispatch(OutboundEmail(to=updated.email, subject=subject, html=body,
                                                   kind=f"status_{target.value}"))
        return updated

    async def reschedule(self, booking_id: str, date: Optional[str], time: Optional[str],
                         reason: Optional[str] = None) -> Booking:
        """
        Move a pending or confirmed booking to a new slot. The booking ends up
        confirmed and its reminder marker is cleared so the new day gets a reminder.
        """
        missing = [name for name, value in (("date", date), ("time", time)) if not sanitize(value)]
        if missing:
            raise MissingFields(missing)

        new_date = normalize_date(date)
        new_time = normalize_time(time)

        booking = await self.get_booking(booking_id)
        if booking.status not in RESCHEDULABLE:
            raise InvalidTransition(f"Cannot reschedule a {booking.status.value} booking")

        if is_past(new_date, new_time, self.clock()):
            raise PastDateTime("Cannot reschedule to a past date or time.")

        fields = {
            "date": new_date,
            "time": new_time,
            "status": BookingStatus.CONFIRMED,
            "reminder_sent_for": None,
        }
        updated = await self.store.update(booking_id, fields, expected_version=booking.version)
        if updated is None:
            raise NotFound("Booking not found")
        logger.info(f"📅 Booking {booking_id} rescheduled to {new_date} {new_time}")

        subject, body = email_templates.rescheduled(updated, sanitize(reason) or None, self.company_name)
        self.dispatcher.dispatch(OutboundEmail(to=updated.email, subject=subject, html=body, kind="rescheduled"))
        return updated

    # --- Queries ---

    async def list_for_admin(self, status: Optional[str] = None, search: Optional[str] = None) -> List[Booking]:
        """Newest first, optionally filtered by status and a case-insensitive name search."""
        status = sanitize(status)
        filters = {"status": parse_status(status)} if status and status.lower() != "all" else None
        bookings = await self.store.find(filters, sort=[("created_at", True)])

        term = (sanitize(search) or "").lower()
        if term:
            bookings = [b for b in bookings if term in b.name.lower()]
        return bookings

    async def list_public_sorted(self) -> List[Booking]:
        return await self.store.find(sort=[("date", False), ("time", False)])

    async def stats(self) -> BookingStats:
        counts = {status.value: await self.store.count({"status": status}) for status in BookingStatus}
        return BookingStats(**counts, total=await self.store.count())
