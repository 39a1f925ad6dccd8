"""Shared validation helpers for booking input, serviceability and temporal guards."""

import re
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, Optional

from homeservice.core.exceptions import MissingFields, ValidationError
from homeservice.models.db_models import Urgency

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

REQUIRED_BOOKING_FIELDS = ("name", "phone", "email", "address", "postal_code", "service_type", "date")


def sanitize(value: Any) -> Any:
    """Trim strings, pass everything else through untouched."""
    return value.strip() if isinstance(value, str) else value


def require_fields(data: Dict[str, Any], fields: Iterable[str] = REQUIRED_BOOKING_FIELDS) -> None:
    """
    Raises MissingFields naming every field that is absent or blank after trimming.
    """
    missing = [field for field in fields if not sanitize(data.get(field))]
    if missing:
        raise MissingFields(missing)


def normalize_email(email: Optional[str]) -> str:
    """
    Lower-case and trim an email address.

    Raises:
        ValidationError: if the address is blank or malformed
    """
    value = (email or "").strip().lower()
    if not value or not EMAIL_RE.match(value):
        raise ValidationError("A valid email address is required")
    return value


def normalize_urgency(value: Optional[str]) -> Urgency:
    """
    Map an urgency label to the enum. Labels from the booking form such as
    "Urgent (1-2 days)" are matched by their first word.
    """
    value = sanitize(value)
    if not value:
        return Urgency.NORMAL
    head = value.split()[0].lower()
    for urgency in Urgency:
        if urgency.value.lower() == head:
            return urgency
    raise ValidationError(f"Unknown urgency level: {value}")


def parse_date(value: str) -> date:
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except (ValueError, AttributeError):
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD")


def parse_time(value: str) -> time:
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(value.strip(), fmt).time()
        except (ValueError, AttributeError):
            continue
    raise ValidationError(f"Invalid time '{value}', expected HH:MM")


def normalize_date(value: str) -> str:
    return parse_date(value).isoformat()


def normalize_time(value: Optional[str]) -> str:
    """Empty stays empty (time not specified); otherwise HH:MM, keeping seconds only when set."""
    value = sanitize(value)
    if not value:
        return ""
    parsed = parse_time(value)
    return parsed.strftime("%H:%M:%S" if parsed.second else "%H:%M")


def is_serviceable(postal_code: Optional[str], allowed: Iterable[str]) -> bool:
    """Membership test against the coverage list. Unknown codes are never serviceable."""
    code = sanitize(postal_code)
    if not code:
        return False
    return code in {str(c).strip() for c in allowed}


def is_past(date_str: Optional[str], time_str: Optional[str], now: datetime) -> bool:
    """
    Returns True if the local date (and optional time, default midnight) is strictly before `now`.
    A missing or malformed date fails open (returns False); required-field checks
    must happen elsewhere. A malformed time counts as midnight.
    """
    if not date_str:
        return False
    try:
        day = datetime.strptime(date_str.strip(), "%Y-%m-%d").date()
    except ValueError:
        return False

    slot_time = time.min
    if time_str:
        try:
            slot_time = parse_time(time_str)
        except ValidationError:
            slot_time = time.min

    slot = datetime.combine(day, slot_time, tzinfo=now.tzinfo)
    return slot < now
