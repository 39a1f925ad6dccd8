import uuid
from enum import Enum
from typing import Optional, Dict
from datetime import datetime, timezone
from pydantic import BaseModel, Field, AliasChoices, ConfigDict

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class Urgency(str, Enum):
    NORMAL = "Normal"
    URGENT = "Urgent"
    EMERGENCY = "Emergency"

class BookingCreate(BaseModel):
    """
    Raw booking input as submitted by the public form or by staff.
    Every field defaults to empty so that missing fields are reported by name
    by the lifecycle engine instead of by pydantic.
    The camelCase aliases match the public booking form.
    """
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(default="", validation_alias=AliasChoices("name", "fullName"))
    phone: str = Field(default="", validation_alias=AliasChoices("phone", "phoneNumber"))
    email: str = ""
    address: str = Field(default="", validation_alias=AliasChoices("address", "serviceAddress"))
    postal_code: str = Field(default="", validation_alias=AliasChoices("postal_code", "pincode"))
    service_type: str = Field(default="", validation_alias=AliasChoices("service_type", "serviceType"))
    urgency: Optional[str] = None
    date: str = ""
    time: str = ""
    instructions: str = Field(default="", validation_alias=AliasChoices("instructions", "description"))

class Booking(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    phone: str
    email: str
    address: str
    postal_code: str
    service_type: str
    urgency: Urgency = Urgency.NORMAL
    instructions: str = ""
    date: str  # YYYY-MM-DD
    time: str = ""  # HH:MM, empty when not specified
    status: BookingStatus = BookingStatus.PENDING
    verified: bool = False
    reminder_sent_for: Optional[str] = None
    version: int = 1
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

class BookingStats(BaseModel):
    pending: int = 0
    confirmed: int = 0
    completed: int = 0
    cancelled: int = 0
    total: int = 0

    def by_status(self) -> Dict[str, int]:
        return {status.value: getattr(self, status.value) for status in BookingStatus}
