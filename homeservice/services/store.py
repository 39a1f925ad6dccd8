from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from homeservice.core.exceptions import Conflict
from homeservice.models.db_models import Booking

# (field, descending)
SortSpec = Sequence[Tuple[str, bool]]

IMMUTABLE_FIELDS = {"id", "created_at", "version", "updated_at"}


class BookingStore(ABC):
    @abstractmethod
    async def insert(self, booking: Booking) -> Booking:
        raise NotImplementedError

    @abstractmethod
    async def find_by_id(self, booking_id: str) -> Optional[Booking]:
        raise NotImplementedError

    @abstractmethod
    async def find(self, filters: Optional[Dict[str, Any]] = None, sort: Optional[SortSpec] = None) -> List[Booking]:
        """Equality filters on booking fields, ordered by `sort`."""
        raise NotImplementedError

    @abstractmethod
    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        raise NotImplementedError

    @abstractmethod
    async def update(self, booking_id: str, fields: Dict[str, Any],
                     expected_version: Optional[int] = None) -> Optional[Booking]:
        """
        Apply a partial update, bump `version` and refresh `updated_at`.
        Returns None if the booking does not exist.
        Raises Conflict if `expected_version` is given and no longer current.
        """
        raise NotImplementedError


def to_plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class MemoryBookingStore(BookingStore):
    def __init__(self) -> None:
        self._rows: Dict[str, Booking] = {}
        self._lock = asyncio.Lock()

    async def insert(self, booking: Booking) -> Booking:
        async with self._lock:
            if booking.id in self._rows:
                raise Conflict(f"Booking {booking.id} already exists")
            self._rows[booking.id] = booking.model_copy(deep=True)
            return booking.model_copy(deep=True)

    async def find_by_id(self, booking_id: str) -> Optional[Booking]:
        row = self._rows.get(booking_id)
        return row.model_copy(deep=True) if row else None

    def _matches(self, booking: Booking, filters: Optional[Dict[str, Any]]) -> bool:
        for key, expected in (filters or {}).items():
            if to_plain(getattr(booking, key)) != to_plain(expected):
                return False
        return True

    async def find(self, filters: Optional[Dict[str, Any]] = None, sort: Optional[SortSpec] = None) -> List[Booking]:
        rows = [b for b in self._rows.values() if self._matches(b, filters)]
        # Stable sorts applied from the least significant key
        for field, descending in reversed(list(sort or [])):
            rows.sort(key=lambda b: to_plain(getattr(b, field)), reverse=descending)
        return [b.model_copy(deep=True) for b in rows]

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        return sum(1 for b in self._rows.values() if self._matches(b, filters))

    async def update(self, booking_id: str, fields: Dict[str, Any],
                     expected_version: Optional[int] = None) -> Optional[Booking]:
        async with self._lock:
            current = self._rows.get(booking_id)
            if current is None:
                return None
            if expected_version is not None and current.version != expected_version:
                raise Conflict("Booking was modified by another request, please retry")

            changes = {k: v for k, v in fields.items() if k not in IMMUTABLE_FIELDS}
            changes["version"] = current.version + 1
            changes["updated_at"] = max(datetime.now(timezone.utc), current.updated_at)
            updated = current.model_copy(update=changes, deep=True)
            self._rows[booking_id] = updated
            return updated.model_copy(deep=True)
