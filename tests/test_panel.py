import asyncio

import pytest

from homeservice.models.db_models import Booking, BookingStatus
from homeservice.services.store import MemoryBookingStore
from homeservice.wiring.panel import PanelLoop, load_panel_data
from tests.helpers import TOMORROW


class LoopBoundStore(MemoryBookingStore):
    """Behaves like a pooled async client: tied to the first loop that touched it."""

    def __init__(self):
        super().__init__()
        self.bound_loop = None

    def _check_loop(self):
        loop = asyncio.get_running_loop()
        if self.bound_loop is None:
            self.bound_loop = loop
        elif self.bound_loop is not loop or self.bound_loop.is_closed():
            raise RuntimeError("Event loop is closed")

    async def find(self, filters=None, sort=None):
        self._check_loop()
        return await super().find(filters, sort)

    async def count(self, filters=None):
        self._check_loop()
        return await super().count(filters)


@pytest.fixture
def panel_loop():
    runner = PanelLoop()
    yield runner
    runner.close()

def _booking(name, status=BookingStatus.PENDING):
    return Booking(name=name, phone="1", email=f"{name.lower()}@example.com", address="x",
                   postal_code="560001", service_type="General", date=TOMORROW, status=status)

def test_repeated_loads_reuse_one_loop(service, panel_loop):
    store = LoopBoundStore()
    service.store = store
    panel_loop.run(store.insert(_booking("Asha")))

    first_bookings, first_stats = load_panel_data(panel_loop, service)
    second_bookings, second_stats = load_panel_data(panel_loop, service, status="pending", search="ash")

    assert [b.name for b in first_bookings] == ["Asha"]
    assert [b.name for b in second_bookings] == ["Asha"]
    assert first_stats == second_stats
    assert first_stats.total == 1
    assert store.bound_loop is panel_loop.loop

def test_loads_see_new_writes(service, panel_loop):
    panel_loop.run(service.store.insert(_booking("Asha")))
    assert load_panel_data(panel_loop, service)[1].total == 1

    panel_loop.run(service.store.insert(_booking("Ravi", status=BookingStatus.CONFIRMED)))
    bookings, stats = load_panel_data(panel_loop, service, status="confirmed")

    assert [b.name for b in bookings] == ["Ravi"]
    assert stats.total == 2
