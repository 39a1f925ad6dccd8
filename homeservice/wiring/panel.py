import asyncio
import threading
from typing import List, Optional, Tuple

from homeservice.models.db_models import Booking, BookingStats
from homeservice.services.booking_service import BookingService


class PanelLoop:
    """
    One event loop kept for the life of the admin panel process.
    Async clients (Supabase connection pool) bind to the first loop that uses
    them, so every rerun has to go through the same loop.
    """

    def __init__(self):
        self.loop = asyncio.new_event_loop()
        self._lock = threading.Lock()

    def run(self, coro):
        # Streamlit sessions run in separate threads; the loop can only run one at a time
        with self._lock:
            return self.loop.run_until_complete(coro)

    def close(self) -> None:
        with self._lock:
            self.loop.close()


async def fetch_panel_data(service: BookingService, status: Optional[str],
                           search: Optional[str]) -> Tuple[List[Booking], BookingStats]:
    return await service.list_for_admin(status=status, search=search), await service.stats()


def load_panel_data(runner: PanelLoop, service: BookingService, status: Optional[str] = None,
                    search: Optional[str] = None) -> Tuple[List[Booking], BookingStats]:
    return runner.run(fetch_panel_data(service, status, search))
