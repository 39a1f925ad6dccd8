import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from supabase import create_async_client, AsyncClient

from homeservice.core.config import settings
from homeservice.core.exceptions import Conflict, StoreFailure
from homeservice.core.logger import logger
from homeservice.models.db_models import Booking
from homeservice.services.store import BookingStore, SortSpec, IMMUTABLE_FIELDS, to_plain


class SupabaseBookingStore(BookingStore):
    """
    Booking store on a Supabase (PostgREST) table.
    Every call is bounded by STORE_TIMEOUT_SECONDS; any failure surfaces as StoreFailure.
    """

    def __init__(self, client: Optional[AsyncClient] = None, table: str = None, timeout: float = None):
        self._client = client
        self.table = table or settings.SUPABASE_TABLE
        self.timeout = timeout or settings.STORE_TIMEOUT_SECONDS

    async def get_client(self) -> AsyncClient:
        if self._client is None:
            if not (settings.SUPABASE_URL and settings.SUPABASE_KEY):
                logger.error("❌ Supabase credentials missing")
                raise StoreFailure("Booking storage is not configured")
            try:
                self._client = await create_async_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
                logger.info("✅ Supabase Async client initialized")
            except Exception as e:
                logger.error(f"❌ Failed to initialize Supabase Async: {e}")
                raise StoreFailure("Booking storage is unavailable") from e
        return self._client

    async def _execute(self, query, operation: str):
        try:
            return await asyncio.wait_for(query.execute(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"❌ DB timeout ({operation}) after {self.timeout}s")
            raise StoreFailure("Booking storage timed out") from e
        except Exception as e:
            logger.error(f"❌ DB Error ({operation}): {e}")
            raise StoreFailure("Booking storage error") from e

    async def _table(self):
        client = await self.get_client()
        return client.table(self.table)

    @staticmethod
    def _apply_filters(query, filters: Optional[Dict[str, Any]]):
        for key, value in (filters or {}).items():
            query = query.eq(key, to_plain(value))
        return query

    async def insert(self, booking: Booking) -> Booking:
        table = await self._table()
        response = await self._execute(table.insert(booking.model_dump(mode="json")), "insert")
        if not response.data:
            raise StoreFailure("Booking insert returned no data")
        logger.info(f"✅ Booking {booking.id} stored in DB")
        return Booking.model_validate(response.data[0])

    async def find_by_id(self, booking_id: str) -> Optional[Booking]:
        table = await self._table()
        response = await self._execute(table.select("*").eq("id", booking_id), "find_by_id")
        if response.data:
            return Booking.model_validate(response.data[0])
        return None

    async def find(self, filters: Optional[Dict[str, Any]] = None, sort: Optional[SortSpec] = None) -> List[Booking]:
        table = await self._table()
        query = self._apply_filters(table.select("*"), filters)
        for field, descending in sort or []:
            query = query.order(field, desc=descending)
        response = await self._execute(query, "find")
        return [Booking.model_validate(row) for row in response.data or []]

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        table = await self._table()
        query = self._apply_filters(table.select("id", count="exact"), filters)
        response = await self._execute(query, "count")
        return response.count or 0

    async def update(self, booking_id: str, fields: Dict[str, Any],
                     expected_version: Optional[int] = None) -> Optional[Booking]:
        current = await self.find_by_id(booking_id)
        if current is None:
            return None
        version = expected_version if expected_version is not None else current.version
        if version != current.version:
            raise Conflict("Booking was modified by another request, please retry")

        payload = {k: to_plain(v) for k, v in fields.items() if k not in IMMUTABLE_FIELDS}
        payload["version"] = version + 1
        payload["updated_at"] = datetime.now(timezone.utc).isoformat()

        table = await self._table()
        query = table.update(payload).eq("id", booking_id).eq("version", version)
        response = await self._execute(query, "update")
        if not response.data:
            # Row changed between the read and the conditional write
            raise Conflict("Booking was modified by another request, please retry")
        return Booking.model_validate(response.data[0])
