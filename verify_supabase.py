import asyncio

from homeservice.core.config import settings
from homeservice.core.exceptions import StoreFailure
from homeservice.core.logger import setup_logging, logger
from homeservice.models.db_models import BookingStatus
from homeservice.services.db_service import SupabaseBookingStore

setup_logging()

async def verify_supabase_store():
    print(f"Checking Supabase table '{settings.SUPABASE_TABLE}'...")
    store = SupabaseBookingStore()

    try:
        total = await store.count()
        for status in BookingStatus:
            print(f"  {status.value:<10} {await store.count({'status': status})}")
        print(f"✅ Connected. {total} booking(s) in table.")
    except StoreFailure as e:
        logger.error(f"❌ Supabase check failed: {e.message}")
        print("❌ Failed: check SUPABASE_URL, SUPABASE_KEY and that the table exists.")

if __name__ == "__main__":
    asyncio.run(verify_supabase_store())
