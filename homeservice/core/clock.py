from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo

from homeservice.core.config import settings

Clock = Callable[[], datetime]

def local_timezone() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)

def system_clock() -> datetime:
    """Current wall-clock time in the configured server timezone (tz-aware)."""
    return datetime.now(local_timezone())
