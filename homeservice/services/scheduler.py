"""
Day-before reminders and the staff digest.

`tick` decides what to send from a snapshot of bookings and the current time.
`ReminderScheduler` loads the snapshot, sends the planned messages and records
the reminder marker. The APScheduler glue at the bottom only drives it.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import AsyncGenerator, Iterable, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from homeservice.core.config import settings
from homeservice.core.exceptions import BookingError
from homeservice.core.logger import logger
from homeservice.models.db_models import Booking, BookingStats, BookingStatus
from homeservice.services import email_templates
from homeservice.services.booking_service import BookingService
from homeservice.services.notification_service import OutboundEmail


@dataclass
class Reminder:
    booking: Booking
    customer: OutboundEmail
    staff: Optional[OutboundEmail] = None


@dataclass
class TickPlan:
    day: str
    reminders: List[Reminder] = field(default_factory=list)
    digest: Optional[OutboundEmail] = None


@dataclass
class RunSummary:
    day: str
    reminders_sent: int = 0
    reminders_failed: int = 0
    staff_reminders_sent: int = 0
    digest_sent: bool = False


def tick(now: datetime, bookings: Iterable[Booking], already_reminded_skip: bool = True,
         stats: Optional[BookingStats] = None, staff_email: str = "",
         company_name: str = email_templates.DEFAULT_COMPANY, include_digest: bool = True) -> TickPlan:
    """
    Plan reminders for confirmed bookings dated tomorrow (relative to `now`).

    Each booking gets a customer reminder and, when `staff_email` is set, a staff
    copy. Bookings whose reminder marker already equals their date are skipped
    unless `already_reminded_skip` is False. The digest lists every confirmed
    booking for tomorrow, reminded or not, and is omitted when there are none.
    """
    day = (now.date() + timedelta(days=1)).isoformat()
    due = sorted(
        (b for b in bookings if b.status == BookingStatus.CONFIRMED and b.date == day),
        key=lambda b: (b.time, b.created_at),
    )
    plan = TickPlan(day=day)

    for booking in due:
        if already_reminded_skip and booking.reminder_sent_for == booking.date:
            continue
        subject, body = email_templates.reminder_customer(booking, company_name)
        reminder = Reminder(
            booking=booking,
            customer=OutboundEmail(to=booking.email, subject=subject, html=body, kind="reminder_customer"),
        )
        if staff_email:
            subject, body = email_templates.reminder_staff(booking, company_name)
            reminder.staff = OutboundEmail(to=staff_email, subject=subject, html=body, kind="reminder_staff")
        plan.reminders.append(reminder)

    if include_digest and due and staff_email:
        subject, body = email_templates.daily_digest(day, due, stats, company_name)
        plan.digest = OutboundEmail(to=staff_email, subject=subject, html=body, kind="digest")

    return plan


class ReminderScheduler:
    def __init__(self, service: BookingService):
        self.service = service
        self._lock = asyncio.Lock()

    async def _run(self, now: Optional[datetime], include_digest: bool) -> RunSummary:
        now = now or self.service.clock()
        day = (now.date() + timedelta(days=1)).isoformat()
        bookings = await self.service.store.find({"status": BookingStatus.CONFIRMED, "date": day})
        stats = await self.service.stats() if include_digest else None

        plan = tick(now, bookings, stats=stats, staff_email=self.service.staff_email,
                    company_name=self.service.company_name, include_digest=include_digest)
        summary = RunSummary(day=plan.day)
        dispatcher = self.service.dispatcher

        for reminder in plan.reminders:
            booking = reminder.booking
            if await dispatcher.deliver(reminder.customer):
                summary.reminders_sent += 1
                try:
                    await self.service.store.update(booking.id, {"reminder_sent_for": booking.date})
                except BookingError as e:
                    logger.error(f"❌ Could not mark reminder for booking {booking.id}: {e.message}")
            else:
                summary.reminders_failed += 1

            if reminder.staff and await dispatcher.deliver(reminder.staff):
                summary.staff_reminders_sent += 1

        if plan.digest:
            summary.digest_sent = await dispatcher.deliver(plan.digest)

        logger.info(
            f"⏰ Reminder run for {summary.day}: {summary.reminders_sent} sent, "
            f"{summary.reminders_failed} failed, digest={'yes' if summary.digest_sent else 'no'}"
        )
        return summary

    async def run_daily(self, now: Optional[datetime] = None) -> RunSummary:
        """Reminders plus the staff digest for tomorrow."""
        async with self._lock:
            return await self._run(now, include_digest=True)

    async def run_hourly(self, now: Optional[datetime] = None) -> RunSummary:
        """Reminders only. Bookings confirmed after the daily run still get theirs."""
        async with self._lock:
            return await self._run(now, include_digest=False)


# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None


def start_scheduler(reminders: ReminderScheduler) -> AsyncIOScheduler:
    global scheduler

    if scheduler is not None:
        logger.warning("⚠️ Scheduler already running")
        return scheduler

    scheduler = AsyncIOScheduler(timezone=settings.TIMEZONE)

    scheduler.add_job(
        reminders.run_daily,
        trigger=CronTrigger(hour=settings.DIGEST_HOUR, minute=settings.DIGEST_MINUTE, timezone=settings.TIMEZONE),
        id="daily_digest",
        name="Daily reminders and digest",
        replace_existing=True,
        max_instances=1,
    )
    logger.info(f"🗓️ Daily digest scheduled at {settings.DIGEST_HOUR:02d}:{settings.DIGEST_MINUTE:02d} {settings.TIMEZONE}")

    if settings.HOURLY_REMINDERS_ENABLED:
        scheduler.add_job(
            reminders.run_hourly,
            trigger=CronTrigger(minute=0, timezone=settings.TIMEZONE),
            id="hourly_reminders",
            name="Hourly reminder sweep",
            replace_existing=True,
            max_instances=1,
        )
        logger.info("🗓️ Hourly reminder sweep scheduled")

    scheduler.start()
    logger.info("✅ Background scheduler started")
    return scheduler


def stop_scheduler() -> None:
    global scheduler

    if scheduler is not None:
        scheduler.shutdown(wait=False)
        scheduler = None
        logger.info("🛑 Background scheduler stopped")


def get_scheduler() -> Optional[AsyncIOScheduler]:
    return scheduler


@asynccontextmanager
async def scheduler_lifespan(reminders: ReminderScheduler) -> AsyncGenerator[None, None]:
    """Start/stop the scheduler around the FastAPI lifespan."""
    if not settings.SCHEDULER_ENABLED:
        logger.info("ℹ️ Scheduler disabled in config")
        yield
        return
    start_scheduler(reminders)
    try:
        yield
    finally:
        stop_scheduler()
