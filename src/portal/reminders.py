"""
reminders.py

Event reminder scheduling.

Reminders are durable EventReminder rows. Registering for an event creates one
row per chosen preference (1w, 24h, 1h) for that attendee; organizers can add
custom reminders that go to every attendee. EventReminderScheduler polls for
due rows, dispatches them through NotificationService and marks them sent in
the same transaction, so a restart never sends a reminder twice. A reminder
found after its tolerance window has passed is marked expired instead of
being sent late.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional

from fastapi import HTTPException
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from portal import models
from portal.database import AsyncSessionLocal
from portal.notification_service import NotificationService
from portal.settings import settings

logger = logging.getLogger(__name__)

# reminder type -> (time before event start, tolerance after run_at)
REMINDER_WINDOWS: Dict[str, tuple] = {
    "1w": (timedelta(days=7), timedelta(hours=1)),
    "24h": (timedelta(hours=24), timedelta(hours=1)),
    "1h": (timedelta(hours=1), timedelta(minutes=30)),
}
CUSTOM_TOLERANCE = timedelta(hours=1)
DEFAULT_PREFERENCES = ("24h", "1h")
ARCHIVE_AFTER = timedelta(days=30)


def _tolerance(reminder: models.EventReminder) -> timedelta:
    window = REMINDER_WINDOWS.get(reminder.reminder_type)
    return window[1] if window else CUSTOM_TOLERANCE


async def _schedule(db: AsyncSession, event_id: int, user_id: int, reminder_type: str, run_at: datetime) -> None:
    """Add a pending reminder, reviving a cancelled or expired row with the same key."""
    result = await db.execute(
        select(models.EventReminder).filter(
            models.EventReminder.event_id == event_id,
            models.EventReminder.user_id == user_id,
            models.EventReminder.reminder_type == reminder_type,
            models.EventReminder.run_at == run_at,
        )
    )
    existing = result.scalars().first()
    if existing is None:
        db.add(models.EventReminder(
            event_id=event_id, user_id=user_id, reminder_type=reminder_type, run_at=run_at, status="pending",
        ))
    elif existing.status != "sent":
        existing.status = "pending"
        existing.last_error = None


async def _add_preference_reminders(
    db: AsyncSession, event: models.Event, user_id: int, preferences: Iterable[str], now: datetime
) -> int:
    created = 0
    for preference in preferences:
        offset, _ = REMINDER_WINDOWS[preference]
        run_at = event.start_date - offset
        if run_at <= now:
            continue
        await _schedule(db, event.id, user_id, preference, run_at)
        created += 1
    return created


async def register_attendee(
    db: AsyncSession, event: models.Event, user: models.User, preferences: Optional[Iterable[str]] = None
) -> None:
    """Register `user` for a published event and schedule their reminders."""
    now = datetime.utcnow()
    if event.status != "published" or event.is_archived:
        raise HTTPException(status_code=400, detail="Registration is only open for published events")
    if event.start_date <= now:
        raise HTTPException(status_code=400, detail="This event has already started")
    if event.registration_deadline and event.registration_deadline < now:
        raise HTTPException(status_code=400, detail="Registration deadline has passed")
    if any(a.id == user.id for a in event.attendees):
        raise HTTPException(status_code=400, detail="You are already registered for this event")
    limit = event.max_attendees or event.capacity
    if limit and len(event.attendees) >= limit:
        raise HTTPException(status_code=400, detail="This event is full")

    event.attendees.append(user)
    prefs = list(dict.fromkeys(preferences if preferences is not None else DEFAULT_PREFERENCES))
    await _add_preference_reminders(db, event, user.id, prefs, now)
    await NotificationService.event_registration(db, event, user)


async def unregister_attendee(db: AsyncSession, event: models.Event, user: models.User) -> None:
    attendee = next((a for a in event.attendees if a.id == user.id), None)
    if not attendee:
        raise HTTPException(status_code=400, detail="You are not registered for this event")
    event.attendees.remove(attendee)
    await db.execute(
        update(models.EventReminder)
        .where(
            models.EventReminder.event_id == event.id,
            models.EventReminder.user_id == user.id,
            models.EventReminder.status == "pending",
        )
        .values(status="cancelled")
    )


async def schedule_custom_reminder(
    db: AsyncSession, event: models.Event, run_at: datetime, actor: models.User,
    message: Optional[str] = None, user_id: Optional[int] = None,
) -> models.EventReminder:
    now = datetime.utcnow()
    if run_at <= now:
        raise HTTPException(status_code=400, detail="Reminder time must be in the future")
    if run_at >= event.start_date:
        raise HTTPException(status_code=400, detail="Reminder time must be before the event starts")
    if user_id is not None and not any(a.id == user_id for a in event.attendees):
        raise HTTPException(status_code=400, detail="User is not registered for this event")
    reminder = models.EventReminder(
        event_id=event.id, user_id=user_id, reminder_type="custom", run_at=run_at,
        message=message, status="pending", created_by_id=actor.id,
    )
    db.add(reminder)
    await db.flush()
    return reminder


async def cancel_reminder(
    db: AsyncSession, reminder_id: int, event_id: Optional[int] = None
) -> models.EventReminder:
    reminder = await db.get(models.EventReminder, reminder_id)
    if not reminder or (event_id is not None and reminder.event_id != event_id):
        raise HTTPException(status_code=404, detail="Reminder not found")
    if reminder.status != "pending":
        raise HTTPException(status_code=400, detail=f"Reminder is already {reminder.status}")
    reminder.status = "cancelled"
    return reminder


async def reschedule_event_reminders(db: AsyncSession, event: models.Event) -> None:
    """
    Realign reminders after an event changed. Cancelled or unpublished events
    lose their pending reminders. A published, upcoming event gets every
    attendee's standard reminders back at the current start time, using the
    reminder types the attendee already had (defaults when none), so a moved
    or republished event keeps reminding its attendees.
    """
    result = await db.execute(
        select(models.EventReminder).filter(
            models.EventReminder.event_id == event.id, models.EventReminder.status == "pending"
        )
    )
    pending = result.scalars().all()
    if event.status != "published" or event.is_archived:
        for reminder in pending:
            reminder.status = "cancelled"
        return

    for reminder in pending:
        window = REMINDER_WINDOWS.get(reminder.reminder_type)
        if window:
            if event.start_date - window[0] != reminder.run_at:
                reminder.status = "cancelled"
        elif reminder.run_at >= event.start_date:
            reminder.status = "cancelled"
    await db.flush()

    attendee_ids = [a.id for a in event.attendees]
    if not attendee_ids:
        return
    result = await db.execute(
        select(models.EventReminder.user_id, models.EventReminder.reminder_type)
        .filter(
            models.EventReminder.event_id == event.id,
            models.EventReminder.user_id.in_(attendee_ids),
            models.EventReminder.reminder_type.in_(list(REMINDER_WINDOWS)),
        )
        .distinct()
    )
    preferences: Dict[int, list] = {}
    for user_id, reminder_type in result.all():
        preferences.setdefault(user_id, []).append(reminder_type)

    now = datetime.utcnow()
    for user_id in attendee_ids:
        prefs = preferences.get(user_id, DEFAULT_PREFERENCES)
        await _add_preference_reminders(db, event, user_id, prefs, now)


async def process_due_reminders(db: AsyncSession, now: Optional[datetime] = None) -> Dict[str, int]:
    """Dispatch every pending reminder whose run time has come."""
    now = now or datetime.utcnow()
    result = await db.execute(
        select(models.EventReminder)
        .filter(models.EventReminder.status == "pending", models.EventReminder.run_at <= now)
        .options(
            selectinload(models.EventReminder.event).selectinload(models.Event.attendees),
            selectinload(models.EventReminder.user),
        )
        .order_by(models.EventReminder.run_at)
    )
    counts = {"sent": 0, "expired": 0, "cancelled": 0, "notifications": 0}
    for reminder in result.scalars().all():
        event = reminder.event
        if event.status != "published" or event.is_archived or event.start_date <= now:
            reminder.status = "cancelled"
            reminder.last_error = "Event is no longer upcoming"
            counts["cancelled"] += 1
            continue
        if now - reminder.run_at > _tolerance(reminder):
            reminder.status = "expired"
            counts["expired"] += 1
            continue

        if reminder.user_id is not None:
            recipients = [a for a in event.attendees if a.id == reminder.user_id]
        else:
            recipients = list(event.attendees)
        for user in recipients:
            if user.is_active:
                await NotificationService.event_reminder(db, event, user, reminder.reminder_type, reminder.message)
                counts["notifications"] += 1
        reminder.status = "sent"
        reminder.sent_at = now
        counts["sent"] += 1
    return counts


async def archive_past_events(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Archive events that ended more than 30 days ago."""
    now = now or datetime.utcnow()
    result = await db.execute(
        update(models.Event)
        .where(models.Event.end_date < now - ARCHIVE_AFTER, models.Event.is_archived.is_(False))
        .values(is_archived=True)
    )
    return result.rowcount or 0


async def reminder_stats(db: AsyncSession) -> dict:
    now = datetime.utcnow()
    by_status = await db.execute(
        select(models.EventReminder.status, func.count()).group_by(models.EventReminder.status)
    )
    upcoming = await db.execute(
        select(func.count()).select_from(models.Event).filter(
            models.Event.status == "published",
            models.Event.start_date > now,
            models.Event.start_date <= now + timedelta(days=7),
        )
    )
    return {
        "reminders": {status: total for status, total in by_status.all()},
        "upcomingEventsThisWeek": upcoming.scalar_one(),
        "scheduler": scheduler.stats,
    }


class EventReminderScheduler:
    """Background task that dispatches due reminders and archives old events."""

    def __init__(self, interval_seconds: int = 300, session_factory=AsyncSessionLocal):
        self.interval_seconds = interval_seconds
        self.session_factory = session_factory
        self.running = False
        self._task: Optional[asyncio.Task] = None
        self.stats = {"last_run": None, "total_sent": 0, "total_expired": 0}

    async def start(self):
        if self.running:
            logger.warning("[ReminderScheduler] Service already running")
            return
        self.running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"[ReminderScheduler] Started - Interval: {self.interval_seconds}s")

    async def stop(self):
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("[ReminderScheduler] Stopped")

    async def _loop(self):
        while self.running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"[ReminderScheduler] Error in scheduler loop: {e}", exc_info=True)
            await asyncio.sleep(self.interval_seconds)

    async def run_once(self) -> Dict[str, int]:
        async with self.session_factory() as db:
            counts = await process_due_reminders(db)
            counts["archived"] = await archive_past_events(db)
            await db.commit()
        self.stats["last_run"] = datetime.utcnow().isoformat()
        self.stats["total_sent"] += counts["sent"]
        self.stats["total_expired"] += counts["expired"]
        if counts["sent"] or counts["expired"] or counts["archived"]:
            logger.info(f"[ReminderScheduler] Run complete: {counts}")
        return counts


scheduler = EventReminderScheduler(interval_seconds=settings.reminder_check_interval_seconds)
