"""
worker.py

Email outbox worker. Delivers queued EmailLog rows through SendGrid with
exponential backoff. A delivery failure is recorded on the row; after
OUTBOX_MAX_ATTEMPTS the row is marked failed and stays visible in the
admin email log.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal import models, utils
from portal.database import AsyncSessionLocal
from portal.settings import settings

logger = logging.getLogger(__name__)


def backoff_delay(attempts: int) -> timedelta:
    """Delay before retry number `attempts` (1-based): base, 2*base, 4*base, ..."""
    return timedelta(seconds=settings.outbox_backoff_seconds * (2 ** max(attempts - 1, 0)))


async def deliver_pending(
    db: AsyncSession, now: Optional[datetime] = None, limit: Optional[int] = None
) -> Dict[str, int]:
    """Attempt delivery of every queued email that is due. Commits per message."""
    now = now or datetime.utcnow()
    result = await db.execute(
        select(models.EmailLog)
        .filter(models.EmailLog.status == "queued", models.EmailLog.next_attempt_at <= now)
        .order_by(models.EmailLog.next_attempt_at)
        .limit(limit or settings.outbox_batch_size)
    )
    counts = {"sent": 0, "retried": 0, "failed": 0}
    for entry in result.scalars().all():
        entry.status = "sending"
        entry.attempts = (entry.attempts or 0) + 1
        await db.commit()
        try:
            provider_id = await run_in_threadpool(
                utils.send_email,
                entry.recipient_email,
                entry.subject,
                entry.html_content,
                True,
                entry.text_content,
            )
        except Exception as e:
            if not isinstance(e, utils.EmailDeliveryError):
                logger.error(f"Unexpected error delivering email {entry.message_id}", exc_info=True)
            entry.last_error = str(e) or e.__class__.__name__
            if entry.attempts >= settings.outbox_max_attempts:
                entry.status = "failed"
                counts["failed"] += 1
                logger.error(f"Email {entry.message_id} to {entry.recipient_email} failed permanently: {e}")
            else:
                entry.status = "queued"
                entry.next_attempt_at = now + backoff_delay(entry.attempts)
                counts["retried"] += 1
                logger.warning(
                    f"Email {entry.message_id} attempt {entry.attempts} failed, retrying at {entry.next_attempt_at}: {e}"
                )
        else:
            entry.status = "sent"
            entry.sent_at = datetime.utcnow()
            entry.last_error = None
            if provider_id:
                entry.message_id = provider_id
            if entry.notification_id:
                notification = await db.get(models.Notification, entry.notification_id)
                if notification:
                    notification.email_sent = True
                    notification.email_sent_at = entry.sent_at
            counts["sent"] += 1
        await db.commit()
    return counts


class EmailOutboxWorker:
    """Background task that drains the email outbox."""

    def __init__(self, interval_seconds: int = 30, session_factory=AsyncSessionLocal):
        self.interval_seconds = interval_seconds
        self.session_factory = session_factory
        self.running = False
        self._task: Optional[asyncio.Task] = None
        self.stats = {"last_run": None, "total_sent": 0, "total_failed": 0}

    async def start(self):
        if self.running:
            logger.warning("[EmailOutbox] Worker already running")
            return
        self.running = True
        await self.recover_stale()
        self._task = asyncio.create_task(self._loop())
        logger.info(f"[EmailOutbox] Started - Interval: {self.interval_seconds}s")

    async def stop(self):
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("[EmailOutbox] Stopped")

    async def recover_stale(self):
        """Requeue rows left in "sending" by a process that stopped mid-delivery."""
        async with self.session_factory() as db:
            result = await db.execute(select(models.EmailLog).filter(models.EmailLog.status == "sending"))
            stale = result.scalars().all()
            for entry in stale:
                entry.status = "queued"
            await db.commit()
        if stale:
            logger.info(f"[EmailOutbox] Requeued {len(stale)} interrupted deliveries")

    async def _loop(self):
        while self.running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"[EmailOutbox] Error in worker loop: {e}", exc_info=True)
            await asyncio.sleep(self.interval_seconds)

    async def run_once(self) -> Dict[str, int]:
        async with self.session_factory() as db:
            counts = await deliver_pending(db)
        self.stats["last_run"] = datetime.utcnow().isoformat()
        self.stats["total_sent"] += counts["sent"]
        self.stats["total_failed"] += counts["failed"]
        if any(counts.values()):
            logger.info(f"[EmailOutbox] Run complete: {counts}")
        return counts


outbox_worker = EmailOutboxWorker(interval_seconds=settings.outbox_poll_interval_seconds)
