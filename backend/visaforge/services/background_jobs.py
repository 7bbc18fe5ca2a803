"""
services/background_jobs.py

Scheduled background jobs for VisaForge.

Jobs:
  1. due_reminder_sweep
     Emails every user with open tasks due within REMINDER_WINDOW_DAYS.
     Runs once a day at REMINDER_SWEEP_HOUR_UTC, only when
     REMINDERS_ENABLE_SCHEDULED_SWEEP is set. Deployments that drive the
     sweep from an external cron call POST /api/v1/reminders/run-due instead.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from visaforge.core.config import settings
from visaforge.db.database import SessionLocal

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None


def start_scheduler() -> None:
    """Call from FastAPI lifespan startup."""
    global _scheduler

    if not settings.REMINDERS_ENABLE_SCHEDULED_SWEEP:
        logger.info("Scheduled reminder sweep disabled")
        return

    _scheduler = AsyncIOScheduler(timezone=timezone.utc)
    _scheduler.add_job(
        due_reminder_sweep,
        trigger=CronTrigger(hour=settings.REMINDER_SWEEP_HOUR_UTC, minute=0, timezone=timezone.utc),
        id="due_reminder_sweep",
        name="Due-date reminder emails",
        replace_existing=True,
        max_instances=1,
        misfire_grace_time=3600,
    )
    _scheduler.start()
    logger.info("Background scheduler started, reminder sweep at %02d:00 UTC", settings.REMINDER_SWEEP_HOUR_UTC)


def shutdown_scheduler() -> None:
    """Call from FastAPI lifespan shutdown."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Background scheduler shut down")
    _scheduler = None


def _run_sweep_sync() -> dict:
    from visaforge.services.email_service import email_service
    from visaforge.services.reminder_service import run_due_reminders

    db = SessionLocal()
    try:
        return run_due_reminders(db, email_service)
    finally:
        db.close()


async def due_reminder_sweep() -> None:
    logger.info("Job: due_reminder_sweep starting")
    try:
        result = await asyncio.to_thread(_run_sweep_sync)
    except Exception:
        logger.exception("Job: due_reminder_sweep failed")
        return
    logger.info("Job: due_reminder_sweep done %s", result)
