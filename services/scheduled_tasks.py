"""
Background jobs: expired-code cleanup and due-todo reminders.

Each job exposes ``run(now=None)`` for a single tick; ``start_scheduler``
wires both onto an APScheduler ``BackgroundScheduler``. A failing tick is
logged and the next one runs as usual.

Usage:
    scheduler = start_scheduler(cleanup, reminder, settings)
    # ... app runs ...
    stop_scheduler(scheduler)
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import sessionmaker

from core.config import Settings
from crud.todo_crud import find_todos_due_between
from crud.user_crud import get_user
from services.email_service import EmailService
from services.verification_service import VerificationService

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_due_datetime(due: datetime | None) -> str:
    """e.g. ``Mar 05, 2026 at 3:07 PM``."""
    if due is None:
        return "No due date"
    hour = due.hour % 12 or 12
    return f"{due:%b %d, %Y} at {hour}:{due:%M %p}"


class CleanupScheduler:
    def __init__(self, verification_service: VerificationService, clock: Callable[[], datetime] = _utcnow):
        self._verification_service = verification_service
        self._clock = clock

    def run(self, now: datetime | None = None) -> int:
        logger.info("Starting cleanup of expired verification codes", extra={"job": "cleanup"})
        try:
            deleted = self._verification_service.cleanup_expired(now or self._clock())
        except Exception:
            logger.exception("Error during cleanup of expired verification codes", extra={"job": "cleanup"})
            return 0
        logger.info("Cleanup of expired verification codes completed", extra={"job": "cleanup"})
        return deleted


class ReminderScheduler:
    def __init__(
        self,
        session_factory: sessionmaker,
        email_service: EmailService,
        hours_before: int = 24,
        window: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._session_factory = session_factory
        self._email_service = email_service
        self._hours_before = hours_before
        self._window = window
        self._clock = clock

    def run(self, now: datetime | None = None) -> int:
        """Send one reminder per open todo due in [now + H, now + H + window)."""
        now = now or self._clock()
        start = now + timedelta(hours=self._hours_before)
        end = start + self._window
        logger.info("Starting todo reminder check", extra={"job": "reminder"})

        sent = 0
        try:
            with self._session_factory() as db:
                todos = find_todos_due_between(db, start, end)
                logger.info("Found %d todos to remind", len(todos), extra={"job": "reminder"})
                # Resolve owners up front so no session is held across email I/O
                batch = [(todo, get_user(db, todo.user_id)) for todo in todos]
        except Exception:
            logger.exception("Error loading todos for reminders", extra={"job": "reminder"})
            return 0

        for todo, user in batch:
            try:
                if self._remind(todo, user):
                    sent += 1
            except Exception:
                logger.exception("Failed to send reminder", extra={"job": "reminder", "todo_id": todo.id})

        logger.info("Completed todo reminder check, %d sent", sent, extra={"job": "reminder"})
        return sent

    def _remind(self, todo, user) -> bool:
        if user is None:
            logger.warning("User not found for todo", extra={"todo_id": todo.id})
            return False
        if not user.email or not user.email.strip():
            logger.warning("User has no email address for reminder", extra={"username": user.username})
            return False

        ok = self._email_service.send_todo_reminder_email(
            user.email, user.username, todo.title, format_due_datetime(todo.due_date),
        )
        if ok:
            logger.info("Sent reminder for todo", extra={"todo_id": todo.id, "username": user.username})
        return ok


def start_scheduler(
    cleanup: CleanupScheduler,
    reminder: ReminderScheduler,
    settings: Settings,
) -> Optional[BackgroundScheduler]:
    try:
        scheduler = BackgroundScheduler(timezone=timezone.utc)
        scheduler.add_job(
            func=cleanup.run,
            trigger=IntervalTrigger(minutes=settings.CLEANUP_INTERVAL_MINUTES),
            id="verification_code_cleanup",
            name="Delete expired verification codes",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        scheduler.add_job(
            func=reminder.run,
            trigger=IntervalTrigger(minutes=settings.REMINDER_INTERVAL_MINUTES),
            id="todo_reminders",
            name="Email reminders for todos coming due",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        logger.info(
            "Background scheduler started (cleanup every %d min, reminders every %d min)",
            settings.CLEANUP_INTERVAL_MINUTES, settings.REMINDER_INTERVAL_MINUTES,
        )
        return scheduler
    except Exception:
        logger.exception("Failed to start background scheduler")
        return None


def stop_scheduler(scheduler: Optional[BackgroundScheduler]):
    if scheduler:
        try:
            scheduler.shutdown(wait=False)
            logger.info("Background scheduler stopped")
        except Exception as e:
            logger.warning("Error stopping background scheduler: %s", e)
