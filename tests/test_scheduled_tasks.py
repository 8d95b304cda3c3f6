"""Background jobs: reminder window, per-item isolation, cleanup, runner wiring."""

from datetime import datetime, timedelta, timezone

import pytest

from crud.user_crud import create_user
from crud.verification_crud import create_verification_code, list_codes
from models.todo import Todo
from models.verification import CodeType
from services.scheduled_tasks import (
    CleanupScheduler,
    ReminderScheduler,
    format_due_datetime,
    start_scheduler,
    stop_scheduler,
)

HOURS_BEFORE = 24
WINDOW = timedelta(minutes=5)


@pytest.fixture
def reminder(session_factory, email_service, clock):
    return ReminderScheduler(session_factory, email_service, hours_before=HOURS_BEFORE, window=WINDOW, clock=clock)


def _user(session_factory, username, email):
    with session_factory() as db:
        return create_user(db, username=username, email=email, password_hash="x", enabled=True)


def _todo(session_factory, user_id, title, due, completed=False):
    with session_factory() as db:
        todo = Todo(user_id=user_id, title=title, due_date=due, completed=completed)
        db.add(todo)
        db.commit()
        return todo.id


def test_todo_due_at_window_start_gets_one_reminder(reminder, session_factory, email_sender, clock):
    alice = _user(session_factory, "alice", "alice@x.com")
    _todo(session_factory, alice.id, "Pay rent", clock.now + timedelta(hours=HOURS_BEFORE))

    assert reminder.run() == 1

    ((to, subject, body),) = email_sender.sent
    assert to == "alice@x.com"
    assert subject == "Todo Reminder - Pay rent"
    assert "Due: Mar 06, 2026 at 12:00 PM" in body


def test_todo_due_after_window_gets_no_reminder(reminder, session_factory, email_sender, clock):
    alice = _user(session_factory, "alice", "alice@x.com")
    _todo(session_factory, alice.id, "Later", clock.now + timedelta(hours=HOURS_BEFORE) + WINDOW + timedelta(seconds=1))
    _todo(session_factory, alice.id, "At window end", clock.now + timedelta(hours=HOURS_BEFORE) + WINDOW)
    _todo(session_factory, alice.id, "Too early", clock.now + timedelta(hours=HOURS_BEFORE) - timedelta(seconds=1))

    assert reminder.run() == 0
    assert email_sender.sent == []


def test_completed_and_undated_todos_are_skipped(reminder, session_factory, email_sender, clock):
    alice = _user(session_factory, "alice", "alice@x.com")
    _todo(session_factory, alice.id, "Done", clock.now + timedelta(hours=HOURS_BEFORE, minutes=1), completed=True)
    _todo(session_factory, alice.id, "Someday", None)

    assert reminder.run() == 0
    assert email_sender.sent == []


def test_todo_without_owner_is_skipped(reminder, session_factory, email_sender, clock):
    alice = _user(session_factory, "alice", "alice@x.com")
    due = clock.now + timedelta(hours=HOURS_BEFORE, minutes=2)
    _todo(session_factory, "no-such-user", "Orphan", due)
    _todo(session_factory, alice.id, "Mine", due)

    assert reminder.run() == 1
    assert [m[0] for m in email_sender.sent] == ["alice@x.com"]


def test_due_date_with_utc_offset_is_matched_by_its_instant(reminder, session_factory, email_sender, clock):
    alice = _user(session_factory, "alice", "alice@x.com")
    plus_two = timezone(timedelta(hours=2))
    due = (clock.now + timedelta(hours=HOURS_BEFORE, minutes=1)).astimezone(plus_two)
    todo_id = _todo(session_factory, alice.id, "Call mom", due)

    assert reminder.run() == 1
    ((_, _, body),) = email_sender.sent
    assert "Due: Mar 06, 2026 at 12:01 PM" in body
    with session_factory() as db:
        assert db.get(Todo, todo_id).due_date == datetime(2026, 3, 6, 12, 1, tzinfo=timezone.utc)


def test_one_failing_reminder_does_not_stop_the_batch(reminder, session_factory, email_sender, clock):
    alice = _user(session_factory, "alice", "alice@x.com")
    bob = _user(session_factory, "bob", "bob@x.com")
    carol = _user(session_factory, "carol", "carol@x.com")
    due = clock.now + timedelta(hours=HOURS_BEFORE, minutes=1)
    _todo(session_factory, alice.id, "A", due)
    _todo(session_factory, bob.id, "B", due + timedelta(seconds=1))
    _todo(session_factory, carol.id, "C", due + timedelta(seconds=2))
    email_sender.raise_for.add("alice@x.com")
    email_sender.fail_for.add("bob@x.com")

    assert reminder.run() == 1
    assert [m[0] for m in email_sender.sent] == ["carol@x.com"]


def test_reminder_run_survives_store_failure(email_service, clock):
    def broken_factory():
        raise RuntimeError("database unavailable")

    job = ReminderScheduler(broken_factory, email_service, clock=clock)
    assert job.run() == 0


@pytest.mark.parametrize("due,expected", [
    (datetime(2026, 3, 5, 15, 7, tzinfo=timezone.utc), "Mar 05, 2026 at 3:07 PM"),
    (datetime(2026, 12, 31, 0, 0, tzinfo=timezone.utc), "Dec 31, 2026 at 12:00 AM"),
    (datetime(2026, 7, 1, 12, 30, tzinfo=timezone.utc), "Jul 01, 2026 at 12:30 PM"),
    (None, "No due date"),
])
def test_format_due_datetime(due, expected):
    assert format_due_datetime(due) == expected


def test_cleanup_job_deletes_expired_codes(verification_service, session_factory, clock):
    with session_factory() as db:
        create_verification_code(db, "alice@x.com", "111111", CodeType.EMAIL_VERIFICATION, clock.now - timedelta(seconds=1))
        create_verification_code(db, "alice@x.com", "222222", CodeType.EMAIL_VERIFICATION, clock.now + timedelta(minutes=1))

    assert CleanupScheduler(verification_service, clock=clock).run() == 1

    with session_factory() as db:
        assert [c.code for c in list_codes(db, "alice@x.com")] == ["222222"]


def test_cleanup_job_swallows_errors(clock):
    class Broken:
        def cleanup_expired(self, now):
            raise RuntimeError("database unavailable")

    assert CleanupScheduler(Broken(), clock=clock).run() == 0


def test_start_scheduler_registers_both_jobs(settings, verification_service, reminder):
    scheduler = start_scheduler(CleanupScheduler(verification_service), reminder, settings)
    try:
        assert scheduler is not None
        assert scheduler.running
        assert {job.id for job in scheduler.get_jobs()} == {"verification_code_cleanup", "todo_reminders"}
    finally:
        stop_scheduler(scheduler)


def test_stop_scheduler_accepts_none():
    stop_scheduler(None)
