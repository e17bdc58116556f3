"""Week calendar helpers: the seven-day strip, per-day task lists and rescheduling."""

from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Sequence

from .task import Task
from .utils.datetime import ensure_aware, local_date, now_utc


def start_of_week(anchor: date, week_starts_on: int = 0) -> date:
    """First day of the week containing ``anchor`` (0=Monday ... 6=Sunday)."""
    offset = (anchor.weekday() - week_starts_on) % 7
    return anchor - timedelta(days=offset)


def week_days(anchor: date, week_starts_on: int = 0) -> List[date]:
    """The seven days of the week containing ``anchor``."""
    first = start_of_week(anchor, week_starts_on)
    return [first + timedelta(days=i) for i in range(7)]


def shift_week(anchor: date, weeks: int) -> date:
    return anchor + timedelta(weeks=weeks)


def tasks_on_day(tasks: Sequence[Task], day: date, tz=None) -> List[Task]:
    """Tasks due on ``day``, earliest first."""
    due_that_day = [task for task in tasks if task.is_due_on(day, tz)]
    return sorted(due_that_day, key=lambda task: task.due)


def reschedule_to_day(task: Task, day: date, tz=timezone.utc) -> datetime:
    """New due date for a task dropped onto ``day``.

    The time of day is kept (seconds dropped); a task without a due date
    lands at midnight in ``tz``.
    """
    if task.due is None:
        return datetime.combine(day, time(0, 0), tzinfo=tz)
    return datetime.combine(day, time(task.due.hour, task.due.minute), tzinfo=task.due.tzinfo)


def snooze(task: Task, minutes: int, now: Optional[datetime] = None) -> datetime:
    """Push the due date back by ``minutes``, starting from now if undated."""
    base = task.due or ensure_aware(now) or now_utc()
    return base + timedelta(minutes=minutes)


def week_overview(tasks: Sequence[Task], anchor: date, week_starts_on: int = 0, tz=None):
    """Pair each day of the anchor's week with its tasks."""
    return [(day, tasks_on_day(tasks, day, tz)) for day in week_days(anchor, week_starts_on)]


def today_in(now: Optional[datetime] = None, tz=None) -> date:
    return local_date(ensure_aware(now) or now_utc(), tz)
