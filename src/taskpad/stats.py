"""Completion statistics: today's progress, daily history, streaks and points."""

from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Sequence

from .task import Task
from .utils.datetime import ensure_aware, local_date, now_utc


@dataclass
class DailyCount:
    """Tasks completed on one day"""
    day: date
    completed: int

    def to_dict(self) -> Dict[str, object]:
        return {"date": self.day.isoformat(), "completed": self.completed}


@dataclass
class TodayCompletion:
    completed: int
    total: int

    @property
    def percent(self) -> int:
        # halves round up
        return int(self.completed * 100 / self.total + 0.5) if self.total else 0


def today_completion(tasks: Sequence[Task], now: Optional[datetime] = None) -> TodayCompletion:
    """How many of the tasks due today are done."""
    now = ensure_aware(now) or now_utc()
    due_today = [task for task in tasks if task.is_due_on(now.date(), now.tzinfo)]
    return TodayCompletion(
        completed=sum(1 for task in due_today if task.completed),
        total=len(due_today),
    )


def _completions_by_day(tasks: Sequence[Task], tz) -> Counter:
    return Counter(
        local_date(task.completed_at, tz)
        for task in tasks
        if task.completed and task.completed_at
    )


def completion_history(tasks: Sequence[Task], days: int = 14,
                       now: Optional[datetime] = None) -> List[DailyCount]:
    """Completed-task counts for the last ``days`` days, oldest first."""
    now = ensure_aware(now) or now_utc()
    counts = _completions_by_day(tasks, now.tzinfo)
    today = now.date()
    return [
        DailyCount(day, counts.get(day, 0))
        for day in (today - timedelta(days=offset) for offset in range(days - 1, -1, -1))
    ]


def current_streak(tasks: Sequence[Task], now: Optional[datetime] = None) -> int:
    """Consecutive days with at least one completion.

    A streak still counts if the latest completion was yesterday, so it does
    not reset before the user had a chance to finish something today.
    """
    now = ensure_aware(now) or now_utc()
    counts = _completions_by_day(tasks, now.tzinfo)
    day = now.date()
    if not counts.get(day):
        day -= timedelta(days=1)

    streak = 0
    while counts.get(day):
        streak += 1
        day -= timedelta(days=1)
    return streak


def points(tasks: Sequence[Task], weights: Dict[str, int]) -> int:
    """Sum of per-priority weights over completed tasks."""
    return sum(weights.get(task.priority.value, 0) for task in tasks if task.completed)
