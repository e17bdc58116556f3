"""
Recurring task support for taskpad

This module defines the recurrence rule attached to a task and the engine that
computes when the next occurrence of a completed recurring task is due.
"""

import logging
import re
from calendar import monthrange
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional, TYPE_CHECKING

from .utils.datetime import add_elapsed, ensure_aware, now_utc

if TYPE_CHECKING:
    from .task import Task


logger = logging.getLogger(__name__)

ONE_DAY = timedelta(hours=24)


class RecurrenceType(Enum):
    """Types of recurrence patterns"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Weekday(Enum):
    """Day names, numbered like ``datetime.weekday()`` (0=Monday)"""
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def number(self) -> int:
        return list(Weekday).index(self)

    @classmethod
    def parse(cls, value: Any) -> Optional["Weekday"]:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class RepeatRule:
    """A task's recurrence rule.

    ``weekday`` only pins ``WEEKLY`` rules; it is ignored for the other types.
    """
    type: RecurrenceType
    weekday: Optional[Weekday] = None

    @classmethod
    def daily(cls) -> "RepeatRule":
        return cls(RecurrenceType.DAILY)

    @classmethod
    def weekly(cls, weekday: Optional[Weekday] = None) -> "RepeatRule":
        return cls(RecurrenceType.WEEKLY, weekday)

    @classmethod
    def monthly(cls) -> "RepeatRule":
        return cls(RecurrenceType.MONTHLY)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type.value}
        if self.type == RecurrenceType.WEEKLY and self.weekday:
            data["weekday"] = self.weekday.value
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["RepeatRule"]:
        """Build a rule from its stored form.

        ``None``, ``{"type": "none"}`` and unknown types all mean "no rule".
        An unknown weekday degrades to an unpinned weekly rule.
        """
        if not data or not isinstance(data, dict):
            return None
        try:
            rec_type = RecurrenceType(str(data.get("type", "")).lower())
        except ValueError:
            return None
        weekday = None
        if rec_type == RecurrenceType.WEEKLY and data.get("weekday"):
            weekday = Weekday.parse(data["weekday"])
        return cls(rec_type, weekday)

    def describe(self) -> str:
        if self.type == RecurrenceType.WEEKLY and self.weekday:
            return f"every {self.weekday.value}"
        return self.type.value


class RecurrenceParser:
    """Parses standalone recurrence phrases such as ``every friday``"""

    PATTERNS = {
        r'^(none|never|off)$': None,
        r'^(daily|every day)$': RecurrenceType.DAILY,
        r'^(weekly|every week)$': RecurrenceType.WEEKLY,
        r'^(monthly|every month)$': RecurrenceType.MONTHLY,
    }
    WEEKDAY_PATTERN = re.compile(
        r'^(?:every|weekly on)\s+(monday|tuesday|wednesday|thursday|friday|saturday|sunday)$'
    )

    @classmethod
    def parse(cls, pattern_str: str) -> Optional[RepeatRule]:
        """Parse a recurrence phrase, returning None for no/unknown rule"""
        pattern_str = " ".join((pattern_str or "").lower().split())

        match = cls.WEEKDAY_PATTERN.match(pattern_str)
        if match:
            return RepeatRule.weekly(Weekday(match.group(1)))

        for regex, rec_type in cls.PATTERNS.items():
            if re.match(regex, pattern_str):
                return RepeatRule(rec_type) if rec_type else None

        logger.debug(f"Unrecognised recurrence phrase: {pattern_str!r}")
        return None


def add_months(dt: datetime, months: int) -> datetime:
    """Move ``dt`` by whole calendar months, clamping to the month's last day."""
    month = dt.month - 1 + months
    year = dt.year + month // 12
    month = month % 12 + 1
    day = min(dt.day, monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def _next_weekday(from_date: datetime, weekday: Weekday) -> datetime:
    """Step forward a day at a time until ``weekday``; never returns from_date."""
    candidate = add_elapsed(from_date, ONE_DAY)
    while candidate.weekday() != weekday.number:
        candidate = add_elapsed(candidate, ONE_DAY)
    return candidate


def calculate_next_occurrence(from_date: datetime, rule: Optional[RepeatRule]) -> Optional[datetime]:
    """Next occurrence of ``rule`` after ``from_date``"""
    if rule is None:
        return None

    from_date = ensure_aware(from_date)

    if rule.type == RecurrenceType.DAILY:
        return add_elapsed(from_date, ONE_DAY)
    elif rule.type == RecurrenceType.WEEKLY:
        if rule.weekday is None:
            return add_elapsed(from_date, 7 * ONE_DAY)
        return _next_weekday(from_date, rule.weekday)
    elif rule.type == RecurrenceType.MONTHLY:
        return add_months(from_date, 1)

    return None


def next_occurrence(task: "Task", now: Optional[datetime] = None) -> Optional[datetime]:
    """Compute when the next occurrence of a recurring task is due.

    The base is the task's due date, or ``now`` when it has none. Tasks
    without a repeat rule have no next occurrence.
    """
    if task.repeat is None:
        return None
    base = task.due or ensure_aware(now) or now_utc()
    return calculate_next_occurrence(base, task.repeat)


def build_successor(task: "Task", now: Optional[datetime] = None) -> Optional["Task"]:
    """Draft the task that replaces a just-completed recurring task.

    The copy carries every field except identity, completion state and store
    timestamps; its due date is the next occurrence.
    """
    next_due = next_occurrence(task, now)
    if next_due is None:
        return None
    logger.debug(f"Next occurrence of {task.id} ({task.repeat.describe()}) is {next_due.isoformat()}")
    return task.copy_for_successor(next_due)
