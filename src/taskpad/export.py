"""
Export and import for taskpad

Two formats are supported: a single-task iCalendar file for adding a task to
Google/Outlook calendars, and a JSON snapshot of the whole application state
that can be imported back.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, NamedTuple, Optional

from .task import Task
from .utils.datetime import ensure_aware, now_utc


logger = logging.getLogger(__name__)

PRODID = "-//taskpad//EN"
EVENT_DURATION = timedelta(hours=1)


class StateImportError(ValueError):
    """Raised when an import file is not a valid taskpad export."""


def _format_ical_datetime(dt: datetime) -> str:
    """UTC iCal timestamp with the seconds zeroed"""
    return ensure_aware(dt).astimezone(timezone.utc).strftime("%Y%m%dT%H%M00Z")


def _escape_summary(text: str) -> str:
    return text.replace(",", "\\,")


def _escape_description(text: str) -> str:
    return text.replace("\n", "\\n")


def task_to_ics(task: Task, now: Optional[datetime] = None) -> str:
    """Render a task as a one-event iCalendar document.

    The event starts at the task's due date (or ``now`` when undated) and
    lasts one hour.
    """
    now = ensure_aware(now) or now_utc()
    start = task.due or now
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "BEGIN:VEVENT",
        f"UID:{task.id}@taskpad",
        f"DTSTAMP:{_format_ical_datetime(now)}",
        f"DTSTART:{_format_ical_datetime(start)}",
        f"DTEND:{_format_ical_datetime(start + EVENT_DURATION)}",
        f"SUMMARY:{_escape_summary(task.title or '')}",
        f"DESCRIPTION:{_escape_description(task.notes or '')}",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(lines)


def ics_filename(task: Task) -> str:
    return f"{task.title or 'task'}.ics"


class CalendarEvent(NamedTuple):
    uid: str
    summary: str
    description: str
    start: Optional[datetime]


def _parse_ical_datetime(date_str: Optional[str]) -> Optional[datetime]:
    """Parse iCal datetime string"""
    if not date_str:
        return None
    try:
        if date_str.endswith('Z'):
            return datetime.strptime(date_str, '%Y%m%dT%H%M%SZ').replace(tzinfo=timezone.utc)
        elif 'T' in date_str:
            return datetime.strptime(date_str, '%Y%m%dT%H%M%S').replace(tzinfo=timezone.utc)
        return datetime.strptime(date_str, '%Y%m%d').replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def parse_ics_events(content: str) -> List[CalendarEvent]:
    """Read the VEVENTs of an iCalendar document"""
    events = []
    current: Optional[Dict[str, str]] = None

    for line in content.splitlines():
        line = line.strip()
        if line == "BEGIN:VEVENT":
            current = {}
        elif line == "END:VEVENT":
            if current is not None:
                events.append(CalendarEvent(
                    uid=current.get('UID', ''),
                    summary=current.get('SUMMARY', '').replace('\\,', ','),
                    description=current.get('DESCRIPTION', '').replace('\\n', '\n'),
                    start=_parse_ical_datetime(current.get('DTSTART')),
                ))
            current = None
        elif current is not None and ':' in line:
            key, value = line.split(':', 1)
            current[key.split(';', 1)[0]] = value

    return events


def _default_projects() -> List[str]:
    return ["Inbox", "Work", "Personal", "School"]


@dataclass
class AppState:
    """Everything the app keeps besides display preferences."""
    tasks: List[Task] = field(default_factory=list)
    projects: List[str] = field(default_factory=_default_projects)
    points: int = 0
    history: List[Dict[str, Any]] = field(default_factory=list)  # {date: 'YYYY-MM-DD', completed: n}
    collaborators: List[str] = field(default_factory=list)

    def add_project(self, name: str) -> bool:
        if name in self.projects:
            return False
        self.projects.append(name)
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tasks': [task.to_dict() for task in self.tasks],
            'projects': list(self.projects),
            'points': self.points,
            'history': list(self.history),
            'collaborators': list(self.collaborators),
        }


def export_state(state: AppState) -> str:
    """Serialize the application state to JSON"""
    return json.dumps(state.to_dict(), indent=2, ensure_ascii=False)


def import_state(content: str, base: Optional[AppState] = None) -> AppState:
    """Load a JSON export, merging it over ``base`` (or the defaults).

    Keys missing from the file keep their current values.
    """
    try:
        data = json.loads(content)
    except (TypeError, ValueError) as e:
        raise StateImportError(f"Invalid file: {e}") from e
    if not isinstance(data, dict):
        raise StateImportError("Invalid file: expected a JSON object")

    state = base or AppState()
    try:
        if 'tasks' in data:
            state.tasks = [Task.from_dict(item) for item in data['tasks']]
        if 'projects' in data:
            state.projects = [str(name) for name in data['projects']]
        if 'points' in data:
            state.points = int(data['points'])
        if 'history' in data:
            state.history = [dict(entry) for entry in data['history']]
        if 'collaborators' in data:
            state.collaborators = list(data['collaborators'])
    except (AttributeError, TypeError, ValueError) as e:
        raise StateImportError(f"Invalid file: {e}") from e

    logger.info(f"Imported state with {len(state.tasks)} tasks")
    return state
