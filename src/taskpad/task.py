"""Task data model for taskpad."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, date
from enum import Enum
from typing import List, Optional, Dict, Any

from .recurring import RepeatRule
from .utils.datetime import ensure_aware, local_date, now_utc, parse_iso, to_iso_string


DEFAULT_PROJECT = "Inbox"
DEFAULT_REMINDER = 30


class Priority(Enum):
    """Task priority levels."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @classmethod
    def parse(cls, value: Any) -> Optional["Priority"]:
        """Look up a priority by name, ignoring case."""
        if isinstance(value, cls):
            return value
        for priority in cls:
            if str(value).strip().lower() == priority.value.lower():
                return priority
        return None


class Area(Enum):
    """Life areas a task can belong to."""
    PERSONAL = "Personal"
    WORK = "Work"

    @classmethod
    def parse(cls, value: Any) -> Optional["Area"]:
        if isinstance(value, cls):
            return value
        for area in cls:
            if str(value).strip().lower() == area.value.lower():
                return area
        return None


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Subtask:
    """A checklist item inside a task."""
    title: str
    done: bool = False
    id: str = field(default_factory=new_id)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "done": self.done}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Subtask":
        return cls(
            id=data.get("id") or new_id(),
            title=data.get("title", ""),
            done=bool(data.get("done", False)),
        )


@dataclass
class Task:
    """A single task as held by the store."""

    title: str
    id: Optional[str] = None

    # Organization
    tags: List[str] = field(default_factory=list)
    project: str = DEFAULT_PROJECT
    area: Area = Area.PERSONAL
    priority: Priority = Priority.MEDIUM

    # Scheduling
    due: Optional[datetime] = None
    repeat: Optional[RepeatRule] = None
    reminder: int = DEFAULT_REMINDER  # minutes before due; stored only

    # Completion
    completed: bool = False
    completed_at: Optional[datetime] = None

    subtasks: List[Subtask] = field(default_factory=list)
    notes: str = ""

    # Maintained by the store
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        """Normalize fields so the model invariants hold."""
        self.due = ensure_aware(self.due)
        self.completed_at = ensure_aware(self.completed_at)
        self.created_at = ensure_aware(self.created_at)
        self.updated_at = ensure_aware(self.updated_at)

        self.tags = list(dict.fromkeys(tag.lstrip("#") for tag in self.tags if tag))

        if not isinstance(self.priority, Priority):
            self.priority = Priority.parse(self.priority) or Priority.MEDIUM
        if not isinstance(self.area, Area):
            self.area = Area.parse(self.area) or Area.PERSONAL
        if isinstance(self.repeat, dict):
            self.repeat = RepeatRule.from_dict(self.repeat)

        if self.completed and not self.completed_at:
            self.completed_at = now_utc()
        elif not self.completed:
            self.completed_at = None

    def mark_complete(self, now: Optional[datetime] = None):
        """Mark the task as completed."""
        self.completed = True
        self.completed_at = ensure_aware(now) or now_utc()

    def reopen(self):
        """Reopen a completed task."""
        self.completed = False
        self.completed_at = None

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """Check if the task is overdue."""
        if self.due and not self.completed:
            return self.due < (ensure_aware(now) or now_utc())
        return False

    def is_due_on(self, day: date, tz=None) -> bool:
        """Check if the task is due on the given calendar day."""
        return self.due is not None and local_date(self.due, tz) == day

    def add_subtask(self, title: str) -> Subtask:
        subtask = Subtask(title=title)
        self.subtasks.append(subtask)
        return subtask

    def toggle_subtask(self, subtask_id: str) -> bool:
        """Flip a subtask's done flag; returns False if it does not exist."""
        for subtask in self.subtasks:
            if subtask.id == subtask_id:
                subtask.done = not subtask.done
                return True
        return False

    def remove_subtask(self, subtask_id: str) -> bool:
        before = len(self.subtasks)
        self.subtasks = [s for s in self.subtasks if s.id != subtask_id]
        return len(self.subtasks) != before

    def copy_for_successor(self, due: datetime) -> "Task":
        """Duplicate this task as a fresh, incomplete occurrence due at ``due``."""
        return replace(
            self,
            id=None,
            tags=list(self.tags),
            subtasks=[Subtask.from_dict(s.to_dict()) for s in self.subtasks],
            due=due,
            completed=False,
            completed_at=None,
            created_at=None,
            updated_at=None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert the Task to a dictionary with timezone-aware ISO strings."""
        return {
            "id": self.id,
            "title": self.title,
            "tags": list(self.tags),
            "project": self.project,
            "area": self.area.value,
            "priority": self.priority.value,
            "due": to_iso_string(self.due),
            "repeat": self.repeat.to_dict() if self.repeat else None,
            "reminder": self.reminder,
            "completed": self.completed,
            "completedAt": to_iso_string(self.completed_at),
            "subtasks": [s.to_dict() for s in self.subtasks],
            "notes": self.notes,
            "createdAt": to_iso_string(self.created_at),
            "updatedAt": to_iso_string(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Create a Task from a dictionary."""
        reminder = data.get("reminder", DEFAULT_REMINDER)
        try:
            reminder = int(reminder)
        except (TypeError, ValueError):
            reminder = DEFAULT_REMINDER

        return cls(
            id=data.get("id"),
            title=data.get("title", ""),
            tags=list(data.get("tags") or []),
            project=data.get("project") or DEFAULT_PROJECT,
            area=Area.parse(data.get("area", "")) or Area.PERSONAL,
            priority=Priority.parse(data.get("priority", "")) or Priority.MEDIUM,
            due=parse_iso(data.get("due")),
            repeat=RepeatRule.from_dict(data.get("repeat")),
            reminder=reminder,
            completed=bool(data.get("completed", False)),
            completed_at=parse_iso(data.get("completedAt")),
            subtasks=[Subtask.from_dict(s) for s in data.get("subtasks") or []],
            notes=data.get("notes", ""),
            created_at=parse_iso(data.get("createdAt")),
            updated_at=parse_iso(data.get("updatedAt")),
        )
