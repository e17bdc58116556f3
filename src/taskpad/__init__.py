"""taskpad - personal task manager with quick capture, saved searches and recurring tasks."""

__version__ = "0.1.0"

from .task import Task, Subtask, Priority, Area
from .recurring import RepeatRule, RecurrenceType, Weekday, next_occurrence, build_successor
from .parser import TaskDraft, parse_quick_input
from .query_engine import evaluate

__all__ = [
    "Task",
    "Subtask",
    "Priority",
    "Area",
    "RepeatRule",
    "RecurrenceType",
    "Weekday",
    "TaskDraft",
    "next_occurrence",
    "build_successor",
    "parse_quick_input",
    "evaluate",
    "__version__",
]
