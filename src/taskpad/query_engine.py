"""
Query Engine for taskpad

Filters a task list with a small boolean search language:

    tag:urgent AND due:today
    project:Work OR priority:high
    groceries

Terms are joined by ``AND`` / ``OR`` and folded strictly left to right, with no
operator precedence: ``a OR b AND c`` means ``(a OR b) AND c``. Anything that
is not a recognised ``field:value`` term searches task titles.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from .task import Task
from .utils.datetime import ensure_aware, local_date, now_utc


logger = logging.getLogger(__name__)

CONNECTIVE = re.compile(r'\s+(AND|OR)\s+', re.IGNORECASE)

# First match wins
TERM_PATTERNS = [
    ('tag', re.compile(r'^tag:(.+)$', re.IGNORECASE)),
    ('project', re.compile(r'^project:(.+)$', re.IGNORECASE)),
    ('priority', re.compile(r'^priority:(high|medium|low)$', re.IGNORECASE)),
    ('due', re.compile(r'^due:(today|overdue|none)$', re.IGNORECASE)),
    ('completed', re.compile(r'^completed:(true|false)$', re.IGNORECASE)),
]


class QueryNode(ABC):
    """Abstract base class for query AST nodes"""

    @abstractmethod
    def evaluate(self, task: Task, now: datetime) -> bool:
        """Evaluate this node against a task"""
        pass


@dataclass
class FieldQuery(QueryNode):
    """A field-specific term (e.g., priority:high)"""
    field: str
    value: str

    def evaluate(self, task: Task, now: datetime) -> bool:
        if self.field == 'tag':
            return self.value in task.tags
        elif self.field == 'project':
            return (task.project or "").lower() == self.value.lower()
        elif self.field == 'priority':
            return task.priority.value.lower() == self.value.lower()
        elif self.field == 'due':
            return self._due_match(task, now)
        elif self.field == 'completed':
            return task.completed == (self.value.lower() == 'true')
        return False

    def _due_match(self, task: Task, now: datetime) -> bool:
        when = self.value.lower()
        if when == 'none':
            return task.due is None
        if task.due is None:
            return False
        if when == 'today':
            return local_date(task.due, now.tzinfo) == now.date()
        if when == 'overdue':
            return task.due < now and not task.completed
        return False


@dataclass
class TextQuery(QueryNode):
    """A case-insensitive title search"""
    text: str

    def evaluate(self, task: Task, now: datetime) -> bool:
        return self.text.lower() in (task.title or "").lower()


@dataclass
class BinaryOp(QueryNode):
    """Binary operation (AND, OR)"""
    left: QueryNode
    operator: str  # 'AND', 'OR'
    right: QueryNode

    def evaluate(self, task: Task, now: datetime) -> bool:
        if self.operator == 'AND':
            return self.left.evaluate(task, now) and self.right.evaluate(task, now)
        elif self.operator == 'OR':
            return self.left.evaluate(task, now) or self.right.evaluate(task, now)
        return False


# What a blank search shows
DEFAULT_VIEW = FieldQuery('completed', 'false')


def parse_term(token: str) -> QueryNode:
    """Parse a single search term; unknown forms become title searches"""
    token = token.strip()
    for field_name, pattern in TERM_PATTERNS:
        match = pattern.match(token)
        if match:
            return FieldQuery(field_name, match.group(1))
    return TextQuery(token)


class QueryParser:
    """Parses a query string into an AST by a left-to-right fold"""

    def __init__(self, query: str):
        self.query = query or ""

    def parse(self) -> QueryNode:
        if not self.query.strip():
            return DEFAULT_VIEW

        parts = CONNECTIVE.split(self.query)
        node = parse_term(parts[0])
        for i in range(1, len(parts) - 1, 2):
            node = BinaryOp(node, parts[i].upper(), parse_term(parts[i + 1]))
        return node


class QueryEngine:
    """Main query execution engine"""

    def __init__(self, now_provider: Callable[[], datetime] = now_utc):
        self.now_provider = now_provider

    def parse(self, query: str) -> QueryNode:
        return QueryParser(query).parse()

    def search(self, tasks: Sequence[Task], query: str, now: Optional[datetime] = None) -> List[Task]:
        """Return the tasks matching ``query``, in their original order"""
        now = ensure_aware(now) or self.now_provider()
        ast = self.parse(query)
        logger.debug(f"Query {query!r} parsed to {ast}")
        return [task for task in tasks if ast.evaluate(task, now)]


def evaluate(tasks: Sequence[Task], query: str, now: Optional[datetime] = None) -> List[Task]:
    """Filter ``tasks`` by ``query``; a blank query keeps incomplete tasks."""
    return QueryEngine().search(tasks, query, now)
