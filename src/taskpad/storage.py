"""Task store for taskpad.

The store owns task identity and timestamps and pushes the full, ordered task
list to subscribers after every change. ``InMemoryTaskStore`` keeps everything
in process; ``YamlTaskStore`` also writes each user's tasks to a YAML file.
"""

import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import fields, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml

from .config import ConfigModel
from .recurring import build_successor
from .task import Task, new_id
from .utils.datetime import ensure_aware, min_utc, now_utc


logger = logging.getLogger(__name__)

TaskListener = Callable[[List[Task]], None]

# Fields only the store may set
PROTECTED_FIELDS = {"id", "created_at", "updated_at"}
PATCHABLE_FIELDS = {f.name for f in fields(Task)} - PROTECTED_FIELDS


class StoreError(Exception):
    """Base error for task store failures."""


class TaskNotFoundError(StoreError):
    """Raised when a task id does not exist for the user."""

    def __init__(self, user_id: str, task_id: str):
        self.user_id = user_id
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found for user {user_id}")


class TaskStore(ABC):
    """Interface of the persistence collaborator."""

    @abstractmethod
    def subscribe_tasks(self, user_id: str, callback: TaskListener) -> Callable[[], None]:
        """Push the user's task list now and on every change; returns an unsubscribe function"""

    @abstractmethod
    def list_tasks(self, user_id: str) -> List[Task]:
        """Current task list, newest first"""

    @abstractmethod
    def get_task(self, user_id: str, task_id: str) -> Task:
        pass

    @abstractmethod
    def create_task(self, user_id: str, task: Task) -> str:
        pass

    @abstractmethod
    def update_task(self, user_id: str, task_id: str, patch: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def delete_task(self, user_id: str, task_id: str) -> None:
        pass

    @abstractmethod
    def toggle_completion(self, user_id: str, task: Task, now: Optional[datetime] = None) -> Optional[str]:
        pass


class InMemoryTaskStore(TaskStore):
    """Task store kept in process memory."""

    def __init__(self, clock: Callable[[], datetime] = now_utc):
        self.clock = clock
        self._tasks: Dict[str, List[Task]] = {}
        self._listeners: Dict[str, List[TaskListener]] = {}

    # -- queries ---------------------------------------------------------

    def _user_tasks(self, user_id: str) -> List[Task]:
        return self._tasks.setdefault(user_id, [])

    def list_tasks(self, user_id: str) -> List[Task]:
        ordered = sorted(self._user_tasks(user_id),
                         key=lambda t: t.created_at or min_utc(), reverse=True)
        return [copy.deepcopy(task) for task in ordered]

    def _find(self, user_id: str, task_id: str) -> int:
        for index, task in enumerate(self._user_tasks(user_id)):
            if task.id == task_id:
                return index
        raise TaskNotFoundError(user_id, task_id)

    def get_task(self, user_id: str, task_id: str) -> Task:
        tasks = self._user_tasks(user_id)
        return copy.deepcopy(tasks[self._find(user_id, task_id)])

    # -- subscriptions ---------------------------------------------------

    def subscribe_tasks(self, user_id: str, callback: TaskListener) -> Callable[[], None]:
        listeners = self._listeners.setdefault(user_id, [])
        listeners.append(callback)
        self._deliver(callback, user_id, self.list_tasks(user_id))

        def unsubscribe():
            if callback in listeners:
                listeners.remove(callback)

        return unsubscribe

    def _deliver(self, callback: TaskListener, user_id: str, snapshot: List[Task]):
        try:
            callback(snapshot)
        except Exception as e:
            logger.error(f"Task listener for {user_id} failed: {e}")

    def _changed(self, user_id: str):
        """Persist and notify subscribers after a mutation."""
        self._persist(user_id)
        for callback in list(self._listeners.get(user_id, [])):
            self._deliver(callback, user_id, self.list_tasks(user_id))

    def _persist(self, user_id: str):
        pass

    # -- mutations -------------------------------------------------------

    def create_task(self, user_id: str, task: Task) -> str:
        now = self.clock()
        stored = replace(
            copy.deepcopy(task),
            id=new_id(),
            completed=False,
            completed_at=None,
            created_at=now,
            updated_at=now,
        )
        self._user_tasks(user_id).insert(0, stored)
        logger.debug(f"Created task {stored.id} for {user_id}: {stored.title!r}")
        self._changed(user_id)
        return stored.id

    def update_task(self, user_id: str, task_id: str, patch: Dict[str, Any]) -> None:
        illegal = set(patch) - PATCHABLE_FIELDS
        if illegal:
            raise StoreError(f"Cannot update field(s): {', '.join(sorted(illegal))}")

        tasks = self._user_tasks(user_id)
        index = self._find(user_id, task_id)
        tasks[index] = replace(tasks[index], **patch, updated_at=self.clock())
        self._changed(user_id)

    def delete_task(self, user_id: str, task_id: str) -> None:
        tasks = self._user_tasks(user_id)
        del tasks[self._find(user_id, task_id)]
        logger.debug(f"Deleted task {task_id} for {user_id}")
        self._changed(user_id)

    def toggle_completion(self, user_id: str, task: Task, now: Optional[datetime] = None) -> Optional[str]:
        """Flip completion of a stored task.

        Completing a task with a repeat rule also creates its next occurrence;
        the new task's id is returned. Reopening never creates anything.
        """
        now = ensure_aware(now) or self.clock()
        tasks = self._user_tasks(user_id)
        index = self._find(user_id, task.id)
        current = tasks[index]

        if current.completed:
            tasks[index] = replace(current, completed=False, completed_at=None, updated_at=now)
            self._changed(user_id)
            return None

        tasks[index] = replace(current, completed=True, completed_at=now, updated_at=now)
        successor = build_successor(current, now)
        if successor is None:
            self._changed(user_id)
            return None

        logger.info(f"Task {current.id} repeats ({current.repeat.describe()}); next due {successor.due.isoformat()}")
        return self.create_task(user_id, successor)

    def replace_tasks(self, user_id: str, tasks: List[Task]) -> None:
        """Swap in a whole task list (used by imports), keeping ids and timestamps."""
        now = self.clock()
        restored = []
        for task in tasks:
            restored.append(replace(
                copy.deepcopy(task),
                id=task.id or new_id(),
                created_at=task.created_at or now,
                updated_at=task.updated_at or now,
            ))
        self._tasks[user_id] = restored
        self._changed(user_id)


class YamlTaskStore(InMemoryTaskStore):
    """Task store persisted as one YAML file per user."""

    def __init__(self, config: ConfigModel, clock: Callable[[], datetime] = now_utc):
        super().__init__(clock)
        self.config = config

    def _path(self, user_id: str) -> Path:
        return self.config.get_user_path(user_id)

    def _user_tasks(self, user_id: str) -> List[Task]:
        if user_id not in self._tasks:
            self._tasks[user_id] = self._load(user_id)
        return self._tasks[user_id]

    def _load(self, user_id: str) -> List[Task]:
        path = self._path(user_id)
        if not path.exists():
            return []
        try:
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise StoreError(f"Failed to read tasks from {path}: {e}") from e
        if not isinstance(data, dict):
            raise StoreError(f"Malformed task file {path}")
        tasks = [Task.from_dict(item) for item in data.get('tasks') or []]
        logger.debug(f"Loaded {len(tasks)} tasks for {user_id} from {path}")
        return tasks

    def _persist(self, user_id: str):
        path = self._path(user_id)
        data = {'tasks': [task.to_dict() for task in self._tasks.get(user_id, [])]}
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w') as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
        except OSError as e:
            raise StoreError(f"Failed to write tasks to {path}: {e}") from e
