"""In-process task store. Insertion-ordered, lock-protected; contents die with the process."""

from __future__ import annotations

import threading
from typing import Dict, List, Optional

from taskdesk.records.task import Task
from taskdesk.storage.base import TaskStore


class MemoryTaskStore(TaskStore):
    backend = "memory"

    def __init__(self):
        self._tasks: Dict[str, Task] = {}
        self._lock = threading.Lock()

    def _insert(self, task: Task) -> None:
        with self._lock:
            self._tasks[task.id] = task

    def _all(self, owner_id: Optional[str]) -> List[Task]:
        with self._lock:
            tasks = list(self._tasks.values())
        if owner_id is None:
            return tasks
        return [t for t in tasks if t.owner_id == owner_id]

    def _load(self, task_id: str) -> Optional[Task]:
        with self._lock:
            return self._tasks.get(task_id)

    def _replace(self, task: Task) -> None:
        # dict assignment keeps the original insertion position
        with self._lock:
            self._tasks[task.id] = task

    def _remove(self, task_id: str) -> bool:
        with self._lock:
            return self._tasks.pop(task_id, None) is not None

    def __len__(self) -> int:
        return len(self._tasks)
