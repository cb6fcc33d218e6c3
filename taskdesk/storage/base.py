"""
TaskDesk Task Store — Capability interface shared by every storage backend.

Implements:
- TaskStore: create / list / get / update / delete over Task records
- Ownership scoping: when an owner_id is given, tasks of other owners are
  invisible (reported as not found)
- Record-operation logging (records/execution)

Backends implement five primitives (_insert, _all, _load, _replace,
_remove); schema enforcement, scoping and logging live here so they cannot
drift between backends.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from taskdesk.engine.context import get_request_context
from taskdesk.engine.errors import NotFoundError
from taskdesk.engine.logging import log, log_record_operation
from taskdesk.records.task import Task, apply_patch, build_task

logger = logging.getLogger("taskdesk.storage")

NOT_FOUND_MESSAGE = "Task not found"


class TaskStore(ABC):
    """Abstract task store. One instance is chosen at start-up."""

    backend: str = "abstract"

    # -- primitives ---------------------------------------------------------

    @abstractmethod
    def _insert(self, task: Task) -> None:
        ...

    @abstractmethod
    def _all(self, owner_id: Optional[str]) -> List[Task]:
        """All tasks in creation order, filtered by owner when given."""

    @abstractmethod
    def _load(self, task_id: str) -> Optional[Task]:
        ...

    @abstractmethod
    def _replace(self, task: Task) -> None:
        ...

    @abstractmethod
    def _remove(self, task_id: str) -> bool:
        """Delete by id. Returns False if nothing was deleted."""

    def close(self) -> None:
        """Release backend resources."""

    # -- operations ---------------------------------------------------------

    def create(self, fields: Dict[str, Any], owner_id: Optional[str] = None) -> Task:
        """Build, validate and persist a new task. Status defaults to todo."""
        start = time.time()
        task = build_task(
            title=fields.get("title"),
            description=fields.get("description"),
            status=fields.get("status"),
            owner_id=owner_id,
        )
        self._insert(task)
        self._log("create", task.id, owner_id, sorted(fields), start)
        return task

    def list(self, owner_id: Optional[str] = None) -> List[Task]:
        """Tasks in creation order; only the owner's when owner_id is given."""
        return self._all(owner_id)

    def get(self, task_id: str, owner_id: Optional[str] = None) -> Task:
        """Fetch one task or raise NotFoundError."""
        task = self._load(task_id)
        if task is None or not self._visible(task, owner_id):
            raise NotFoundError(NOT_FOUND_MESSAGE, task_id=task_id)
        return task

    def update(self, task_id: str, changes: Dict[str, Any], owner_id: Optional[str] = None) -> Task:
        """Apply only the given fields, re-validate, persist and return the result."""
        start = time.time()
        current = self.get(task_id, owner_id)
        updated = apply_patch(current, changes)
        self._replace(updated)
        self._log("update", task_id, owner_id, sorted(changes), start)
        return updated

    def delete(self, task_id: str, owner_id: Optional[str] = None) -> None:
        """Hard delete. Raises NotFoundError if the task is absent or not visible."""
        start = time.time()
        self.get(task_id, owner_id)
        if not self._remove(task_id):
            raise NotFoundError(NOT_FOUND_MESSAGE, task_id=task_id)
        self._log("delete", task_id, owner_id, None, start)

    # -- helpers ------------------------------------------------------------

    @staticmethod
    def _visible(task: Task, owner_id: Optional[str]) -> bool:
        return owner_id is None or task.owner_id == owner_id

    def _log(
        self,
        operation: str,
        task_id: str,
        owner_id: Optional[str],
        fields: Optional[List[str]],
        start: float,
    ) -> None:
        duration_ms = (time.time() - start) * 1000
        logger.debug(f"{self.backend} {operation} {task_id} ({duration_ms:.1f}ms)")
        ctx = get_request_context()
        log(log_record_operation(
            operation=operation,
            record_id=task_id,
            backend=self.backend,
            subject=owner_id,
            fields_changed=fields,
            duration_ms=duration_ms,
            request_id=ctx.request_id if ctx else None,
        ))
