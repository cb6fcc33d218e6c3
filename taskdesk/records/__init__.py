"""TaskDesk records — domain entities validated at the storage boundary."""

from taskdesk.records.task import (  # noqa: F401
    DEFAULT_STATUS,
    TASK_STATUSES,
    Task,
    TaskStatus,
    apply_patch,
    build_task,
    is_valid_task_id,
    new_task_id,
    task_from_document,
)

__all__ = [
    "DEFAULT_STATUS",
    "TASK_STATUSES",
    "Task",
    "TaskStatus",
    "apply_patch",
    "build_task",
    "is_valid_task_id",
    "new_task_id",
    "task_from_document",
]
