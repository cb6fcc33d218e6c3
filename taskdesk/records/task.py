"""
Task record — the sole domain entity, validated at the storage boundary.

The schema is the last line of defense: request validation runs first in the
API layer, but every store backend builds and re-validates records through
this module, so no backend can persist a task with a missing title or an
unknown status.
"""

from __future__ import annotations

import re
import secrets
import time
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from taskdesk.engine.errors import SchemaValidationError


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"


# Board column order
TASK_STATUSES = tuple(s.value for s in TaskStatus)
DEFAULT_STATUS = TaskStatus.TODO.value

_TASK_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")

# Fields a patch may touch; id and owner are bound at creation
MUTABLE_FIELDS = ("title", "description", "status")


def new_task_id() -> str:
    """
    Generate a store identifier: 4-byte Unix seconds + 8 random bytes, hex.
    Sorts roughly by creation time.
    """
    return f"{int(time.time()) & 0xFFFFFFFF:08x}{secrets.token_hex(8)}"


def is_valid_task_id(value: Any) -> bool:
    """True if value is a syntactically valid task identifier (24 hex chars)."""
    return isinstance(value, str) and bool(_TASK_ID_RE.fullmatch(value))


class Task(BaseModel):
    """
    Individual work item.

    Wire format uses camelCase (`ownerId`); attributes are snake_case.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        use_enum_values=True,
    )

    id: str = Field(pattern=r"^[0-9a-fA-F]{24}$", description="Store-assigned identifier")
    owner_id: Optional[str] = Field(default=None, alias="ownerId", description="Creating subject")
    title: str = Field(min_length=1, description="Task title")
    description: Optional[str] = Field(default=None)
    status: TaskStatus = Field(default=DEFAULT_STATUS)

    def to_document(self) -> Dict[str, Any]:
        """Serialize for JSON responses and document stores."""
        doc = self.model_dump(by_alias=True)
        if doc.get("ownerId") is None:
            doc.pop("ownerId", None)
        return doc


def _schema_error(exc: PydanticValidationError, operation: str) -> SchemaValidationError:
    fields = []
    for err in exc.errors():
        loc = err.get("loc") or ()
        name = str(loc[0]) if loc else "__root__"
        if name not in fields:
            fields.append(name)
    return SchemaValidationError(
        f"Task validation failed: {', '.join(fields)}",
        fields=fields,
        operation=operation,
    )


def build_task(
    title: Any,
    description: Any = None,
    status: Any = None,
    owner_id: Optional[str] = None,
    task_id: Optional[str] = None,
) -> Task:
    """
    Construct a new Task, assigning an identifier and the default status.

    Raises:
        SchemaValidationError: if any field violates the schema.
    """
    data: Dict[str, Any] = {
        "id": task_id or new_task_id(),
        "owner_id": owner_id,
        "title": title,
        "description": description,
        "status": DEFAULT_STATUS if status is None else status,
    }
    try:
        return Task.model_validate(data)
    except PydanticValidationError as e:
        raise _schema_error(e, "create") from e


def apply_patch(task: Task, changes: Dict[str, Any]) -> Task:
    """
    Return a copy of task with only the given fields replaced, re-validated.

    Unspecified fields keep their prior values. `id` and `owner_id` cannot
    be changed.
    """
    illegal = [k for k in changes if k not in MUTABLE_FIELDS]
    if illegal:
        raise SchemaValidationError(
            f"Task fields are immutable or unknown: {', '.join(illegal)}",
            fields=illegal,
            operation="update",
        )
    merged = task.model_dump()
    merged.update(changes)
    try:
        return Task.model_validate(merged)
    except PydanticValidationError as e:
        raise _schema_error(e, "update") from e


def task_from_document(doc: Dict[str, Any]) -> Task:
    """Rebuild a Task from a stored document (camelCase or snake_case keys)."""
    try:
        return Task.model_validate(doc)
    except PydanticValidationError as e:
        raise _schema_error(e, "load") from e
