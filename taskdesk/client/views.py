"""
TaskDesk views — list and board view models derived from a TaskState.

Views are pure functions of the state; the controllers hold the only
UI-local state (the card being dragged, the task being edited) and act
through a TaskClient.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from taskdesk.client.store import TaskClient, TaskState
from taskdesk.records.task import TASK_STATUSES

ALL = "all"

COLUMN_TITLES = {
    "todo": "To Do",
    "in-progress": "In Progress",
    "done": "Done",
}

EDITABLE_FIELDS = ("title", "description", "status")


# ---------------------------------------------------------------------------
# View models
# ---------------------------------------------------------------------------

@dataclass
class BoardColumn:
    status: str
    title: str
    tasks: List[Dict[str, Any]] = field(default_factory=list)


def list_view(state: TaskState, status_filter: str = ALL) -> List[Dict[str, Any]]:
    """Tasks in collection order, optionally only one status."""
    if status_filter != ALL and status_filter not in TASK_STATUSES:
        raise ValueError(f"Unknown status filter: {status_filter}")
    return [
        t for t in state.tasks
        if status_filter == ALL or t.get("status") == status_filter
    ]


def board_view(state: TaskState) -> List[BoardColumn]:
    """One column per status, in board order; tasks keep collection order."""
    columns = [BoardColumn(status=s, title=COLUMN_TITLES.get(s, s)) for s in TASK_STATUSES]
    by_status = {c.status: c for c in columns}
    for task in state.tasks:
        column = by_status.get(task.get("status"))
        if column is not None:
            column.tasks.append(task)
    return columns


# ---------------------------------------------------------------------------
# Controllers
# ---------------------------------------------------------------------------

class EditSession:
    """Inline edit: a private draft of one task until save or cancel."""

    def __init__(self, client: TaskClient):
        self._client = client
        self._original: Dict[str, Any] = {}
        self.draft: Optional[Dict[str, Any]] = None

    @property
    def editing_id(self) -> Optional[str]:
        return self.draft.get("id") if self.draft else None

    def start(self, task: Dict[str, Any]) -> None:
        self._original = dict(task)
        self.draft = dict(task)

    def change(self, name: str, value: Any) -> None:
        if self.draft is None:
            return
        if name not in EDITABLE_FIELDS:
            raise ValueError(f"Field is not editable: {name}")
        self.draft[name] = value

    def save(self) -> bool:
        """
        Send only the fields that changed as a partial update. The draft is
        closed either way.
        """
        if self.draft is None:
            return False
        draft, self.draft = self.draft, None
        updates = {
            k: draft[k] for k in EDITABLE_FIELDS
            if k in draft and draft[k] != self._original.get(k)
        }
        if not updates:
            return True
        return self._client.update_task(draft["id"], updates)

    def cancel(self) -> None:
        self.draft = None


class ListController:
    """List view state: status filter and inline edit."""

    def __init__(self, client: TaskClient):
        self.client = client
        self.status_filter = ALL
        self.edit = EditSession(client)

    def rows(self) -> List[Dict[str, Any]]:
        return list_view(self.client.state, self.status_filter)

    def set_filter(self, status_filter: str) -> None:
        if status_filter != ALL and status_filter not in TASK_STATUSES:
            raise ValueError(f"Unknown status filter: {status_filter}")
        self.status_filter = status_filter

    def delete(self, task_id: str) -> bool:
        return self.client.delete_task(task_id)


class BoardController:
    """
    Board interactions.

    Dropping a card on a different column sends a status-only update;
    dropping it back on its own column does nothing. Cards cannot be
    dragged while an edit is open.
    """

    def __init__(self, client: TaskClient):
        self.client = client
        self.dragged: Optional[Dict[str, Any]] = None
        self.edit = EditSession(client)

    def columns(self) -> List[BoardColumn]:
        return board_view(self.client.state)

    def drag_start(self, task: Dict[str, Any]) -> bool:
        if self.edit.draft is not None:
            return False
        self.dragged = task
        return True

    def drop(self, column: str) -> bool:
        """Returns True if an update was sent."""
        if column not in TASK_STATUSES:
            raise ValueError(f"Unknown column: {column}")
        dragged, self.dragged = self.dragged, None
        if dragged is None or dragged.get("status") == column:
            return False
        self.client.update_task(dragged["id"], {"status": column})
        return True

    def delete(self, task_id: str) -> bool:
        return self.client.delete_task(task_id)


# ---------------------------------------------------------------------------
# Text rendering (CLI)
# ---------------------------------------------------------------------------

def _task_line(task: Dict[str, Any]) -> str:
    line = f"{task.get('id', '?')}  {task.get('title', '')}"
    if task.get("description"):
        line += f" - {task['description']}"
    return line


def render_list(state: TaskState, status_filter: str = ALL) -> str:
    rows = list_view(state, status_filter)
    if state.error:
        header = f"! {state.error}"
    else:
        header = f"Task List ({len(rows)})"
    lines = [header]
    for task in rows:
        lines.append(f"[{task.get('status', '?'):<11}] {_task_line(task)}")
    return "\n".join(lines)


def render_board(state: TaskState) -> str:
    lines = [f"! {state.error}"] if state.error else ["Task Board"]
    for column in board_view(state):
        lines.append("")
        lines.append(f"== {column.title} ({len(column.tasks)}) ==")
        for task in column.tasks:
            lines.append(f"  {_task_line(task)}")
    return "\n".join(lines)
