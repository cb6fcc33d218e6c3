"""
Task routes — CRUD over /api/tasks.

Every route depends on the auth gate. Handlers never catch errors; they
propagate to the error responder. Tasks are scoped to the caller's subject
whenever the gate supplies one.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Header, Request

from taskdesk.engine.context import Principal, set_request_context
from taskdesk.engine.security import AuthGate
from taskdesk.engine.validation import validate_create, validate_task_id, validate_update
from taskdesk.storage.base import TaskStore

router = APIRouter(prefix="/api/tasks", tags=["tasks"])

DELETED_MESSAGE = "Task deleted successfully"

_ERROR_RESPONSES = {
    400: {"description": "Validation Error / Invalid ID format"},
    401: {"description": "Unauthorized"},
    429: {"description": "Too many requests"},
    500: {"description": "Internal Server Error"},
}
_NOT_FOUND = {404: {"description": "Task not found"}}


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_principal(request: Request, authorization: Optional[str] = Header(None)) -> Principal:
    """Run the auth gate; bind the principal to the request."""
    gate: AuthGate = request.app.state.auth_gate
    ctx = getattr(request.state, "context", None)
    if ctx is not None:
        ctx.principal = Principal(subject=None, provider=gate.provider)
    principal = gate.authenticate(authorization)
    request.state.principal = principal
    if ctx is not None:
        ctx.principal = principal
        set_request_context(ctx)
    return principal


def get_store(request: Request) -> TaskStore:
    return request.app.state.task_store


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

@router.get("", summary="List tasks", responses=_ERROR_RESPONSES)
def list_tasks(
    principal: Principal = Depends(get_principal),
    store: TaskStore = Depends(get_store),
) -> List[Dict[str, Any]]:
    return [t.to_document() for t in store.list(owner_id=principal.subject)]


@router.post("", status_code=201, summary="Create a task", responses=_ERROR_RESPONSES)
def create_task(
    body: Any = Body(None),
    principal: Principal = Depends(get_principal),
    store: TaskStore = Depends(get_store),
) -> Dict[str, Any]:
    fields = validate_create(body)
    return store.create(fields, owner_id=principal.subject).to_document()


@router.get("/{task_id}", summary="Get a task", responses={**_ERROR_RESPONSES, **_NOT_FOUND})
def get_task(
    task_id: str,
    principal: Principal = Depends(get_principal),
    store: TaskStore = Depends(get_store),
) -> Dict[str, Any]:
    task_id = validate_task_id(task_id)
    return store.get(task_id, owner_id=principal.subject).to_document()


@router.put("/{task_id}", summary="Update a task", responses={**_ERROR_RESPONSES, **_NOT_FOUND})
def update_task(
    task_id: str,
    body: Any = Body(None),
    principal: Principal = Depends(get_principal),
    store: TaskStore = Depends(get_store),
) -> Dict[str, Any]:
    changes = validate_update(task_id, body)
    task_id = validate_task_id(task_id)
    return store.update(task_id, changes, owner_id=principal.subject).to_document()


@router.delete("/{task_id}", summary="Delete a task", responses={**_ERROR_RESPONSES, **_NOT_FOUND})
def delete_task(
    task_id: str,
    principal: Principal = Depends(get_principal),
    store: TaskStore = Depends(get_store),
) -> Dict[str, str]:
    task_id = validate_task_id(task_id)
    store.delete(task_id, owner_id=principal.subject)
    return {"message": DELETED_MESSAGE}
