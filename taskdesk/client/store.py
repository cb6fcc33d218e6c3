"""
TaskDesk client data hook — owns the client-side task collection.

TaskClient talks to /api/tasks and keeps a TaskState current:
- every mutation is followed by a full re-fetch of the collection
- failures set a fixed, user-facing message and keep the previous tasks;
  nothing is raised to the caller
- is_loading is True for the duration of each call
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import httpx

logger = logging.getLogger("taskdesk.client.store")

TASKS_PATH = "/api/tasks"
DEFAULT_API_URL = "http://localhost:5001"

FETCH_ERROR = "Error fetching tasks. Please try again later."
ADD_ERROR = "Error adding task. Please try again later."
UPDATE_ERROR = "Error updating task. Please try again later."
DELETE_ERROR = "Error deleting task. Please try again later."


class TokenUnavailableError(Exception):
    """The token provider failed; treated like any other request failure."""


@dataclass
class TaskState:
    """Client-side task collection plus loading / error flags."""

    tasks: List[Dict[str, Any]] = field(default_factory=list)
    is_loading: bool = False
    error: Optional[str] = None

    def find(self, task_id: str) -> Optional[Dict[str, Any]]:
        for task in self.tasks:
            if task.get("id") == task_id:
                return task
        return None


class TaskClient:
    """
    REST client bound to one TaskState.

    Args:
        base_url: API root (default http://localhost:5001).
        state: State container to update; a fresh one if omitted.
        token_provider: Callable returning a bearer token (or None) per call.
        http_client: Pre-built httpx.Client (tests pass one with a MockTransport).
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        state: Optional[TaskState] = None,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        http_client: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ):
        self.state = state if state is not None else TaskState()
        self._token_provider = token_provider
        self._http = http_client or httpx.Client(base_url=base_url, timeout=timeout)

    def _headers(self) -> Dict[str, str]:
        try:
            token = self._token_provider() if self._token_provider else None
        except Exception as e:
            raise TokenUnavailableError(str(e)) from e
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        response = self._http.request(method, path, headers=self._headers(), **kwargs)
        response.raise_for_status()
        return response

    def _begin(self) -> None:
        self.state.is_loading = True
        self.state.error = None

    # ── Operations ──

    def fetch_tasks(self) -> List[Dict[str, Any]]:
        """Replace the collection with the server's. Returns the tasks held afterwards."""
        self._begin()
        try:
            tasks = self._request("GET", TASKS_PATH).json()
            if not isinstance(tasks, list):
                raise ValueError("task list response is not an array")
            self.state.tasks = tasks
        except (httpx.HTTPError, TokenUnavailableError, ValueError) as e:
            logger.error(f"Error fetching tasks: {e}")
            self.state.error = FETCH_ERROR
        finally:
            self.state.is_loading = False
        return self.state.tasks

    def add_task(self, task: Dict[str, Any]) -> bool:
        """Create a task, then re-fetch. Returns False on failure."""
        return self._mutate("POST", TASKS_PATH, ADD_ERROR, json=task)

    def update_task(self, task_id: str, updates: Dict[str, Any]) -> bool:
        """Send a partial update, then re-fetch."""
        return self._mutate("PUT", f"{TASKS_PATH}/{task_id}", UPDATE_ERROR, json=updates)

    def delete_task(self, task_id: str) -> bool:
        """Delete a task, then re-fetch."""
        return self._mutate("DELETE", f"{TASKS_PATH}/{task_id}", DELETE_ERROR)

    def _mutate(self, method: str, path: str, error_message: str, **kwargs: Any) -> bool:
        self._begin()
        try:
            self._request(method, path, **kwargs)
        except (httpx.HTTPError, TokenUnavailableError) as e:
            logger.error(f"{method} {path} failed: {e}")
            self.state.error = error_message
            self.state.is_loading = False
            return False
        self.fetch_tasks()
        return self.state.error is None

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "TaskClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
