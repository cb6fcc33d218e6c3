"""TaskDesk client — task state container over the REST API plus list/board view models."""

from taskdesk.client.store import TaskClient, TaskState  # noqa: F401
from taskdesk.client.views import BoardController, board_view, list_view  # noqa: F401

__all__ = ["TaskClient", "TaskState", "BoardController", "board_view", "list_view"]
