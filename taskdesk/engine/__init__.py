"""TaskDesk Engine — config, errors, logging, request context, validation, auth gate, rate limiting."""

from taskdesk.engine.errors import TaskDeskError  # noqa: F401

__all__ = ["TaskDeskError"]
