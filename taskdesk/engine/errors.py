"""
TaskDesk Error Hierarchy — Typed exceptions carrying an HTTP status code.

Every error carries a status_code and serializes to JSON for the structured
log files. The API error responder (taskdesk.api.responder) is the single
place where these are translated into HTTP responses.

Hierarchy:
    TaskDeskError                 — base, status 500
    ├── ValidationError           — 400, aggregated field-level violations
    ├── SchemaValidationError     — 400, record failed the storage-boundary schema
    ├── InvalidIdentifierError    — 400, malformed task identifier ("Invalid ID format")
    ├── UnauthorizedError         — 401, auth gate rejection
    ├── NotFoundError             — 404, identifier not present
    ├── RateLimitError            — 429, client exceeded the request window
    ├── StorageError              — 500, backend failure (message suppressed)
    ├── ConfigError               — 500, invalid taskdesk.yaml / environment
    └── InternalError             — 500, catch-all
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class TaskDeskError(Exception):
    """
    Base error for all TaskDesk failures.
    All context is serializable to JSON.
    """

    status_code: int = 500

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.request_id: Optional[str] = context.get("request_id")
        self.error_type: str = self.__class__.__name__
        self.context: Dict[str, Any] = context
        self.timestamp: str = datetime.now(timezone.utc).isoformat()
        if "status_code" in context:
            self.status_code = int(context["status_code"])
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error to a JSON-compatible dict for logging."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "status_code": self.status_code,
            "request_id": self.request_id,
            "timestamp": self.timestamp,
            "context": {
                k: str(v) for k, v in self.context.items()
                if k not in ("request_id", "status_code")
            },
        }

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    def __repr__(self) -> str:
        parts = [f"{self.error_type}: {self.message}"]
        if self.request_id:
            parts.append(f"request_id={self.request_id}")
        return " | ".join(parts)


class ValidationError(TaskDeskError):
    """
    Request validation failed.
    Carries every violation found for the operation, not just the first.
    """

    status_code = 400

    def __init__(self, message: str, **context: Any):
        self.errors: List[Dict[str, Any]] = list(context.get("errors") or [])
        super().__init__(message, **context)

    @classmethod
    def from_violations(cls, violations: List[Dict[str, Any]], **context: Any) -> "ValidationError":
        """Build one error whose message joins 'field: reason' for each violation."""
        message = "; ".join(f"{v['field']}: {v['message']}" for v in violations)
        return cls(message, errors=violations, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["errors"] = self.errors
        return d


class SchemaValidationError(TaskDeskError):
    """A record write violated the Task schema. Lists the offending fields."""

    status_code = 400

    def __init__(self, message: str, **context: Any):
        self.fields: List[str] = list(context.get("fields") or [])
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["fields"] = self.fields
        return d


class InvalidIdentifierError(TaskDeskError):
    """Path identifier is not a syntactically valid task id."""

    status_code = 400

    def __init__(self, message: str = "Invalid ID format", **context: Any):
        self.value: Optional[str] = context.get("value")
        super().__init__(message, **context)


class UnauthorizedError(TaskDeskError):
    """
    Auth gate rejected the request.
    `reason` is the machine-readable cause returned to the caller.
    """

    status_code = 401

    def __init__(self, message: str = "Unauthorized", **context: Any):
        self.reason: str = context.get("reason", "unauthorized")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["reason"] = self.reason
        return d


class NotFoundError(TaskDeskError):
    """Requested identifier does not exist (or is not visible to the caller)."""

    status_code = 404


class RateLimitError(TaskDeskError):
    """Client exceeded the fixed request window."""

    status_code = 429

    def __init__(self, message: str = "Too many requests, please try again later.", **context: Any):
        self.retry_after: int = int(context.get("retry_after", 60))
        super().__init__(message, **context)


class StorageError(TaskDeskError):
    """Task store backend failed (SQL, Redis)."""

    def __init__(self, message: str, **context: Any):
        self.backend: Optional[str] = context.get("backend")
        self.operation: Optional[str] = context.get("operation")
        super().__init__(message, **context)


class ConfigError(TaskDeskError):
    """Configuration error — invalid taskdesk.yaml or environment overrides."""
    pass


class InternalError(TaskDeskError):
    """Catch-all. The message is never returned to the caller."""
    pass
