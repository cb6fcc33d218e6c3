"""
TaskDesk Request Context — Per-request state carried through contextvars.

The edge middleware opens one per request and the auth gate binds the
verified Principal to it; the store layer tags record logs with its request id.

Usage:
    from taskdesk.engine.context import (
        RequestContext,
        set_request_context,
        get_request_context,
    )
"""

from __future__ import annotations

import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

# One per request
current_request_context: ContextVar[Optional["RequestContext"]] = ContextVar(
    "request_context", default=None
)


@dataclass(frozen=True)
class Principal:
    """
    Authenticated caller.

    subject is None when the anonymous gate is active; tasks are then not
    owner-scoped.
    """

    subject: Optional[str]
    provider: str = "none"
    claims: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_anonymous(self) -> bool:
        return self.subject is None


ANONYMOUS = Principal(subject=None)


@dataclass
class RequestContext:
    """Per-request context, populated by the auth gate."""

    principal: Principal = ANONYMOUS
    request_id: str = field(default_factory=lambda: f"req_{uuid.uuid4().hex[:12]}")
    client_ip: Optional[str] = None
    method: Optional[str] = None
    path: Optional[str] = None

    @property
    def subject(self) -> Optional[str]:
        return self.principal.subject

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for logging."""
        return {
            "subject": self.subject,
            "provider": self.principal.provider,
            "request_id": self.request_id,
            "client_ip": self.client_ip,
            "method": self.method,
            "path": self.path,
        }


def set_request_context(ctx: RequestContext) -> None:
    """Set the request context for the current task/thread."""
    current_request_context.set(ctx)


def get_request_context() -> Optional[RequestContext]:
    """Get the current request context. Returns None if not set."""
    return current_request_context.get()


def clear_request_context() -> None:
    """Clear the request context (request end)."""
    current_request_context.set(None)
