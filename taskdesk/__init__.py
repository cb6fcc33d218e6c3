"""
TaskDesk — Task management REST API with pluggable storage and auth.

Packages:
    engine   — config, errors, logging, request context, validation, auth gate, rate limiting
    records  — Task record schema
    db       — SQLAlchemy base + session helpers (sql storage backend)
    storage  — TaskStore capability interface and its backends
    api      — FastAPI app, task routes, error responder
    client   — client-side task state container ("data hook") and list/board views
"""

__version__ = "1.0.0"
__all__ = ["engine", "records", "db", "storage", "api", "client"]
