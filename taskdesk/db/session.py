"""
TaskDesk Database Session Management.

Single entry point for SQL task-store initialisation plus a context manager
for transactional access.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy.orm import Session

from taskdesk.db.base import Base, EngineRegistry, engine_registry

TASKS_ENGINE = "tasks"


def init_db(
    db_url: str,
    registry: EngineRegistry = engine_registry,
    name: str = TASKS_ENGINE,
    create_tables: bool = True,
    pool_size: int = 10,
    pool_pre_ping: bool = True,
) -> None:
    """
    Register the engine and (by default) create the tasks table.

    Idempotent for create_tables: existing tables are left alone.
    """
    registry.register(name, db_url, pool_size=pool_size, pool_pre_ping=pool_pre_ping)
    if create_tables:
        Base.metadata.create_all(registry.get(name))


@contextmanager
def session_scope(
    registry: EngineRegistry = engine_registry,
    name: str = TASKS_ENGINE,
) -> Generator[Session, None, None]:
    """
    Context manager for DB sessions with auto-commit/rollback.

    Usage:
        with session_scope() as session:
            row = session.query(TaskRow).filter_by(task_id=tid).first()
    """
    session = registry.get_session(name)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
