"""
SQL task store — SQLAlchemy over any supported database (PostgreSQL via
psycopg2 in production, SQLite for local runs and tests).

Creation order is the autoincrement `seq` column. Every SQLAlchemy failure
is re-raised as StorageError; the database message is logged, never returned.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from taskdesk.db.base import EngineRegistry, TaskRow, engine_registry
from taskdesk.db.session import TASKS_ENGINE, init_db, session_scope
from taskdesk.engine.errors import StorageError
from taskdesk.records.task import Task, task_from_document
from taskdesk.storage.base import TaskStore

logger = logging.getLogger("taskdesk.storage.sql")


class SqlTaskStore(TaskStore):
    backend = "sql"

    def __init__(
        self,
        db_url: str,
        registry: EngineRegistry = engine_registry,
        name: str = TASKS_ENGINE,
        pool_size: int = 10,
        pool_pre_ping: bool = True,
    ):
        self._registry = registry
        self._name = name
        try:
            init_db(db_url, registry=registry, name=name, pool_size=pool_size, pool_pre_ping=pool_pre_ping)
        except SQLAlchemyError as e:
            raise self._storage_error("init", e) from e

    def _storage_error(self, operation: str, exc: Exception) -> StorageError:
        logger.error(f"SQL task store {operation} failed: {exc}")
        return StorageError("Task store unavailable", backend=self.backend, operation=operation)

    def _insert(self, task: Task) -> None:
        try:
            with session_scope(self._registry, self._name) as session:
                session.add(TaskRow(
                    task_id=task.id,
                    owner_id=task.owner_id,
                    title=task.title,
                    description=task.description,
                    status=task.status,
                ))
        except SQLAlchemyError as e:
            raise self._storage_error("create", e) from e

    def _all(self, owner_id: Optional[str]) -> List[Task]:
        stmt = select(TaskRow).order_by(TaskRow.seq)
        if owner_id is not None:
            stmt = stmt.where(TaskRow.owner_id == owner_id)
        try:
            with session_scope(self._registry, self._name) as session:
                rows = session.execute(stmt).scalars().all()
                return [task_from_document(row.to_document()) for row in rows]
        except SQLAlchemyError as e:
            raise self._storage_error("list", e) from e

    def _load(self, task_id: str) -> Optional[Task]:
        try:
            with session_scope(self._registry, self._name) as session:
                row = session.execute(
                    select(TaskRow).where(TaskRow.task_id == task_id)
                ).scalar_one_or_none()
                return task_from_document(row.to_document()) if row else None
        except SQLAlchemyError as e:
            raise self._storage_error("get", e) from e

    def _replace(self, task: Task) -> None:
        try:
            with session_scope(self._registry, self._name) as session:
                row = session.execute(
                    select(TaskRow).where(TaskRow.task_id == task.id)
                ).scalar_one_or_none()
                if row is None:
                    return
                row.title = task.title
                row.description = task.description
                row.status = task.status
        except SQLAlchemyError as e:
            raise self._storage_error("update", e) from e

    def _remove(self, task_id: str) -> bool:
        try:
            with session_scope(self._registry, self._name) as session:
                row = session.execute(
                    select(TaskRow).where(TaskRow.task_id == task_id)
                ).scalar_one_or_none()
                if row is None:
                    return False
                session.delete(row)
                return True
        except SQLAlchemyError as e:
            raise self._storage_error("delete", e) from e

    def close(self) -> None:
        self._registry.dispose(self._name)
