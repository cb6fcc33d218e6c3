"""
TaskDesk Database Base — SQLAlchemy declarative base, task table and engine registry.

Provides:
- Base: SQLAlchemy declarative base
- TimestampMixin: created_at, updated_at
- TaskRow: one row per task; `seq` gives creation order
- EngineRegistry: named engines with their session factories
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all TaskDesk models."""
    pass


class TimestampMixin:
    """Adds created_at, updated_at columns."""
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


class TaskRow(TimestampMixin, Base):
    """Persisted task. The public identifier is task_id; seq is internal."""

    __tablename__ = "tasks"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    task_id = Column(String(24), unique=True, nullable=False, index=True)
    owner_id = Column(String(255), nullable=True, index=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="todo")

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.task_id,
            "ownerId": self.owner_id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
        }

    def __repr__(self) -> str:
        return f"<TaskRow {self.task_id} status={self.status}>"


class EngineRegistry:
    """
    Registry of named SQLAlchemy engines.

    Usage:
        registry = EngineRegistry()
        registry.register("tasks", "postgresql://...")
        session = registry.get_session("tasks")
    """

    def __init__(self):
        self._engines: Dict[str, Any] = {}
        self._session_factories: Dict[str, sessionmaker] = {}

    def register(
        self,
        name: str,
        url: str,
        pool_size: int = 10,
        pool_pre_ping: bool = True,
        **kwargs: Any,
    ) -> None:
        """Register a new database engine. SQLite URLs skip pool sizing."""
        engine_kwargs: Dict[str, Any] = {"pool_pre_ping": pool_pre_ping, **kwargs}
        if url.startswith("sqlite"):
            engine_kwargs.setdefault("connect_args", {"check_same_thread": False})
        else:
            engine_kwargs["pool_size"] = pool_size
        engine = create_engine(url, **engine_kwargs)
        self._engines[name] = engine
        self._session_factories[name] = sessionmaker(bind=engine, expire_on_commit=False)

    def get(self, name: str) -> Any:
        """Get a registered engine by name."""
        if name not in self._engines:
            raise KeyError(f"Engine '{name}' not registered. Available: {list(self._engines.keys())}")
        return self._engines[name]

    def get_session(self, name: str) -> Session:
        """Get a new session for a registered engine."""
        if name not in self._session_factories:
            raise KeyError(f"Session factory '{name}' not found. Available: {list(self._session_factories.keys())}")
        return self._session_factories[name]()

    def dispose(self, name: Optional[str] = None) -> None:
        """Dispose one or all engines (close connection pools)."""
        if name:
            engine = self._engines.pop(name, None)
            self._session_factories.pop(name, None)
            if engine is not None:
                engine.dispose()
        else:
            for engine in self._engines.values():
                engine.dispose()
            self._engines.clear()
            self._session_factories.clear()

    @property
    def registered_names(self) -> list:
        return list(self._engines.keys())


# Global engine registry singleton
engine_registry = EngineRegistry()
