"""
TaskDesk storage — pluggable task stores chosen once at start-up.

Usage:
    from taskdesk.storage import create_task_store
    store = create_task_store(config.storage)
"""

from __future__ import annotations

import logging

from taskdesk.engine.config import StorageConfig
from taskdesk.engine.errors import ConfigError
from taskdesk.storage.base import TaskStore
from taskdesk.storage.memory import MemoryTaskStore

logger = logging.getLogger("taskdesk.storage")


def create_task_store(config: StorageConfig) -> TaskStore:
    """Build the backend named by storage.backend."""
    if config.backend == "memory":
        logger.info("Task store: memory (not persisted)")
        return MemoryTaskStore()
    if config.backend == "sql":
        from taskdesk.storage.sql import SqlTaskStore

        logger.info("Task store: sql")
        return SqlTaskStore(config.url, pool_size=config.pool_size, pool_pre_ping=config.pool_pre_ping)
    if config.backend == "redis":
        from taskdesk.storage.redis_store import RedisTaskStore

        logger.info("Task store: redis")
        return RedisTaskStore(config.url)
    raise ConfigError(f"Unknown storage backend: {config.backend}")


__all__ = ["TaskStore", "MemoryTaskStore", "create_task_store"]
