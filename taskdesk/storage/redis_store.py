"""
Redis task store — tasks as JSON documents.

Layout (prefix "taskdesk:"):
    task:{id}            JSON document (camelCase keys)
    tasks                sorted set of ids scored by creation sequence
    tasks:owner:{owner}  same, per owner
    tasks:seq            creation sequence counter
"""

from __future__ import annotations

import json
import logging
from typing import List, Optional

import redis

from taskdesk.engine.errors import NotFoundError, StorageError
from taskdesk.records.task import Task, task_from_document
from taskdesk.storage.base import NOT_FOUND_MESSAGE, TaskStore

logger = logging.getLogger("taskdesk.storage.redis")


class RedisTaskStore(TaskStore):
    backend = "redis"

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        prefix: str = "taskdesk:",
        client: Optional[redis.Redis] = None,
    ):
        self._prefix = prefix
        self._client = client or redis.Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=5,
            socket_connect_timeout=5,
        )

    # -- keys ---------------------------------------------------------------

    def _task_key(self, task_id: str) -> str:
        return f"{self._prefix}task:{task_id}"

    def _index_key(self, owner_id: Optional[str] = None) -> str:
        if owner_id is None:
            return f"{self._prefix}tasks"
        return f"{self._prefix}tasks:owner:{owner_id}"

    def _storage_error(self, operation: str, exc: Exception) -> StorageError:
        logger.error(f"Redis task store {operation} failed: {exc}")
        return StorageError("Task store unavailable", backend=self.backend, operation=operation)

    # -- primitives ---------------------------------------------------------

    def _insert(self, task: Task) -> None:
        try:
            seq = self._client.incr(f"{self._prefix}tasks:seq")
            pipe = self._client.pipeline(transaction=True)
            pipe.set(self._task_key(task.id), json.dumps(task.model_dump(by_alias=True)))
            pipe.zadd(self._index_key(), {task.id: seq})
            if task.owner_id is not None:
                pipe.zadd(self._index_key(task.owner_id), {task.id: seq})
            pipe.execute()
        except redis.RedisError as e:
            raise self._storage_error("create", e) from e

    def _all(self, owner_id: Optional[str]) -> List[Task]:
        try:
            ids = self._client.zrange(self._index_key(owner_id), 0, -1)
            if not ids:
                return []
            docs = self._client.mget([self._task_key(i) for i in ids])
        except redis.RedisError as e:
            raise self._storage_error("list", e) from e
        return [task_from_document(json.loads(d)) for d in docs if d is not None]

    def _load(self, task_id: str) -> Optional[Task]:
        try:
            raw = self._client.get(self._task_key(task_id))
        except redis.RedisError as e:
            raise self._storage_error("get", e) from e
        return task_from_document(json.loads(raw)) if raw else None

    def _replace(self, task: Task) -> None:
        try:
            written = self._client.set(
                self._task_key(task.id),
                json.dumps(task.model_dump(by_alias=True)),
                xx=True,
            )
        except redis.RedisError as e:
            raise self._storage_error("update", e) from e
        if written is None:
            # deleted between load and write
            raise NotFoundError(NOT_FOUND_MESSAGE, task_id=task.id)

    def _remove(self, task_id: str) -> bool:
        key = self._task_key(task_id)
        try:
            with self._client.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        pipe.watch(key)
                        raw = pipe.get(key)
                        if raw is None:
                            pipe.unwatch()
                            return False
                        owner_id = json.loads(raw).get("ownerId")
                        pipe.multi()
                        pipe.delete(key)
                        pipe.zrem(self._index_key(), task_id)
                        if owner_id is not None:
                            pipe.zrem(self._index_key(owner_id), task_id)
                        results = pipe.execute()
                        return bool(results[0])
                    except redis.WatchError:
                        logger.debug(f"Task {task_id} changed during delete, retrying")
        except redis.RedisError as e:
            raise self._storage_error("delete", e) from e

    def close(self) -> None:
        try:
            self._client.close()
        except redis.RedisError as e:
            logger.debug(f"Redis close failed: {e}")
