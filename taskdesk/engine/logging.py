"""
TaskDesk Logging System — Structured JSON file-based logging with async queue.

Implements:
- FileLogger: Per-object-type, per-category log files (daily rotation)
- AsyncLogQueue: In-memory queue with background flush (100ms / 50 entries)
- Log entry builders for API requests, API errors, record operations,
  security (auth gate / rate limit) and system events

Layout: {log_dir}/{object_type}/{category}/{YYYY-MM-DD}.jsonl

Module loggers (logging.getLogger("taskdesk.*")) remain the operator-facing
stream; these files are the machine-readable audit of every request.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import defaultdict
from datetime import date, datetime, timezone
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Any, Dict, List, Optional

logger = logging.getLogger("taskdesk.engine.logging")

# Valid object types and their permitted categories
OBJECT_TYPE_CATEGORIES = {
    "web_apis": ["execution", "errors"],
    "records": ["execution"],
    "auth": ["security"],
    "system": ["execution"],
}


class LogEntry:
    """A structured log entry destined for a specific file."""

    __slots__ = ("object_type", "category", "data")

    def __init__(self, object_type: str, category: str, data: Dict[str, Any]):
        self.object_type = object_type
        self.category = category
        self.data = data

    def to_json(self) -> str:
        return json.dumps(self.data, default=str, separators=(",", ":"))


class FileLogger:
    """
    Writes structured JSON log entries to per-object-type, per-category files.
    Files rotate daily: logs/{object_type}/{category}/{YYYY-MM-DD}.jsonl

    Thread-safe — uses a lock per file path.
    """

    def __init__(self, log_dir: str = "logs"):
        self._log_dir = Path(log_dir)
        self._file_locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._ensure_directories()

    def _ensure_directories(self) -> None:
        """Create the full directory tree for all object types and categories."""
        for obj_type, categories in OBJECT_TYPE_CATEGORIES.items():
            for cat in categories:
                (self._log_dir / obj_type / cat).mkdir(parents=True, exist_ok=True)

    def write(self, entry: LogEntry) -> None:
        """Write a single log entry to the appropriate file."""
        file_path = self._resolve_path(entry.object_type, entry.category)
        key = str(file_path)

        with self._file_locks[key]:
            with open(file_path, "a", encoding="utf-8") as f:
                f.write(entry.to_json())
                f.write("\n")

    def write_batch(self, entries: List[LogEntry]) -> None:
        """
        Write a batch of log entries, grouping by file path for efficiency.
        """
        grouped: Dict[str, List[LogEntry]] = defaultdict(list)
        for entry in entries:
            file_path = str(self._resolve_path(entry.object_type, entry.category))
            grouped[file_path].append(entry)

        for file_path, batch in grouped.items():
            with self._file_locks[file_path]:
                with open(file_path, "a", encoding="utf-8") as f:
                    for entry in batch:
                        f.write(entry.to_json())
                        f.write("\n")

    def _resolve_path(self, object_type: str, category: str) -> Path:
        """Resolve the log file path for today's date."""
        today = date.today().isoformat()
        path = self._log_dir / object_type / category
        path.mkdir(parents=True, exist_ok=True)
        return path / f"{today}.jsonl"

    @property
    def log_dir(self) -> Path:
        return self._log_dir


class AsyncLogQueue:
    """
    In-memory queue with a background flush thread.

    Entries are pushed non-blocking. A background thread flushes to FileLogger
    every flush_interval_ms OR when flush_batch_size entries accumulate,
    whichever comes first.
    """

    def __init__(
        self,
        file_logger: FileLogger,
        flush_interval_ms: int = 100,
        flush_batch_size: int = 50,
        max_queue_size: int = 10000,
    ):
        self._logger = file_logger
        self._flush_interval = flush_interval_ms / 1000.0  # convert to seconds
        self._flush_batch_size = flush_batch_size
        self._queue: Queue[LogEntry] = Queue(maxsize=max_queue_size)
        self._running = False
        self._flush_thread: Optional[threading.Thread] = None
        self._dropped_count = 0

    def start(self) -> None:
        """Start the background flush thread."""
        if self._running:
            return
        self._running = True
        self._flush_thread = threading.Thread(
            target=self._flush_loop,
            name="taskdesk-log-flush",
            daemon=True,
        )
        self._flush_thread.start()
        logger.info("Async log queue started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the flush thread and drain remaining entries."""
        self._running = False
        if self._flush_thread and self._flush_thread.is_alive():
            self._flush_thread.join(timeout=timeout)
        self._drain()
        logger.info(f"Async log queue stopped (dropped: {self._dropped_count})")

    def push(self, entry: LogEntry) -> bool:
        """
        Push a log entry to the queue. Non-blocking.

        Returns:
            True if queued, False if dropped (queue full).
        """
        try:
            self._queue.put_nowait(entry)
            return True
        except Full:
            self._dropped_count += 1
            return False

    def _flush_loop(self) -> None:
        """Background thread: flush on interval or batch size."""
        while self._running:
            batch = self._collect_batch()
            if batch:
                try:
                    self._logger.write_batch(batch)
                except OSError as e:
                    logger.error(f"Log flush error: {e}")
            else:
                time.sleep(self._flush_interval)

    def _collect_batch(self) -> List[LogEntry]:
        """Collect up to flush_batch_size entries from the queue."""
        batch: List[LogEntry] = []
        deadline = time.monotonic() + self._flush_interval

        while len(batch) < self._flush_batch_size:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                entry = self._queue.get(timeout=min(remaining, 0.01))
                batch.append(entry)
            except Empty:
                if batch:
                    break
                continue

        return batch

    def _drain(self) -> None:
        """Drain all remaining entries from the queue."""
        batch: List[LogEntry] = []
        while not self._queue.empty():
            try:
                batch.append(self._queue.get_nowait())
            except Empty:
                break
        if batch:
            try:
                self._logger.write_batch(batch)
            except OSError as e:
                logger.error(f"Log drain error: {e}")

    @property
    def pending_count(self) -> int:
        return self._queue.qsize()

    @property
    def dropped_count(self) -> int:
        return self._dropped_count


# ---------------------------------------------------------------------------
# Log Entry Builders
# ---------------------------------------------------------------------------

def _base_entry(
    event: str,
    level: str,
    request_id: Optional[str] = None,
    subject: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Build a base log entry with common fields."""
    entry: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level,
        "event": event,
    }
    if request_id:
        entry["request_id"] = request_id
    if subject is not None:
        entry["subject"] = subject
    entry.update(extra)
    return entry


def log_web_api_request(
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    request_id: Optional[str] = None,
    subject: Optional[str] = None,
    client_ip: Optional[str] = None,
) -> LogEntry:
    """Build a web API request log entry."""
    data = _base_entry(
        event="web_api_request",
        level="INFO" if status_code < 400 else "ERROR",
        request_id=request_id,
        subject=subject,
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=round(duration_ms, 2),
    )
    if client_ip:
        data["client_ip"] = client_ip
    return LogEntry("web_apis", "execution", data)


def log_api_error(
    error: Dict[str, Any],
    status_code: int,
    method: Optional[str] = None,
    path: Optional[str] = None,
    request_id: Optional[str] = None,
    subject: Optional[str] = None,
) -> LogEntry:
    """Build an API error log entry (full error detail, never sent to the client)."""
    data = _base_entry(
        event="web_api_error",
        level="ERROR" if status_code >= 500 else "WARNING",
        request_id=request_id,
        subject=subject,
        status_code=status_code,
        error=error,
    )
    if method:
        data["method"] = method
    if path:
        data["path"] = path
    return LogEntry("web_apis", "errors", data)


def log_record_operation(
    operation: str,
    record_id: Optional[str],
    backend: str,
    subject: Optional[str] = None,
    fields_changed: Optional[List[str]] = None,
    duration_ms: Optional[float] = None,
    request_id: Optional[str] = None,
) -> LogEntry:
    """Build a record CRUD log entry."""
    data = _base_entry(
        event=f"record_{operation}",
        level="INFO",
        request_id=request_id,
        subject=subject,
        operation=operation,
        backend=backend,
    )
    if record_id is not None:
        data["record_id"] = record_id
    if fields_changed:
        data["fields_changed"] = fields_changed
    if duration_ms is not None:
        data["duration_ms"] = round(duration_ms, 2)
    return LogEntry("records", "execution", data)


def log_security_event(
    event: str,
    reason: str,
    provider: str,
    client_ip: Optional[str] = None,
    request_id: Optional[str] = None,
    subject: Optional[str] = None,
    level: str = "WARNING",
) -> LogEntry:
    """Build a security event log entry (auth rejection, rate limit, key fetch)."""
    data = _base_entry(
        event=event,
        level=level,
        request_id=request_id,
        subject=subject,
        reason=reason,
        provider=provider,
    )
    if client_ip:
        data["client_ip"] = client_ip
    return LogEntry("auth", "security", data)


def log_system_event(
    event: str,
    level: str = "INFO",
    details: Optional[Dict[str, Any]] = None,
) -> LogEntry:
    """Build a system event log entry (startup, shutdown, config)."""
    data = _base_entry(event=event, level=level)
    if details:
        data["details"] = details
    return LogEntry("system", "execution", data)


# ---------------------------------------------------------------------------
# Convenience: Global Log Queue Singleton
# ---------------------------------------------------------------------------

_global_queue: Optional[AsyncLogQueue] = None


def init_logging(
    log_dir: str = "logs",
    flush_interval_ms: int = 100,
    flush_batch_size: int = 50,
    max_queue_size: int = 10000,
) -> AsyncLogQueue:
    """Initialize the global async log queue."""
    global _global_queue
    file_logger = FileLogger(log_dir=log_dir)
    _global_queue = AsyncLogQueue(
        file_logger=file_logger,
        flush_interval_ms=flush_interval_ms,
        flush_batch_size=flush_batch_size,
        max_queue_size=max_queue_size,
    )
    _global_queue.start()
    return _global_queue


def get_log_queue() -> Optional[AsyncLogQueue]:
    """Get the global async log queue."""
    return _global_queue


def log(entry: LogEntry) -> bool:
    """Push a log entry to the global queue. Non-blocking; dropped if not initialized."""
    if _global_queue is None:
        return False
    return _global_queue.push(entry)


def shutdown_logging() -> None:
    """Flush and stop the global log queue."""
    global _global_queue
    if _global_queue:
        _global_queue.stop()
        _global_queue = None


def configure_stdlib_logging(level: str = "INFO") -> None:
    """Configure the operator-facing `taskdesk.*` loggers."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
