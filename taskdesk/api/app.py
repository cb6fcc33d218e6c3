"""
TaskDesk Application — FastAPI assembly.

Request pipeline:
    1. CORS
    2. Request context + edge rate limit (per client IP, before any route,
       docs included)
    3. Auth gate (route dependency)
    4. Validation → task store
    5. Error responder on failure; one web_apis/execution log entry per request

Run:
    taskdesk serve
    uvicorn taskdesk.api.app:create_app --factory --port 5001
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool

from taskdesk import __version__
from taskdesk.api.responder import error_response, register_error_handlers
from taskdesk.api.routes import router as tasks_router
from taskdesk.engine.cache import create_rate_limit_cache
from taskdesk.engine.config import TaskDeskConfig, get_config
from taskdesk.engine.context import RequestContext, clear_request_context, set_request_context
from taskdesk.engine.logging import (
    get_log_queue,
    init_logging,
    log,
    log_system_event,
    log_web_api_request,
    shutdown_logging,
)
from taskdesk.engine.rate_limit import RateLimiter
from taskdesk.engine.security import AuthGate, create_auth_gate
from taskdesk.storage import create_task_store
from taskdesk.storage.base import TaskStore

logger = logging.getLogger("taskdesk.api.app")

API_TITLE = "Task Management API"
DOCS_URL = "/api-docs"
OPENAPI_URL = "/api-docs/openapi.json"


def create_rate_limiter(config: TaskDeskConfig) -> RateLimiter:
    """Edge limiter; Redis-backed when rate_limit.redis_url is set and reachable."""
    rl = config.rate_limit
    cache = None
    if rl.redis_url:
        cache = create_rate_limit_cache(rl.redis_url, window_seconds=rl.window_seconds)
    return RateLimiter(
        max_requests=rl.max_requests,
        window_seconds=rl.window_seconds,
        cache=cache,
        name="api",
    )


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def create_app(
    config: Optional[TaskDeskConfig] = None,
    store: Optional[TaskStore] = None,
    auth_gate: Optional[AuthGate] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """
    Build the application. Collaborators default to what config selects;
    tests pass their own.
    """
    config = config or get_config()
    store = store or create_task_store(config.storage)
    auth_gate = auth_gate or create_auth_gate(config.auth)
    rate_limiter = rate_limiter or create_rate_limiter(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owns_log_queue = False
        if config.logging.file_logging and get_log_queue() is None:
            q = config.logging.async_queue
            init_logging(
                log_dir=config.logging.directory,
                flush_interval_ms=q.flush_interval_ms,
                flush_batch_size=q.flush_batch_size,
                max_queue_size=q.max_queue_size,
            )
            owns_log_queue = True
        log(log_system_event("server_started", details={
            "environment": config.environment,
            "storage": store.backend,
            "auth": auth_gate.provider,
        }))
        logger.info(f"{config.name} started (storage={store.backend}, auth={auth_gate.provider})")
        try:
            yield
        finally:
            log(log_system_event("server_stopped"))
            store.close()
            if owns_log_queue:
                shutdown_logging()

    app = FastAPI(
        title=API_TITLE,
        description="CRUD API for tasks with pluggable bearer-token authentication.",
        version=__version__,
        docs_url=DOCS_URL,
        openapi_url=OPENAPI_URL,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.task_store = store
    app.state.auth_gate = auth_gate
    app.state.rate_limiter = rate_limiter

    register_error_handlers(app)
    app.include_router(tasks_router)

    @app.middleware("http")
    async def edge(request: Request, call_next):
        start = time.time()
        ctx = RequestContext(
            client_ip=_client_ip(request),
            method=request.method,
            path=request.url.path,
        )
        request.state.context = ctx
        set_request_context(ctx)
        try:
            try:
                # blocking Redis round trip; keep it off the event loop
                await run_in_threadpool(rate_limiter.enforce, ctx.client_ip)
                response = await call_next(request)
            except Exception as exc:
                response = error_response(exc, request)

            duration_ms = (time.time() - start) * 1000
            response.headers["X-Request-ID"] = ctx.request_id
            log(log_web_api_request(
                method=ctx.method,
                path=ctx.path,
                status_code=response.status_code,
                duration_ms=duration_ms,
                request_id=ctx.request_id,
                subject=ctx.subject,
                client_ip=ctx.client_ip,
            ))
            return response
        finally:
            clear_request_context()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials="*" not in config.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    return app
