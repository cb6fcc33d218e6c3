"""
TaskDesk CLI — Server and client commands.

Commands:
- taskdesk serve      — Run the API server (uvicorn)
- taskdesk validate   — Validate taskdesk.yaml + environment overrides
- taskdesk openapi    — Write the OpenAPI document
- taskdesk tasks ...  — List / board / add / move / edit / rm against a running server
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Optional

logger = logging.getLogger("taskdesk.cli")


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="taskdesk",
        description="TaskDesk — Task management REST API",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # taskdesk serve
    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--config", help="Path to taskdesk.yaml (default: auto-discover)")
    serve_parser.add_argument("--host", help="Host to bind (default: server.host)")
    serve_parser.add_argument("--port", type=int, help="Port to bind (default: server.port, 5001)")

    # taskdesk validate
    validate_parser = subparsers.add_parser("validate", help="Validate configuration")
    validate_parser.add_argument("--config", help="Path to taskdesk.yaml (default: auto-discover)")

    # taskdesk openapi
    openapi_parser = subparsers.add_parser("openapi", help="Write the OpenAPI document")
    openapi_parser.add_argument("--out", help="Output file (default: stdout)")

    # taskdesk tasks
    tasks_parser = subparsers.add_parser("tasks", help="Work with tasks on a running server")
    tasks_parser.add_argument(
        "--api-url",
        default=os.environ.get("TASKDESK_API_URL", "http://localhost:5001"),
        help="API root (default: $TASKDESK_API_URL or http://localhost:5001)",
    )
    tasks_parser.add_argument(
        "--token",
        default=os.environ.get("TASKDESK_TOKEN"),
        help="Bearer token (default: $TASKDESK_TOKEN)",
    )
    tasks_sub = tasks_parser.add_subparsers(dest="tasks_command", help="Task commands")

    list_parser = tasks_sub.add_parser("list", help="List tasks")
    list_parser.add_argument("--status", default="all", help="Filter: all/todo/in-progress/done")

    tasks_sub.add_parser("board", help="Show the task board")

    add_parser = tasks_sub.add_parser("add", help="Create a task")
    add_parser.add_argument("title")
    add_parser.add_argument("--description")
    add_parser.add_argument("--status", default="todo")

    move_parser = tasks_sub.add_parser("move", help="Move a task to another board column")
    move_parser.add_argument("task_id")
    move_parser.add_argument("status")

    edit_parser = tasks_sub.add_parser("edit", help="Edit a task's title / description")
    edit_parser.add_argument("task_id")
    edit_parser.add_argument("--title")
    edit_parser.add_argument("--description")

    rm_parser = tasks_sub.add_parser("rm", help="Delete a task")
    rm_parser.add_argument("task_id")

    args = parser.parse_args(argv)

    if args.command == "serve":
        return cmd_serve(args)
    elif args.command == "validate":
        return cmd_validate(args)
    elif args.command == "openapi":
        return cmd_openapi(args)
    elif args.command == "tasks":
        return cmd_tasks(args)
    else:
        parser.print_help()
        return 0


# ---------------------------------------------------------------------------
# taskdesk serve
# ---------------------------------------------------------------------------

def cmd_serve(args: argparse.Namespace) -> int:
    """Load config, build the app, hand it to uvicorn."""
    import uvicorn

    from taskdesk.api.app import create_app
    from taskdesk.engine.config import load_config
    from taskdesk.engine.errors import TaskDeskError
    from taskdesk.engine.logging import configure_stdlib_logging

    try:
        config = load_config(args.config)
    except TaskDeskError as e:
        print(f"[ERROR] {e.message}")
        return 1

    configure_stdlib_logging(config.logging.level)

    try:
        app = create_app(config)
    except TaskDeskError as e:
        print(f"[ERROR] Failed to start: {e.message}")
        return 1

    host = args.host or config.server.host
    port = args.port or config.server.port
    print(f"{config.name} listening on http://{host}:{port} (docs: /api-docs)")
    uvicorn.run(app, host=host, port=port, log_level=config.logging.level.lower())
    return 0


# ---------------------------------------------------------------------------
# taskdesk validate
# ---------------------------------------------------------------------------

def cmd_validate(args: argparse.Namespace) -> int:
    """Validate configuration."""
    from taskdesk.engine.config import load_config
    from taskdesk.engine.errors import ConfigError

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"[ERROR] {e.message}")
        return 1

    print(f"[OK] {config.name} {config.version} ({config.environment})")
    print(f"  server:     {config.server.host}:{config.server.port}")
    print(f"  storage:    {config.storage.backend}")
    print(f"  auth:       {config.auth.provider}")
    print(
        f"  rate limit: {config.rate_limit.max_requests} / {config.rate_limit.window_seconds}s"
        f" ({'redis' if config.rate_limit.redis_url else 'in-process'})"
    )
    return 0


# ---------------------------------------------------------------------------
# taskdesk openapi
# ---------------------------------------------------------------------------

def cmd_openapi(args: argparse.Namespace) -> int:
    """Write the OpenAPI document without starting a server."""
    from taskdesk.api.app import create_app
    from taskdesk.engine.config import TaskDeskConfig
    from taskdesk.engine.security import AnonymousGate
    from taskdesk.storage.memory import MemoryTaskStore

    app = create_app(TaskDeskConfig(), store=MemoryTaskStore(), auth_gate=AnonymousGate())
    document = json.dumps(app.openapi(), indent=2)
    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            f.write(document)
            f.write("\n")
        print(f"[OK] Wrote {args.out}")
    else:
        print(document)
    return 0


# ---------------------------------------------------------------------------
# taskdesk tasks
# ---------------------------------------------------------------------------

def cmd_tasks(args: argparse.Namespace) -> int:
    """Client commands: every mutation re-fetches, then the list or board is printed."""
    from taskdesk.client.store import TaskClient
    from taskdesk.client.views import BoardController, EditSession, render_board, render_list

    token = args.token
    sub = args.tasks_command
    if sub is None:
        print("[ERROR] Missing tasks command (list, board, add, move, edit, rm)")
        return 1

    with TaskClient(args.api_url, token_provider=lambda: token) as client:
        client.fetch_tasks()

        if sub == "list":
            try:
                print(render_list(client.state, args.status))
            except ValueError as e:
                print(f"[ERROR] {e}")
                return 1
            return 1 if client.state.error else 0

        if sub == "board":
            print(render_board(client.state))
            return 1 if client.state.error else 0

        if client.state.error and sub in ("move", "edit"):
            print(f"[ERROR] {client.state.error}")
            return 1

        if sub == "add":
            task = {"title": args.title, "status": args.status}
            if args.description is not None:
                task["description"] = args.description
            client.add_task(task)

        elif sub == "move":
            task = client.state.find(args.task_id)
            if task is None:
                print(f"[ERROR] Task not found: {args.task_id}")
                return 1
            board = BoardController(client)
            try:
                board.drag_start(task)
                if not board.drop(args.status):
                    print(f"[OK] Task already in '{args.status}'")
            except ValueError as e:
                print(f"[ERROR] {e}")
                return 1

        elif sub == "edit":
            task = client.state.find(args.task_id)
            if task is None:
                print(f"[ERROR] Task not found: {args.task_id}")
                return 1
            edit = EditSession(client)
            edit.start(task)
            if args.title is not None:
                edit.change("title", args.title)
            if args.description is not None:
                edit.change("description", args.description)
            edit.save()

        elif sub == "rm":
            client.delete_task(args.task_id)

        if client.state.error:
            print(f"[ERROR] {client.state.error}")
            return 1
        print(render_list(client.state))
        return 0


if __name__ == "__main__":
    sys.exit(main())
