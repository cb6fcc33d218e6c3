"""Unit tests for taskdesk.cli — command parsing and execution."""

import json
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

import taskdesk.cli as cli_mod
import taskdesk.client.store as store_mod
from taskdesk.api.app import create_app
from taskdesk.engine.config import ENV_OVERRIDES, TaskDeskConfig
from taskdesk.engine.rate_limit import RateLimiter
from taskdesk.engine.security import AnonymousGate
from taskdesk.storage.memory import MemoryTaskStore


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in ENV_OVERRIDES:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.delenv("TASKDESK_API_URL", raising=False)
    monkeypatch.delenv("TASKDESK_TOKEN", raising=False)


class TestCLIParsing:
    def test_no_command_prints_help(self, capsys):
        assert cli_mod.main([]) == 0
        assert "taskdesk" in capsys.readouterr().out

    def test_module_has_expected_commands(self):
        for name in ("cmd_serve", "cmd_validate", "cmd_openapi", "cmd_tasks"):
            assert hasattr(cli_mod, name)


class TestCmdValidate:
    def test_valid_config(self, tmp_path, capsys):
        path = tmp_path / "taskdesk.yaml"
        path.write_text("name: Board\nstorage:\n  backend: memory\n", encoding="utf-8")
        assert cli_mod.main(["validate", "--config", str(path)]) == 0
        out = capsys.readouterr().out
        assert "[OK] Board" in out
        assert "100 / 60s (in-process)" in out

    def test_invalid_config(self, tmp_path, capsys):
        path = tmp_path / "taskdesk.yaml"
        path.write_text("auth:\n  provider: firebase\n", encoding="utf-8")
        assert cli_mod.main(["validate", "--config", str(path)]) == 1
        assert "[ERROR]" in capsys.readouterr().out


class TestCmdOpenapi:
    def test_writes_document(self, tmp_path):
        out = tmp_path / "openapi.json"
        assert cli_mod.main(["openapi", "--out", str(out)]) == 0
        doc = json.loads(out.read_text())
        assert doc["info"]["title"] == "Task Management API"

    def test_prints_document(self, capsys):
        assert cli_mod.main(["openapi"]) == 0
        assert '"/api/tasks"' in capsys.readouterr().out


class TestCmdServe:
    def test_runs_uvicorn_on_configured_port(self, tmp_path):
        path = tmp_path / "taskdesk.yaml"
        path.write_text("logging:\n  file_logging: false\n", encoding="utf-8")
        with patch("uvicorn.run") as run:
            assert cli_mod.main(["serve", "--config", str(path)]) == 0
        _, kwargs = run.call_args
        assert kwargs["port"] == 5001
        assert kwargs["host"] == "0.0.0.0"

    def test_port_flag_wins(self, tmp_path):
        path = tmp_path / "taskdesk.yaml"
        path.write_text("{}\n", encoding="utf-8")
        with patch("uvicorn.run") as run:
            cli_mod.main(["serve", "--config", str(path), "--port", "7000"])
        assert run.call_args[1]["port"] == 7000

    def test_bad_config_exits_1(self, tmp_path):
        path = tmp_path / "taskdesk.yaml"
        path.write_text("environment: nowhere\n", encoding="utf-8")
        with patch("uvicorn.run") as run:
            assert cli_mod.main(["serve", "--config", str(path)]) == 1
        run.assert_not_called()


@pytest.fixture
def api(monkeypatch):
    """Point `taskdesk tasks` at an in-process app."""
    app = create_app(
        TaskDeskConfig(),
        store=MemoryTaskStore(),
        auth_gate=AnonymousGate(),
        rate_limiter=RateLimiter(max_requests=10_000),
    )
    real_client = store_mod.TaskClient

    def factory(base_url, token_provider=None):
        return real_client(base_url, token_provider=token_provider, http_client=TestClient(app))

    monkeypatch.setattr(store_mod, "TaskClient", factory)
    return app


class TestCmdTasks:
    def _ids(self, app):
        return [t.id for t in app.state.task_store.list()]

    def test_add_and_list(self, api, capsys):
        assert cli_mod.main(["tasks", "add", "Write docs", "--description", "README"]) == 0
        assert cli_mod.main(["tasks", "list"]) == 0
        out = capsys.readouterr().out
        assert "Write docs - README" in out

    def test_move(self, api, capsys):
        cli_mod.main(["tasks", "add", "Card"])
        task_id = self._ids(api)[0]
        assert cli_mod.main(["tasks", "move", task_id, "done"]) == 0
        assert api.state.task_store.get(task_id).status == "done"

    def test_move_same_column(self, api, capsys):
        cli_mod.main(["tasks", "add", "Card"])
        task_id = self._ids(api)[0]
        assert cli_mod.main(["tasks", "move", task_id, "todo"]) == 0
        assert "already in 'todo'" in capsys.readouterr().out

    def test_edit(self, api):
        cli_mod.main(["tasks", "add", "Old"])
        task_id = self._ids(api)[0]
        assert cli_mod.main(["tasks", "edit", task_id, "--title", "New"]) == 0
        assert api.state.task_store.get(task_id).title == "New"

    def test_rm(self, api):
        cli_mod.main(["tasks", "add", "Gone"])
        task_id = self._ids(api)[0]
        assert cli_mod.main(["tasks", "rm", task_id]) == 0
        assert self._ids(api) == []

    def test_rm_missing_reports_error(self, api, capsys):
        assert cli_mod.main(["tasks", "rm", "0" * 24]) == 1
        assert "Error deleting task" in capsys.readouterr().out

    def test_board(self, api, capsys):
        cli_mod.main(["tasks", "add", "Card", "--status", "in-progress"])
        assert cli_mod.main(["tasks", "board"]) == 0
        assert "== In Progress (1) ==" in capsys.readouterr().out

    def test_move_unknown_task(self, api, capsys):
        assert cli_mod.main(["tasks", "move", "0" * 24, "done"]) == 1
        assert "Task not found" in capsys.readouterr().out
