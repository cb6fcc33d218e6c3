"""Unit tests for taskdesk.client.store — the client-side data hook."""

import json
from typing import Any, Dict, List

import httpx
import pytest

from taskdesk.client.store import (
    ADD_ERROR,
    DELETE_ERROR,
    FETCH_ERROR,
    UPDATE_ERROR,
    TaskClient,
    TaskState,
)
from taskdesk.records.task import new_task_id


class FakeTaskServer:
    """httpx MockTransport handler backed by a list; records every call."""

    def __init__(self):
        self.tasks: List[Dict[str, Any]] = []
        self.calls: List[str] = []
        self.fail: Dict[str, int] = {}
        self.seen_auth: List[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request.method)
        self.seen_auth.append(request.headers.get("Authorization", ""))
        if request.method in self.fail:
            return httpx.Response(self.fail[request.method], json={"message": "boom"})
        if request.method == "GET":
            return httpx.Response(200, json=self.tasks)
        if request.method == "POST":
            task = {"id": new_task_id(), "description": None, **json.loads(request.content)}
            self.tasks.append(task)
            return httpx.Response(201, json=task)
        task_id = request.url.path.rsplit("/", 1)[-1]
        if request.method == "PUT":
            for task in self.tasks:
                if task["id"] == task_id:
                    task.update(json.loads(request.content))
                    return httpx.Response(200, json=task)
            return httpx.Response(404, json={"message": "Task not found"})
        if request.method == "DELETE":
            self.tasks = [t for t in self.tasks if t["id"] != task_id]
            return httpx.Response(200, json={"message": "Task deleted successfully"})
        return httpx.Response(405)


@pytest.fixture
def server():
    return FakeTaskServer()


@pytest.fixture
def task_client(server):
    http = httpx.Client(base_url="http://api.test", transport=httpx.MockTransport(server))
    return TaskClient(http_client=http)


class TestTaskState:
    def test_defaults(self):
        state = TaskState()
        assert state.tasks == []
        assert state.is_loading is False
        assert state.error is None

    def test_find(self):
        state = TaskState(tasks=[{"id": "a"}, {"id": "b"}])
        assert state.find("b") == {"id": "b"}
        assert state.find("c") is None


class TestFetch:
    def test_fetch_replaces_tasks(self, task_client, server):
        server.tasks = [{"id": "1", "title": "T", "status": "todo"}]
        assert task_client.fetch_tasks() == server.tasks
        assert task_client.state.error is None
        assert task_client.state.is_loading is False

    def test_fetch_failure_keeps_tasks(self, task_client, server):
        task_client.state.tasks = [{"id": "old"}]
        server.fail["GET"] = 500
        task_client.fetch_tasks()
        assert task_client.state.error == FETCH_ERROR
        assert task_client.state.tasks == [{"id": "old"}]
        assert task_client.state.is_loading is False

    def test_network_error(self):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        client = TaskClient(http_client=httpx.Client(base_url="http://api.test", transport=httpx.MockTransport(refuse)))
        client.fetch_tasks()
        assert client.state.error == FETCH_ERROR

    def test_error_cleared_on_next_success(self, task_client, server):
        server.fail["GET"] = 503
        task_client.fetch_tasks()
        del server.fail["GET"]
        task_client.fetch_tasks()
        assert task_client.state.error is None

    def test_loading_flag_set_during_call(self, server):
        seen = []
        state = TaskState()

        def handler(request):
            seen.append(state.is_loading)
            return server(request)

        client = TaskClient(
            state=state,
            http_client=httpx.Client(base_url="http://api.test", transport=httpx.MockTransport(handler)),
        )
        client.fetch_tasks()
        assert seen == [True]
        assert state.is_loading is False


class TestMutations:
    def test_add_refetches(self, task_client, server):
        assert task_client.add_task({"title": "New", "status": "todo"}) is True
        assert server.calls == ["POST", "GET"]
        assert [t["title"] for t in task_client.state.tasks] == ["New"]

    def test_update_refetches(self, task_client, server):
        task_client.add_task({"title": "New", "status": "todo"})
        task_id = task_client.state.tasks[0]["id"]
        task_client.update_task(task_id, {"status": "done"})
        assert server.calls[-2:] == ["PUT", "GET"]
        assert task_client.state.tasks[0]["status"] == "done"

    def test_delete_refetches(self, task_client, server):
        task_client.add_task({"title": "New", "status": "todo"})
        task_client.delete_task(task_client.state.tasks[0]["id"])
        assert server.calls[-2:] == ["DELETE", "GET"]
        assert task_client.state.tasks == []

    @pytest.mark.parametrize("method,message", [
        ("POST", ADD_ERROR),
        ("PUT", UPDATE_ERROR),
        ("DELETE", DELETE_ERROR),
    ])
    def test_failures_set_fixed_message(self, task_client, server, method, message):
        server.fail[method] = 400
        task_id = new_task_id()
        if method == "POST":
            ok = task_client.add_task({"title": "x", "status": "todo"})
        elif method == "PUT":
            ok = task_client.update_task(task_id, {"status": "done"})
        else:
            ok = task_client.delete_task(task_id)
        assert ok is False
        assert task_client.state.error == message
        assert task_client.state.is_loading is False
        assert server.calls == [method]

    def test_bearer_token_sent(self, server):
        client = TaskClient(
            token_provider=lambda: "tok-1",
            http_client=httpx.Client(base_url="http://api.test", transport=httpx.MockTransport(server)),
        )
        client.fetch_tasks()
        assert server.seen_auth == ["Bearer tok-1"]

    def test_no_token_no_header(self, task_client, server):
        task_client.fetch_tasks()
        assert server.seen_auth == [""]

    def test_token_provider_failure_does_not_raise(self, server):
        def expired_session():
            raise RuntimeError("session expired")

        server.tasks = [{"id": new_task_id(), "title": "kept", "status": "todo"}]
        client = TaskClient(
            token_provider=lambda: "tok-1",
            http_client=httpx.Client(base_url="http://api.test", transport=httpx.MockTransport(server)),
        )
        client.fetch_tasks()
        client._token_provider = expired_session

        assert client.fetch_tasks() == server.tasks
        assert client.state.error == FETCH_ERROR
        assert client.add_task({"title": "new", "status": "todo"}) is False
        assert client.state.error == ADD_ERROR
        assert client.state.is_loading is False
        assert server.calls == ["GET"]


class TestAgainstRealApp:
    """The data hook driving the FastAPI app end to end."""

    def test_full_cycle(self, client):
        tc = TaskClient(http_client=client)
        tc.add_task({"title": "Ship it", "status": "todo"})
        task = tc.state.tasks[0]
        tc.update_task(task["id"], {"status": "in-progress"})
        assert tc.state.tasks[0]["status"] == "in-progress"
        tc.delete_task(task["id"])
        assert tc.state.tasks == []
        assert tc.state.error is None

    def test_validation_failure_surfaces_fixed_message(self, client):
        tc = TaskClient(http_client=client)
        tc.add_task({"title": ""})
        assert tc.state.error == ADD_ERROR
