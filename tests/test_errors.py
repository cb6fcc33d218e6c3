"""Unit tests for taskdesk.engine.errors — Error hierarchy & serialization."""

import json
import pytest

from taskdesk.engine.errors import (
    ConfigError,
    InternalError,
    InvalidIdentifierError,
    NotFoundError,
    RateLimitError,
    SchemaValidationError,
    StorageError,
    TaskDeskError,
    UnauthorizedError,
    ValidationError,
)


class TestTaskDeskError:
    """Base error class tests."""

    def test_basic_creation(self):
        err = TaskDeskError("something broke")
        assert err.message == "something broke"
        assert str(err) == "something broke"
        assert err.error_type == "TaskDeskError"
        assert err.status_code == 500
        assert err.request_id is None

    def test_context_fields(self):
        err = TaskDeskError("fail", request_id="req_abc", task_id="t1")
        assert err.request_id == "req_abc"
        assert err.context["task_id"] == "t1"

    def test_status_code_override(self):
        err = TaskDeskError("teapot", status_code=418)
        assert err.status_code == 418

    def test_to_dict(self):
        err = TaskDeskError("fail", request_id="req_1", task_id="t1")
        d = err.to_dict()
        assert d["error_type"] == "TaskDeskError"
        assert d["message"] == "fail"
        assert d["request_id"] == "req_1"
        assert d["context"] == {"task_id": "t1"}
        assert "timestamp" in d

    def test_to_json(self):
        parsed = json.loads(TaskDeskError("fail").to_json())
        assert parsed["error_type"] == "TaskDeskError"
        assert parsed["message"] == "fail"

    def test_repr(self):
        err = TaskDeskError("oops", request_id="req_9")
        assert "TaskDeskError: oops" in repr(err)
        assert "request_id=req_9" in repr(err)


class TestErrorSubclasses:
    """Each subclass carries its status and extra attributes."""

    @pytest.mark.parametrize("cls,status", [
        (ValidationError, 400),
        (SchemaValidationError, 400),
        (InvalidIdentifierError, 400),
        (UnauthorizedError, 401),
        (NotFoundError, 404),
        (RateLimitError, 429),
        (StorageError, 500),
        (ConfigError, 500),
        (InternalError, 500),
    ])
    def test_status_codes(self, cls, status):
        err = cls("x")
        assert err.status_code == status
        assert isinstance(err, TaskDeskError)

    def test_validation_from_violations_joins_messages(self):
        err = ValidationError.from_violations([
            {"field": "title", "message": "is required", "value": None},
            {"field": "status", "message": "must be one of todo, in-progress, done", "value": "x"},
        ])
        assert err.message == "title: is required; status: must be one of todo, in-progress, done"
        assert len(err.errors) == 2
        assert err.to_dict()["errors"] == err.errors

    def test_invalid_identifier_default_message(self):
        err = InvalidIdentifierError(value="bogus")
        assert err.message == "Invalid ID format"
        assert err.value == "bogus"

    def test_unauthorized_reason(self):
        err = UnauthorizedError(reason="token_expired")
        assert err.message == "Unauthorized"
        assert err.reason == "token_expired"
        assert err.to_dict()["reason"] == "token_expired"

    def test_unauthorized_default_reason(self):
        assert UnauthorizedError().reason == "unauthorized"

    def test_rate_limit_defaults(self):
        err = RateLimitError()
        assert err.message == "Too many requests, please try again later."
        assert err.retry_after == 60

    def test_rate_limit_retry_after(self):
        assert RateLimitError(retry_after=12).retry_after == 12

    def test_schema_error_fields(self):
        err = SchemaValidationError("bad", fields=["title", "status"])
        assert err.fields == ["title", "status"]
        assert err.to_dict()["fields"] == ["title", "status"]

    def test_storage_error_context(self):
        err = StorageError("down", backend="sql", operation="create")
        assert err.backend == "sql"
        assert err.operation == "create"
