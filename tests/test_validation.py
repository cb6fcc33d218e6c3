"""Unit tests for taskdesk.engine.validation — field rules, rule sets, task operations."""

import pytest

from taskdesk.engine.errors import InvalidIdentifierError, ValidationError
from taskdesk.engine.validation import (
    CREATE_TASK,
    UPDATE_TASK,
    FieldRule,
    RuleSet,
    escape_html,
    validate_create,
    validate_task_id,
    validate_update,
)
from taskdesk.records.task import new_task_id


class TestEscapeHtml:
    def test_escape_table(self):
        assert escape_html("&<>\"'/\\`") == "&amp;&lt;&gt;&quot;&#x27;&#x2F;&#x5C;&#96;"

    def test_plain_text_unchanged(self):
        assert escape_html("Buy milk") == "Buy milk"

    def test_script_tag(self):
        assert escape_html("<script>") == "&lt;script&gt;"


class TestFieldRule:
    def test_required_missing(self):
        _, reason = FieldRule("title", required=True).check({})
        assert reason == "is required"

    def test_required_null(self):
        _, reason = FieldRule("title", required=True).check({"title": None})
        assert reason == "is required"

    def test_optional_missing_is_accepted(self):
        value, reason = FieldRule("description").check({})
        assert reason is None

    def test_nullable(self):
        assert FieldRule("description", nullable=True).check({"description": None}) == (None, None)

    def test_null_not_allowed(self):
        _, reason = FieldRule("title").check({"title": None})
        assert reason == "cannot be null"

    def test_type(self):
        _, reason = FieldRule("title").check({"title": 42})
        assert reason == "must be a string"

    def test_trim_then_non_empty(self):
        _, reason = FieldRule("title", trim=True, non_empty=True).check({"title": "   "})
        assert reason == "cannot be empty"

    def test_trim_and_escape(self):
        value, reason = FieldRule("title", trim=True, escape=True).check({"title": "  a<b  "})
        assert (value, reason) == ("a&lt;b", None)

    def test_choices(self):
        rule = FieldRule("status", choices=("todo", "done"))
        assert rule.check({"status": "done"}) == ("done", None)
        _, reason = rule.check({"status": "later"})
        assert reason == "must be one of todo, done"


class TestRuleSet:
    def test_collects_every_violation(self):
        rules = RuleSet("x", [FieldRule("a", required=True), FieldRule("b", required=True)])
        cleaned, violations = rules.collect({})
        assert cleaned == {}
        assert [v["field"] for v in violations] == ["a", "b"]

    def test_unknown_fields_dropped(self):
        cleaned = CREATE_TASK.validate({"title": "T", "status": "todo", "priority": "high"})
        assert cleaned == {"title": "T", "status": "todo"}

    def test_non_object_body(self):
        with pytest.raises(ValidationError) as exc:
            CREATE_TASK.validate(["title"])
        assert exc.value.errors[0]["field"] == "body"
        assert exc.value.message == "body: must be a JSON object"

    def test_repr(self):
        assert repr(UPDATE_TASK) == "<RuleSet(update_task: title, description, status)>"


class TestCreateTask:
    def test_valid(self):
        cleaned = validate_create({"title": "  Test Task ", "description": " D ", "status": "todo"})
        assert cleaned == {"title": "Test Task", "description": "D", "status": "todo"}

    def test_missing_title_and_status(self):
        with pytest.raises(ValidationError) as exc:
            validate_create({"description": "no title"})
        assert exc.value.message == "title: is required; status: is required"
        assert exc.value.status_code == 400

    def test_invalid_status(self):
        with pytest.raises(ValidationError) as exc:
            validate_create({"title": "T", "status": "blocked"})
        assert exc.value.errors == [{
            "field": "status",
            "message": "must be one of todo, in-progress, done",
            "value": "blocked",
        }]

    def test_empty_body(self):
        with pytest.raises(ValidationError):
            validate_create(None)

    def test_title_escaped(self):
        cleaned = validate_create({"title": "<b>bold</b>", "status": "done"})
        assert cleaned["title"] == "&lt;b&gt;bold&lt;&#x2F;b&gt;"


class TestUpdateTask:
    def test_empty_update_is_valid(self):
        assert validate_update(new_task_id(), {}) == {}

    def test_partial(self):
        assert validate_update(new_task_id(), {"status": "in-progress"}) == {"status": "in-progress"}

    def test_description_null_clears(self):
        assert validate_update(new_task_id(), {"description": None}) == {"description": None}

    def test_title_null_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_update(new_task_id(), {"title": None})
        assert exc.value.message == "title: cannot be null"

    def test_bad_id_alone(self):
        with pytest.raises(InvalidIdentifierError) as exc:
            validate_update("invalid-id", {"status": "done"})
        assert exc.value.message == "Invalid ID format"

    def test_bad_id_and_bad_body_reported_together(self):
        with pytest.raises(ValidationError) as exc:
            validate_update("invalid-id", {"status": "nope"})
        fields = [v["field"] for v in exc.value.errors]
        assert fields == ["id", "status"]


class TestTaskId:
    def test_valid(self):
        task_id = new_task_id()
        assert validate_task_id(task_id) == task_id

    def test_uppercase_is_canonicalized(self):
        task_id = new_task_id()
        assert validate_task_id(task_id.upper()) == task_id

    def test_invalid(self):
        with pytest.raises(InvalidIdentifierError):
            validate_task_id("invalid-id")
