"""
TaskDesk Validation Layer — Declarative per-field rules applied before a handler runs.

Implements:
- FieldRule: presence / type / choices / trim / escape / non-empty checks for one field
- RuleSet: every rule of an operation runs, violations are collected, then one verdict
- CREATE_TASK / UPDATE_TASK rule sets and the task identifier check

A failed rule set raises a single ValidationError carrying all violations.
A malformed path identifier alone raises InvalidIdentifierError ("Invalid ID format").
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from taskdesk.engine.errors import InvalidIdentifierError, ValidationError
from taskdesk.records.task import TASK_STATUSES, is_valid_task_id

# Same replacement table as validator.js escape()
_ESCAPE_TABLE = str.maketrans({
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "/": "&#x2F;",
    "\\": "&#x5C;",
    "`": "&#96;",
})

_MISSING = object()


def escape_html(value: str) -> str:
    """HTML-escape a string for storage."""
    return value.translate(_ESCAPE_TABLE)


@dataclass(frozen=True)
class FieldRule:
    """
    Declarative rule for a single body field.

    required:  field must be present (and not null)
    nullable:  an explicit null is accepted and kept as None
    choices:   value must be one of these strings
    trim:      strip surrounding whitespace before further checks
    non_empty: after trimming, the string must not be empty
    escape:    HTML-escape the accepted value
    """

    field: str
    required: bool = False
    nullable: bool = False
    choices: Optional[Tuple[str, ...]] = None
    trim: bool = False
    non_empty: bool = False
    escape: bool = False

    def check(self, body: Dict[str, Any]) -> Tuple[Any, Optional[str]]:
        """
        Apply the rule to body.

        Returns:
            (value, None) when accepted, value is _MISSING if the field was absent.
            (raw, reason) when violated.
        """
        raw = body.get(self.field, _MISSING)

        if raw is _MISSING:
            return (_MISSING, "is required") if self.required else (_MISSING, None)

        if raw is None:
            if self.required:
                return raw, "is required"
            if self.nullable:
                return None, None
            return raw, "cannot be null"

        if self.choices is not None:
            if not isinstance(raw, str) or raw not in self.choices:
                return raw, f"must be one of {', '.join(self.choices)}"
            return raw, None

        if not isinstance(raw, str):
            return raw, "must be a string"

        value = raw.strip() if self.trim else raw
        if self.non_empty and not value:
            return raw, "cannot be empty"
        if self.escape:
            value = escape_html(value)
        return value, None


class RuleSet:
    """
    Ordered collection of FieldRules for one operation.

    Unknown body fields are dropped from the cleaned output.
    """

    def __init__(self, name: str, rules: Sequence[FieldRule]):
        self.name = name
        self.rules: List[FieldRule] = list(rules)

    @property
    def fields(self) -> List[str]:
        return [r.field for r in self.rules]

    def collect(self, body: Any) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
        """Run every rule; return (cleaned fields, violations)."""
        if body is None:
            body = {}
        if not isinstance(body, dict):
            return {}, [{
                "field": "body",
                "message": "must be a JSON object",
                "value": body,
            }]

        cleaned: Dict[str, Any] = {}
        violations: List[Dict[str, Any]] = []
        for rule in self.rules:
            value, reason = rule.check(body)
            if reason is not None:
                violations.append({
                    "field": rule.field,
                    "message": reason,
                    "value": None if value is _MISSING else value,
                })
            elif value is not _MISSING:
                cleaned[rule.field] = value
        return cleaned, violations

    def validate(self, body: Any) -> Dict[str, Any]:
        """
        Validate body against every rule.

        Raises:
            ValidationError: with all violations, if any rule failed.
        """
        cleaned, violations = self.collect(body)
        if violations:
            raise ValidationError.from_violations(violations, operation=self.name)
        return cleaned

    def __repr__(self) -> str:
        return f"<RuleSet({self.name}: {', '.join(self.fields)})>"


# ---------------------------------------------------------------------------
# Task rule sets
# ---------------------------------------------------------------------------

CREATE_TASK = RuleSet("create_task", [
    FieldRule("title", required=True, trim=True, non_empty=True, escape=True),
    FieldRule("description", nullable=True, trim=True, escape=True),
    FieldRule("status", required=True, choices=TASK_STATUSES),
])

UPDATE_TASK = RuleSet("update_task", [
    FieldRule("title", trim=True, non_empty=True, escape=True),
    FieldRule("description", nullable=True, trim=True, escape=True),
    FieldRule("status", choices=TASK_STATUSES),
])


def validate_task_id(task_id: Any) -> str:
    """
    Raise InvalidIdentifierError unless task_id is a valid store identifier.

    Returns the canonical (lowercase) form stores key on.
    """
    if not is_valid_task_id(task_id):
        raise InvalidIdentifierError(value=str(task_id))
    return task_id.lower()


def validate_create(body: Any) -> Dict[str, Any]:
    """Validate a create payload; returns the cleaned fields."""
    return CREATE_TASK.validate(body)


def validate_update(task_id: Any, body: Any) -> Dict[str, Any]:
    """
    Validate an update: path identifier plus partial body.

    Both are checked before a verdict. Body violations win and carry the
    identifier violation alongside; a bad identifier alone is reported as
    InvalidIdentifierError.
    """
    cleaned, violations = UPDATE_TASK.collect(body)
    id_ok = is_valid_task_id(task_id)
    if violations:
        if not id_ok:
            violations.insert(0, {"field": "id", "message": "Invalid ID format", "value": task_id})
        raise ValidationError.from_violations(violations, operation=UPDATE_TASK.name)
    if not id_ok:
        raise InvalidIdentifierError(value=str(task_id))
    return cleaned
