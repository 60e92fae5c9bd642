"""
Request payload parsing.

Turns raw dicts (CLI arguments, decoded JSON bodies) into typed values.
Each parse_* function is pure: it returns a Parsed holding either the
value or the full list of field errors, and never raises for bad input.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from bughawk.lib.types import (
    Capability,
    Issue,
    IssuePriority,
    IssueSeverity,
    IssueStatus,
    IssueType,
    Role,
)
from bughawk.lib.validate import FieldError, collect_errors


@dataclass
class Parsed:
    """Result of parsing a payload: a value or a list of field errors."""
    value: Any = None
    errors: list[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class MemberRequest:
    user_id: str
    role: Role
    overrides: frozenset = frozenset()


@dataclass(frozen=True)
class MemberUpdate:
    role: Optional[Role] = None
    overrides: Optional[frozenset] = None  # None means unchanged


ENUM_FIELDS = {
    "type": IssueType,
    "priority": IssuePriority,
    "severity": IssueSeverity,
    "status": IssueStatus,
}


def _strip_title(raw: dict) -> dict:
    # Whitespace-only titles must fail minLength
    if isinstance(raw.get("title"), str):
        return {**raw, "title": raw["title"].strip()}
    return raw


def _parse_date(raw: dict, key: str, errors: list[FieldError]) -> Optional[datetime]:
    value = raw.get(key)
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        errors.append(FieldError(key, f"'{value}' is not an ISO 8601 date"))
        return None


def parse_create_issue(
    raw: dict,
    project_id: str,
    reporter_id: str,
    issue_id: str | None = None,
    now: datetime | None = None,
) -> Parsed:
    """Parse a create-issue payload into a new OPEN Issue."""
    raw = _strip_title(raw)
    errors = collect_errors(raw, "create_issue")
    if errors:
        return Parsed(errors=errors)

    due_date = _parse_date(raw, "due_date", errors)
    if errors:
        return Parsed(errors=errors)

    now = now or datetime.now()
    issue = Issue(
        id=issue_id or str(uuid.uuid4()),
        title=raw["title"],
        description=raw.get("description", ""),
        project_id=project_id,
        reporter_id=reporter_id,
        type=IssueType(raw["type"]),
        priority=IssuePriority(raw["priority"]),
        severity=IssueSeverity(raw["severity"]),
        status=IssueStatus.OPEN,
        assignee_id=raw.get("assignee_id"),
        tags=list(dict.fromkeys(raw.get("tags", []))),
        steps_to_reproduce=raw.get("steps_to_reproduce"),
        expected_behavior=raw.get("expected_behavior"),
        actual_behavior=raw.get("actual_behavior"),
        environment=raw.get("environment"),
        estimated_hours=raw.get("estimated_hours"),
        due_date=due_date,
        created_at=now,
        updated_at=now,
    )
    return Parsed(value=issue)


def parse_update_issue(raw: dict) -> Parsed:
    """Parse an update-issue payload into a dict of typed changes.

    Only keys present in the payload appear in the result.
    """
    raw = _strip_title(raw)
    errors = collect_errors(raw, "update_issue")
    if errors:
        return Parsed(errors=errors)

    changes: dict[str, Any] = {}
    for key, value in raw.items():
        if key in ENUM_FIELDS:
            changes[key] = ENUM_FIELDS[key](value)
        elif key == "due_date":
            changes[key] = _parse_date(raw, key, errors)
        elif key == "tags":
            changes[key] = list(dict.fromkeys(value))
        else:
            changes[key] = value
    if errors:
        return Parsed(errors=errors)
    return Parsed(value=changes)


def parse_add_member(raw: dict) -> Parsed:
    """Parse an add-member payload into a MemberRequest."""
    errors = collect_errors(raw, "add_member")
    if errors:
        return Parsed(errors=errors)
    return Parsed(value=MemberRequest(
        user_id=raw["user_id"],
        role=Role(raw["role"]),
        overrides=frozenset(Capability(c) for c in raw.get("permissions", [])),
    ))


def parse_update_member(raw: dict) -> Parsed:
    """Parse an update-member payload into a MemberUpdate."""
    errors = collect_errors(raw, "update_member")
    if errors:
        return Parsed(errors=errors)
    overrides = None
    if "permissions" in raw:
        overrides = frozenset(Capability(c) for c in raw["permissions"])
    return Parsed(value=MemberUpdate(
        role=Role(raw["role"]) if "role" in raw else None,
        overrides=overrides,
    ))
