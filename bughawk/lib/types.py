"""
Shared data types for BugHawk.

Enums and dataclasses used across the access, members and workflow
packages. Kept in one module to avoid circular imports.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Optional


class Role(Enum):
    """Project-scoped role held by a member."""

    OWNER = "owner"
    ADMIN = "admin"
    DEVELOPER = "developer"
    QA = "qa"
    VIEWER = "viewer"


class Capability(Enum):
    """A single permitted action type within a project."""

    CREATE_ISSUE = "create_issue"
    EDIT_ISSUE = "edit_issue"
    DELETE_ISSUE = "delete_issue"
    ASSIGN_ISSUE = "assign_issue"
    RESOLVE_ISSUE = "resolve_issue"
    MANAGE_MEMBERS = "manage_members"
    MANAGE_PROJECT = "manage_project"
    VIEW_REPORTS = "view_reports"
    MANAGE_SETTINGS = "manage_settings"


class IssueStatus(Enum):
    """Issue lifecycle states. Values match FSM state strings."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    IN_REVIEW = "in_review"
    RESOLVED = "resolved"
    CLOSED = "closed"
    REOPENED = "reopened"


class IssuePriority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
    BLOCKER = "blocker"


class IssueSeverity(Enum):
    TRIVIAL = "trivial"
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"
    BLOCKER = "blocker"


class IssueType(Enum):
    BUG = "bug"
    FEATURE = "feature"
    IMPROVEMENT = "improvement"
    TASK = "task"
    STORY = "story"
    EPIC = "epic"


# Statuses for which resolved_at must be set
RESOLVED_CLASS = frozenset({IssueStatus.RESOLVED, IssueStatus.CLOSED})


@dataclass(frozen=True)
class Membership:
    """Binding of a user to a project.

    overrides only ever add capabilities on top of the role defaults.
    """
    project_id: str
    user_id: str
    role: Role
    overrides: frozenset = field(default_factory=frozenset)  # frozenset[Capability]
    joined_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "project_id": self.project_id,
            "user_id": self.user_id,
            "role": self.role.value,
            "overrides": sorted(c.value for c in self.overrides),
            "joined_at": self.joined_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Membership":
        return cls(
            project_id=data["project_id"],
            user_id=data["user_id"],
            role=Role(data["role"]),
            overrides=frozenset(Capability(c) for c in data.get("overrides", [])),
            joined_at=datetime.fromisoformat(data["joined_at"]),
        )


@dataclass
class Issue:
    """A tracked issue. project_id and reporter_id never change after creation."""
    id: str
    title: str
    project_id: str
    reporter_id: str
    type: IssueType
    priority: IssuePriority
    severity: IssueSeverity
    description: str = ""
    status: IssueStatus = IssueStatus.OPEN
    assignee_id: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    watchers: list[str] = field(default_factory=list)
    steps_to_reproduce: Optional[str] = None
    expected_behavior: Optional[str] = None
    actual_behavior: Optional[str] = None
    environment: Optional[str] = None
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    due_date: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def is_resolved(self) -> bool:
        return self.status in RESOLVED_CLASS

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ("type", "priority", "severity", "status"):
            data[key] = data[key].value
        for key in ("due_date", "resolved_at", "created_at", "updated_at"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Issue":
        data = dict(data)
        data["type"] = IssueType(data["type"])
        data["priority"] = IssuePriority(data["priority"])
        data["severity"] = IssueSeverity(data["severity"])
        data["status"] = IssueStatus(data.get("status", "open"))
        for key in ("due_date", "resolved_at", "created_at", "updated_at"):
            if data.get(key):
                data[key] = datetime.fromisoformat(data[key])
        return cls(**data)
