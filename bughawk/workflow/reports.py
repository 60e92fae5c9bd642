"""
Issue filtering, sorting and project statistics.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from bughawk.access.authorize import require
from bughawk.lib.types import (
    Capability,
    Issue,
    IssuePriority,
    IssueSeverity,
    IssueStatus,
    IssueType,
    Membership,
)

SORT_FIELDS = ("created_at", "updated_at", "priority", "severity", "status", "title")

# Enum members are declared lowest first; rank by declaration order
_RANK = {
    "priority": {p: i for i, p in enumerate(IssuePriority)},
    "severity": {s: i for i, s in enumerate(IssueSeverity)},
    "status": {s: i for i, s in enumerate(IssueStatus)},
}


@dataclass
class IssueFilters:
    """Empty lists match everything."""
    status: list[IssueStatus] = field(default_factory=list)
    priority: list[IssuePriority] = field(default_factory=list)
    severity: list[IssueSeverity] = field(default_factory=list)
    type: list[IssueType] = field(default_factory=list)
    assignee_id: list[str] = field(default_factory=list)
    reporter_id: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)  # Issue must carry at least one
    search: Optional[str] = None  # Case-insensitive, title and description
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None


@dataclass
class IssueStats:
    total: int
    by_status: dict[str, int]
    by_priority: dict[str, int]
    by_severity: dict[str, int]
    by_type: dict[str, int]
    avg_resolution_hours: float  # 0.0 when nothing is resolved
    open_count: int
    resolved_count: int


def _matches(issue: Issue, f: IssueFilters) -> bool:
    if f.status and issue.status not in f.status:
        return False
    if f.priority and issue.priority not in f.priority:
        return False
    if f.severity and issue.severity not in f.severity:
        return False
    if f.type and issue.type not in f.type:
        return False
    if f.assignee_id and issue.assignee_id not in f.assignee_id:
        return False
    if f.reporter_id and issue.reporter_id not in f.reporter_id:
        return False
    if f.tags and not set(f.tags) & set(issue.tags):
        return False
    if f.search:
        needle = f.search.lower()
        if needle not in issue.title.lower() and needle not in issue.description.lower():
            return False
    if f.created_from and issue.created_at < f.created_from:
        return False
    if f.created_to and issue.created_at > f.created_to:
        return False
    return True


def filter_issues(issues: list[Issue], filters: IssueFilters) -> list[Issue]:
    return [i for i in issues if _matches(i, filters)]


def sort_issues(issues: list[Issue], field_name: str = "created_at", direction: str = "desc") -> list[Issue]:
    """Sort issues by one of SORT_FIELDS."""
    if field_name not in SORT_FIELDS:
        raise ValueError(f"Unknown sort field '{field_name}'. Use one of: {', '.join(SORT_FIELDS)}")
    if direction not in ("asc", "desc"):
        raise ValueError(f"Unknown sort direction '{direction}'")

    if field_name in _RANK:
        ranks = _RANK[field_name]
        key = lambda i: ranks[getattr(i, field_name)]
    elif field_name == "title":
        key = lambda i: i.title.lower()
    else:
        key = lambda i: getattr(i, field_name)
    return sorted(issues, key=key, reverse=(direction == "desc"))


def issue_stats(issues: list[Issue]) -> IssueStats:
    """Aggregate counts and mean time to resolution."""
    def count(attr: str, enum) -> dict[str, int]:
        counts = {member.value: 0 for member in enum}
        for issue in issues:
            counts[getattr(issue, attr).value] += 1
        return counts

    resolved = [i for i in issues if i.is_resolved and i.resolved_at is not None]
    if resolved:
        total_hours = sum((i.resolved_at - i.created_at).total_seconds() / 3600 for i in resolved)
        avg_hours = round(total_hours / len(resolved), 2)
    else:
        avg_hours = 0.0

    return IssueStats(
        total=len(issues),
        by_status=count("status", IssueStatus),
        by_priority=count("priority", IssuePriority),
        by_severity=count("severity", IssueSeverity),
        by_type=count("type", IssueType),
        avg_resolution_hours=avg_hours,
        open_count=sum(1 for i in issues if not i.is_resolved),
        resolved_count=len(resolved),
    )


def project_report(issues: list[Issue], membership: Optional[Membership], project_id: str) -> IssueStats:
    """Stats for one project, for members holding VIEW_REPORTS.

    Raises:
        Unauthorized: If the member lacks VIEW_REPORTS
    """
    require(membership, Capability.VIEW_REPORTS, project_id=project_id)
    return issue_stats([i for i in issues if i.project_id == project_id])
