"""
bughawk issue - Create, inspect and move issues.
"""

import sys

from bughawk.lib.errors import IssueNotFound
from bughawk.lib.types import Issue, IssuePriority, IssueSeverity, IssueStatus, IssueType
from bughawk.workflow.lifecycle import available_transitions
from bughawk.workflow.reports import IssueFilters, sort_issues

# argparse dest -> payload key for optional text fields
OPTIONAL_FIELDS = {
    "description": "description",
    "steps": "steps_to_reproduce",
    "expected": "expected_behavior",
    "actual": "actual_behavior",
    "environment": "environment",
    "estimate": "estimated_hours",
    "due": "due_date",
    "assignee": "assignee_id",
}


def _short(issue_id: str) -> str:
    return issue_id[:8]


def _resolve_issue_id(ctx, issue_id: str) -> str:
    """Accept a full ID or a unique prefix."""
    if ctx.store.load_issue(issue_id) is not None:
        return issue_id
    matches = [i.id for i in ctx.store.list_issues() if i.id.startswith(issue_id)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        print(f"ERROR: '{issue_id}' is ambiguous ({len(matches)} issues match)", file=sys.stderr)
        sys.exit(2)
    raise IssueNotFound(issue_id)


def cmd_issue_create(args, ctx) -> int:
    """Report a new issue."""
    data = {
        "title": args.title,
        "type": args.type,
        "priority": args.priority,
        "severity": args.severity,
    }
    for dest, key in OPTIONAL_FIELDS.items():
        value = getattr(args, dest, None)
        if value is not None:
            data[key] = value
    if args.tag:
        data["tags"] = args.tag

    issue = ctx.issues.create_issue(args.project, args.actor, data)
    print(f"Created {_short(issue.id)}: {issue.title}")
    print(f"  Full ID: {issue.id}")
    return 0


def cmd_issue_show(args, ctx) -> int:
    """Show one issue."""
    issue = ctx.store.load_issue(_resolve_issue_id(ctx, args.id))
    membership = ctx.registry.get(issue.project_id, args.actor)

    print(f"{issue.id}")
    print(f"  Title:     {issue.title}")
    print(f"  Project:   {issue.project_id}")
    print(f"  Status:    {issue.status.value}")
    print(f"  Type:      {issue.type.value}")
    print(f"  Priority:  {issue.priority.value}")
    print(f"  Severity:  {issue.severity.value}")
    print(f"  Reporter:  {issue.reporter_id}")
    print(f"  Assignee:  {issue.assignee_id or '-'}")
    if issue.tags:
        print(f"  Tags:      {', '.join(issue.tags)}")
    print(f"  Created:   {issue.created_at:%Y-%m-%d %H:%M}")
    print(f"  Updated:   {issue.updated_at:%Y-%m-%d %H:%M}")
    if issue.resolved_at:
        print(f"  Resolved:  {issue.resolved_at:%Y-%m-%d %H:%M}")
    if issue.description:
        print()
        print(issue.description)

    moves = available_transitions(issue, membership)
    print()
    if moves:
        print(f"You can move it to: {', '.join(s.value for s in moves)}")
    else:
        print("You cannot change its status.")
    return 0


def _print_issue_row(issue: Issue) -> None:
    title = issue.title[:36] + "..." if len(issue.title) > 36 else issue.title
    print(
        f"  {_short(issue.id):<10} {issue.status.value:<12} {issue.priority.value:<9} "
        f"{(issue.assignee_id or '-'):<12} {title}"
    )


def cmd_issue_list(args, ctx) -> int:
    """List issues in the project."""
    filters = IssueFilters(
        status=[IssueStatus(s) for s in args.status or []],
        priority=[IssuePriority(p) for p in args.priority or []],
        severity=[IssueSeverity(s) for s in args.severity or []],
        type=[IssueType(t) for t in args.type or []],
        assignee_id=args.assignee or [],
        tags=args.tag or [],
        search=args.search,
    )
    issues = ctx.issues.list_issues(args.project, filters)
    issues = sort_issues(issues, args.sort, "asc" if args.asc else "desc")

    if not issues:
        print(f"Issues in {args.project}: none")
        return 0

    print(f"Issues in {args.project}")
    print("-" * 72)
    for issue in issues:
        _print_issue_row(issue)
    print()
    print(f"{len(issues)} issue(s)")
    return 0


def cmd_issue_update(args, ctx) -> int:
    """Edit issue fields."""
    data = {}
    for key in ("title", "description", "type", "priority", "severity"):
        value = getattr(args, key, None)
        if value is not None:
            data[key] = value
    if args.actual_hours is not None:
        data["actual_hours"] = args.actual_hours
    if args.tag is not None:
        data["tags"] = args.tag
    if not data:
        print("ERROR: Nothing to update.", file=sys.stderr)
        return 1

    issue = ctx.issues.update_issue(_resolve_issue_id(ctx, args.id), args.actor, data)
    print(f"Updated {_short(issue.id)}: {', '.join(sorted(data))}")
    return 0


def cmd_issue_move(args, ctx) -> int:
    """Change issue status."""
    issue_id = _resolve_issue_id(ctx, args.id)
    before = ctx.store.load_issue(issue_id).status
    issue = ctx.issues.transition_issue(issue_id, args.actor, IssueStatus(args.status))
    print(f"{_short(issue.id)}: {before.value} -> {issue.status.value}")
    return 0


def cmd_issue_assign(args, ctx) -> int:
    """Assign or unassign an issue."""
    if args.none == (args.user is not None):
        print("ERROR: Give a user to assign, or --none to unassign.", file=sys.stderr)
        return 1
    issue = ctx.issues.assign_issue(_resolve_issue_id(ctx, args.id), args.actor, args.user)
    if issue.assignee_id:
        print(f"{_short(issue.id)} assigned to {issue.assignee_id}")
    else:
        print(f"{_short(issue.id)} unassigned")
    return 0


def cmd_issue_delete(args, ctx) -> int:
    """Delete one or more issues, all or nothing."""
    ids = [_resolve_issue_id(ctx, i) for i in args.ids]
    if len(ids) == 1:
        ctx.issues.delete_issue(ids[0], args.actor)
    else:
        ctx.issues.bulk_delete(ids, args.actor)
    print(f"Deleted {len(ids)} issue(s)")
    return 0
