"""
Issue use cases: create, update, assign, move, delete.

Each method loads what it needs, checks the actor's capability, validates,
mutates a copy, saves, then publishes one event. Everything between load
and save runs under the store's per-issue lock.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Optional

from bughawk.access.authorize import authorize_all, require
from bughawk.events import DomainEvent, EventEmitter, EventKind, NullEmitter, RecordingEmitter
from bughawk.lib.dto import parse_create_issue, parse_update_issue
from bughawk.lib.errors import IssueNotFound, NotMember, Unauthorized
from bughawk.lib.store import IssueStore, issue_key
from bughawk.lib.types import Capability, Issue, IssueStatus
from bughawk.lib.validate import ValidationError
from bughawk.members.registry import MembershipRegistry
from bughawk.workflow import lifecycle
from bughawk.workflow.reports import IssueFilters, filter_issues

logger = logging.getLogger(__name__)


class IssueService:
    def __init__(
        self,
        store: IssueStore,
        registry: MembershipRegistry,
        emitter: EventEmitter | None = None,
    ):
        self.store = store
        self.registry = registry
        self.emitter = emitter or NullEmitter()

    def get_issue(self, issue_id: str) -> Optional[Issue]:
        return self.store.load_issue(issue_id)

    def list_issues(self, project_id: str, filters: IssueFilters | None = None) -> list[Issue]:
        issues = self.store.list_issues(project_id)
        if filters is not None:
            issues = filter_issues(issues, filters)
        return issues

    def create_issue(self, project_id: str, reporter_id: str, data: dict) -> Issue:
        """Create a new OPEN issue.

        Raises:
            Unauthorized: If the reporter lacks CREATE_ISSUE
            ValidationError: If the payload is invalid
            NotMember: If assignee_id is not a project member
        """
        reporter = self.registry.get(project_id, reporter_id)
        require(reporter, Capability.CREATE_ISSUE, reporter_id, project_id)

        parsed = parse_create_issue(data, project_id, reporter_id)
        if not parsed.ok:
            raise ValidationError("create_issue", "invalid issue", str(parsed.errors[0].field), parsed.errors)
        issue = parsed.value

        if issue.assignee_id is not None:
            require(reporter, Capability.ASSIGN_ISSUE, reporter_id, project_id)
            self._check_assignee(project_id, issue.assignee_id)

        with self.store.lock(issue_key(issue.id)):
            self.store.save_issue(issue)

        logger.info(f"[ISSUE] {issue.id}: created in {project_id} by {reporter_id}")
        self._publish(EventKind.ISSUE_CREATED, issue, reporter_id, {"title": issue.title})
        return issue

    def update_issue(self, issue_id: str, actor_id: str, data: dict) -> Issue:
        """Apply a partial update.

        A status change goes through the lifecycle state machine, and an
        assignee change needs ASSIGN_ISSUE on top of EDIT_ISSUE.
        """
        parsed = parse_update_issue(data)
        if not parsed.ok:
            raise ValidationError("update_issue", "invalid update", str(parsed.errors[0].field), parsed.errors)
        changes = dict(parsed.value)

        with self.store.lock(issue_key(issue_id)):
            issue = self._load(issue_id)
            actor = self.registry.get(issue.project_id, actor_id)
            require(actor, Capability.EDIT_ISSUE, actor_id, issue.project_id)

            if "assignee_id" in changes:
                require(actor, Capability.ASSIGN_ISSUE, actor_id, issue.project_id)
                if changes["assignee_id"] is not None:
                    self._check_assignee(issue.project_id, changes["assignee_id"])

            status = changes.pop("status", None)
            changes = {k: v for k, v in changes.items() if getattr(issue, k) != v}
            now = datetime.now()
            updated = issue
            recorder = RecordingEmitter()
            if status is not None and status != issue.status:
                updated = lifecycle.transition(issue, status, actor, emitter=recorder, now=now)
            if not changes and updated is issue:
                return issue

            updated = replace(updated, **changes, updated_at=now)
            self.store.save_issue(updated)

        # Transition first, then assignment, then the remaining fields
        for event in recorder.events:
            self.emitter.publish(event)
        if "assignee_id" in changes:
            self._publish(EventKind.ISSUE_ASSIGNED, updated, actor_id, {
                "previous_assignee_id": issue.assignee_id,
                "assignee_id": updated.assignee_id,
            })
        fields = sorted(k for k in changes if k != "assignee_id")
        if fields:
            self._publish(EventKind.ISSUE_UPDATED, updated, actor_id, {"fields": fields})
        logger.info(f"[ISSUE] {issue_id}: updated by {actor_id} ({', '.join(sorted(changes)) or 'status'})")
        return updated

    def transition_issue(self, issue_id: str, actor_id: str, to_state: IssueStatus) -> Issue:
        """Move an issue to a new status and persist it."""
        with self.store.lock(issue_key(issue_id)):
            issue = self._load(issue_id)
            actor = self.registry.get(issue.project_id, actor_id)
            recorder = RecordingEmitter()
            updated = lifecycle.transition(issue, to_state, actor, emitter=recorder)
            self.store.save_issue(updated)

        for event in recorder.events:
            self.emitter.publish(event)
        return updated

    def assign_issue(self, issue_id: str, actor_id: str, assignee_id: str | None) -> Issue:
        """Assign an issue to a project member, or unassign with None.

        Raises:
            Unauthorized: If the actor lacks ASSIGN_ISSUE
            NotMember: If the assignee is not a member of the issue's project
        """
        with self.store.lock(issue_key(issue_id)):
            issue = self._load(issue_id)
            actor = self.registry.get(issue.project_id, actor_id)
            require(actor, Capability.ASSIGN_ISSUE, actor_id, issue.project_id)
            if assignee_id is not None:
                self._check_assignee(issue.project_id, assignee_id)

            previous = issue.assignee_id
            updated = replace(issue, assignee_id=assignee_id, updated_at=datetime.now())
            self.store.save_issue(updated)

        logger.info(f"[ISSUE] {issue_id}: assignee {previous or '-'} -> {assignee_id or '-'}")
        self._publish(EventKind.ISSUE_ASSIGNED, updated, actor_id, {
            "previous_assignee_id": previous,
            "assignee_id": assignee_id,
        })
        return updated

    def remove_member(self, project_id: str, user_id: str, actor_id: str) -> list[str]:
        """Remove a member and unassign their issues in the project.

        Leaving a project needs no capability; removing someone else needs
        MANAGE_MEMBERS.

        Returns:
            IDs of the issues that were unassigned

        Raises:
            Unauthorized: If the actor lacks MANAGE_MEMBERS
            NotMember: If the user has no membership in the project
            LastOwner: If the user is the project's only OWNER
        """
        if user_id != actor_id:
            actor = self.registry.get(project_id, actor_id)
            require(actor, Capability.MANAGE_MEMBERS, actor_id, project_id)
        self.registry.remove_member(project_id, user_id, actor_id=actor_id)

        unassigned = []
        for stale in self.store.list_issues(project_id):
            if stale.assignee_id != user_id:
                continue
            with self.store.lock(issue_key(stale.id)):
                issue = self.store.load_issue(stale.id)
                if issue is None or issue.assignee_id != user_id:
                    continue
                updated = replace(issue, assignee_id=None, updated_at=datetime.now())
                self.store.save_issue(updated)
            unassigned.append(updated.id)
            self._publish(EventKind.ISSUE_ASSIGNED, updated, actor_id, {
                "previous_assignee_id": user_id,
                "assignee_id": None,
            })

        if unassigned:
            logger.info(f"[ISSUE] {project_id}: unassigned {len(unassigned)} issue(s) from removed member {user_id}")
        return unassigned

    def delete_issue(self, issue_id: str, actor_id: str) -> None:
        with self.store.lock(issue_key(issue_id)):
            issue = self._load(issue_id)
            actor = self.registry.get(issue.project_id, actor_id)
            require(actor, Capability.DELETE_ISSUE, actor_id, issue.project_id)
            self.store.delete_issue(issue_id)

        logger.info(f"[ISSUE] {issue_id}: deleted by {actor_id}")
        self._publish(EventKind.ISSUE_DELETED, issue, actor_id)

    def bulk_delete(self, issue_ids: Iterable[str], actor_id: str) -> list[str]:
        """Delete several issues, all or nothing.

        The actor needs DELETE_ISSUE in the project of every target issue;
        nothing is deleted unless every check passes.

        Returns:
            IDs of the deleted issues, in input order
        """
        issue_ids = list(dict.fromkeys(issue_ids))
        issues = [self._load(i) for i in issue_ids]

        for project_id in sorted({i.project_id for i in issues}):
            actor = self.registry.get(project_id, actor_id)
            if not authorize_all(actor, [Capability.DELETE_ISSUE]):
                raise Unauthorized(actor_id, Capability.DELETE_ISSUE, project_id)

        for issue in issues:
            with self.store.lock(issue_key(issue.id)):
                self.store.delete_issue(issue.id)
            self._publish(EventKind.ISSUE_DELETED, issue, actor_id)

        logger.info(f"[ISSUE] bulk delete by {actor_id}: {len(issues)} issue(s)")
        return issue_ids

    def _load(self, issue_id: str) -> Issue:
        issue = self.store.load_issue(issue_id)
        if issue is None:
            raise IssueNotFound(issue_id)
        return issue

    def _check_assignee(self, project_id: str, assignee_id: str) -> None:
        if self.registry.get(project_id, assignee_id) is None:
            raise NotMember(project_id, assignee_id)

    def _publish(self, kind: EventKind, issue: Issue, actor_id: str, extra: dict | None = None) -> None:
        payload = {"issue_id": issue.id, "project_id": issue.project_id}
        payload.update(extra or {})
        self.emitter.publish(DomainEvent(kind=kind, payload=payload, actor_id=actor_id))

