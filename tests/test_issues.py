"""Tests for bughawk.workflow.issues.IssueService."""

import pytest

from bughawk.events import EventKind, RecordingEmitter
from bughawk.lib.errors import InvalidTransition, IssueNotFound, LastOwner, NotMember, Unauthorized
from bughawk.lib.store import MemoryStore
from bughawk.lib.types import Capability, IssuePriority, IssueStatus, Role
from bughawk.lib.validate import ValidationError
from bughawk.members import MembershipRegistry
from bughawk.workflow import IssueService
from bughawk.workflow.reports import IssueFilters

BUG = {"title": "Crash on save", "type": "bug", "priority": "high", "severity": "major"}


@pytest.fixture
def emitter():
    return RecordingEmitter()


@pytest.fixture
def service(emitter):
    """Project P: OWNER u1, DEVELOPER u2, QA u3, VIEWER u4."""
    store = MemoryStore()
    registry = MembershipRegistry(store)
    registry.add_member("P", "u1", Role.OWNER)
    registry.add_member("P", "u2", Role.DEVELOPER)
    registry.add_member("P", "u3", Role.QA)
    registry.add_member("P", "u4", Role.VIEWER)
    registry.add_member("Q", "u9", Role.OWNER)
    return IssueService(store, registry, emitter=emitter)


@pytest.fixture
def issue(service, emitter):
    created = service.create_issue("P", "u3", BUG)
    emitter.clear()
    return created


class TestCreateIssue:
    def test_create(self, service, emitter):
        issue = service.create_issue("P", "u2", BUG)

        assert issue.status == IssueStatus.OPEN
        assert issue.reporter_id == "u2"
        assert service.get_issue(issue.id) == issue
        assert [e.kind for e in emitter.events] == [EventKind.ISSUE_CREATED]
        assert emitter.events[0].payload["issue_id"] == issue.id

    def test_viewer_cannot_create(self, service, emitter):
        with pytest.raises(Unauthorized):
            service.create_issue("P", "u4", BUG)
        assert service.list_issues("P") == []
        assert emitter.events == []

    def test_non_member_cannot_create(self, service):
        with pytest.raises(Unauthorized):
            service.create_issue("P", "u9", BUG)

    def test_invalid_payload(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.create_issue("P", "u2", {"title": "no type"})
        assert len(exc_info.value.errors) == 3

    def test_with_assignee(self, service):
        issue = service.create_issue("P", "u2", {**BUG, "assignee_id": "u3"})
        assert issue.assignee_id == "u3"

    def test_assignee_must_be_member(self, service):
        with pytest.raises(NotMember):
            service.create_issue("P", "u2", {**BUG, "assignee_id": "u9"})
        assert service.list_issues("P") == []


class TestUpdateIssue:
    def test_edit_fields(self, service, issue):
        updated = service.update_issue(issue.id, "u2", {"priority": "low", "tags": ["ui"]})

        assert updated.priority == IssuePriority.LOW
        assert updated.tags == ["ui"]
        assert updated.updated_at >= issue.updated_at
        assert service.get_issue(issue.id).priority == IssuePriority.LOW

    def test_viewer_cannot_edit(self, service, issue):
        with pytest.raises(Unauthorized):
            service.update_issue(issue.id, "u4", {"title": "changed"})
        assert service.get_issue(issue.id).title == "Crash on save"

    def test_status_goes_through_lifecycle(self, service, issue, emitter):
        updated = service.update_issue(issue.id, "u2", {"status": "in_progress", "priority": "low"})

        assert updated.status == IssueStatus.IN_PROGRESS
        assert [e.kind for e in emitter.events] == [EventKind.ISSUE_TRANSITIONED, EventKind.ISSUE_UPDATED]
        assert emitter.events[1].payload["fields"] == ["priority"]

    def test_field_edit_emits_updated(self, service, issue, emitter):
        service.update_issue(issue.id, "u2", {"priority": "low", "tags": ["ui"]})

        assert [e.kind for e in emitter.events] == [EventKind.ISSUE_UPDATED]
        assert emitter.events[0].payload["fields"] == ["priority", "tags"]
        assert emitter.events[0].actor_id == "u2"

    def test_assignee_change_emits_assigned(self, service, issue, emitter):
        updated = service.update_issue(issue.id, "u1", {"priority": "low", "assignee_id": "u2"})

        assert updated.assignee_id == "u2"
        assert [e.kind for e in emitter.events] == [EventKind.ISSUE_ASSIGNED, EventKind.ISSUE_UPDATED]
        assigned, edited = emitter.events
        assert assigned.payload["previous_assignee_id"] is None
        assert assigned.payload["assignee_id"] == "u2"
        assert edited.payload["fields"] == ["priority"]

    def test_same_values_emit_nothing(self, service, issue, emitter):
        unchanged = service.update_issue(issue.id, "u2", {"priority": "high", "title": "Crash on save"})

        assert unchanged == issue
        assert emitter.events == []

    def test_illegal_status_rejected(self, service, issue, emitter):
        with pytest.raises(InvalidTransition):
            service.update_issue(issue.id, "u2", {"status": "closed", "priority": "low"})

        stored = service.get_issue(issue.id)
        assert stored.status == IssueStatus.OPEN
        assert stored.priority == IssuePriority.HIGH
        assert emitter.events == []

    def test_unchanged_status_is_not_a_transition(self, service, issue, emitter):
        service.update_issue(issue.id, "u2", {"status": "open"})
        assert emitter.events == []

    def test_assignee_change_needs_assign(self, service, issue):
        service.registry.add_member("P", "u5", Role.VIEWER, overrides=[Capability.EDIT_ISSUE])
        with pytest.raises(Unauthorized) as exc_info:
            service.update_issue(issue.id, "u5", {"assignee_id": "u2"})
        assert exc_info.value.capability == Capability.ASSIGN_ISSUE

    def test_missing_issue(self, service):
        with pytest.raises(IssueNotFound):
            service.update_issue("nope", "u1", {"title": "x"})

    def test_invalid_payload(self, service, issue):
        with pytest.raises(ValidationError):
            service.update_issue(issue.id, "u1", {"reporter_id": "u2"})


class TestTransitionIssue:
    def test_persisted(self, service, issue, emitter):
        service.transition_issue(issue.id, "u2", IssueStatus.IN_PROGRESS)

        assert service.get_issue(issue.id).status == IssueStatus.IN_PROGRESS
        assert emitter.events[0].payload["from"] == "open"
        assert emitter.events[0].payload["to"] == "in_progress"

    def test_full_cycle_keeps_resolved_at(self, service, issue):
        for status in (IssueStatus.IN_PROGRESS, IssueStatus.IN_REVIEW, IssueStatus.RESOLVED):
            service.transition_issue(issue.id, "u2", status)
        resolved_at = service.get_issue(issue.id).resolved_at
        assert resolved_at is not None

        service.transition_issue(issue.id, "u2", IssueStatus.CLOSED)
        assert service.get_issue(issue.id).resolved_at == resolved_at

        service.transition_issue(issue.id, "u2", IssueStatus.REOPENED)
        assert service.get_issue(issue.id).resolved_at is None

    def test_qa_cannot_resolve(self, service, issue):
        service.transition_issue(issue.id, "u3", IssueStatus.IN_PROGRESS)
        service.transition_issue(issue.id, "u3", IssueStatus.IN_REVIEW)

        with pytest.raises(Unauthorized):
            service.transition_issue(issue.id, "u3", IssueStatus.RESOLVED)
        assert service.get_issue(issue.id).status == IssueStatus.IN_REVIEW

    def test_member_of_other_project_rejected(self, service, issue):
        with pytest.raises(Unauthorized):
            service.transition_issue(issue.id, "u9", IssueStatus.IN_PROGRESS)


class TestAssignIssue:
    def test_assign_and_unassign(self, service, issue, emitter):
        assigned = service.assign_issue(issue.id, "u2", "u3")
        assert assigned.assignee_id == "u3"

        unassigned = service.assign_issue(issue.id, "u2", None)
        assert unassigned.assignee_id is None

        payloads = [e.payload for e in emitter.of_kind(EventKind.ISSUE_ASSIGNED)]
        assert payloads[0]["previous_assignee_id"] is None
        assert payloads[0]["assignee_id"] == "u3"
        assert payloads[1]["previous_assignee_id"] == "u3"

    def test_assignee_must_be_member(self, service, issue):
        with pytest.raises(NotMember):
            service.assign_issue(issue.id, "u2", "u9")
        assert service.get_issue(issue.id).assignee_id is None

    def test_viewer_cannot_assign(self, service, issue):
        with pytest.raises(Unauthorized):
            service.assign_issue(issue.id, "u4", "u2")


class TestRemoveMember:
    def test_unassigns_open_work(self, service, issue, emitter):
        other = service.create_issue("P", "u1", {**BUG, "title": "Typo in footer", "assignee_id": "u3"})
        service.assign_issue(issue.id, "u1", "u2")
        emitter.clear()

        unassigned = service.remove_member("P", "u2", "u1")

        assert unassigned == [issue.id]
        assert service.registry.get("P", "u2") is None
        assert service.get_issue(issue.id).assignee_id is None
        assert service.get_issue(other.id).assignee_id == "u3"
        assigned = emitter.of_kind(EventKind.ISSUE_ASSIGNED)
        assert len(assigned) == 1
        assert assigned[0].payload["previous_assignee_id"] == "u2"
        assert assigned[0].payload["assignee_id"] is None

    def test_no_assigned_issues(self, service, issue):
        assert service.remove_member("P", "u4", "u1") == []
        assert service.registry.get("P", "u4") is None

    def test_member_can_leave(self, service, issue):
        service.assign_issue(issue.id, "u1", "u3")
        assert service.remove_member("P", "u3", "u3") == [issue.id]
        assert service.get_issue(issue.id).assignee_id is None

    def test_developer_cannot_remove_others(self, service, issue):
        service.assign_issue(issue.id, "u1", "u3")
        with pytest.raises(Unauthorized):
            service.remove_member("P", "u3", "u2")
        assert service.registry.get("P", "u3") is not None
        assert service.get_issue(issue.id).assignee_id == "u3"

    def test_last_owner_keeps_issues(self, service, issue):
        service.assign_issue(issue.id, "u1", "u1")
        with pytest.raises(LastOwner):
            service.remove_member("P", "u1", "u1")
        assert service.get_issue(issue.id).assignee_id == "u1"


class TestDelete:
    def test_owner_deletes(self, service, issue, emitter):
        service.delete_issue(issue.id, "u1")

        assert service.get_issue(issue.id) is None
        assert [e.kind for e in emitter.events] == [EventKind.ISSUE_DELETED]

    def test_developer_cannot_delete(self, service, issue):
        with pytest.raises(Unauthorized):
            service.delete_issue(issue.id, "u2")
        assert service.get_issue(issue.id) is not None

    def test_delete_missing(self, service):
        with pytest.raises(IssueNotFound):
            service.delete_issue("nope", "u1")

    def test_bulk_delete(self, service, issue):
        second = service.create_issue("P", "u2", BUG)

        deleted = service.bulk_delete([issue.id, second.id, issue.id], "u1")

        assert deleted == [issue.id, second.id]
        assert service.list_issues("P") == []

    def test_bulk_delete_all_or_nothing(self, service, issue):
        other = service.create_issue("Q", "u9", BUG)
        service.registry.add_member("Q", "u1", Role.VIEWER)

        with pytest.raises(Unauthorized) as exc_info:
            service.bulk_delete([issue.id, other.id], "u1")

        assert exc_info.value.project_id == "Q"
        assert service.get_issue(issue.id) is not None
        assert service.get_issue(other.id) is not None

    def test_bulk_delete_missing_issue(self, service, issue):
        with pytest.raises(IssueNotFound):
            service.bulk_delete([issue.id, "nope"], "u1")
        assert service.get_issue(issue.id) is not None


class TestListIssues:
    def test_filters(self, service, issue):
        service.create_issue("P", "u2", {**BUG, "title": "Slow search", "priority": "low"})

        low = service.list_issues("P", IssueFilters(priority=[IssuePriority.LOW]))
        assert [i.title for i in low] == ["Slow search"]
        assert len(service.list_issues("P")) == 2
        assert service.list_issues("Q") == []
