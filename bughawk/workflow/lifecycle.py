"""Issue status changes with capability checks and resolution tracking.

Thin layer over the FSM in fsm.py. transition() validates the requested
change, checks the actor's capability, then returns an updated copy of
the issue. The input issue is never mutated, so a rejected transition
leaves nothing to roll back.

Usage:
    from bughawk.workflow.lifecycle import transition

    issue = transition(issue, IssueStatus.IN_PROGRESS, membership, emitter=bus)
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Optional

from bughawk.access.authorize import authorize, require
from bughawk.events import DomainEvent, EventEmitter, EventKind
from bughawk.lib.errors import InvalidTransition
from bughawk.lib.types import RESOLVED_CLASS, Capability, Issue, IssueStatus, Membership
from bughawk.workflow.fsm import CAPABILITY_FOR, TRIGGER_FOR, IssueFSM

logger = logging.getLogger(__name__)


def parse_status(status_str: str | None) -> IssueStatus | None:
    """Parse a status string into IssueStatus enum.

    Returns None if status is unknown.
    """
    if status_str is None:
        return None
    for state in IssueStatus:
        if state.value == status_str:
            return state
    return None


def required_capability(from_state: IssueStatus, to_state: IssueStatus) -> Capability | None:
    """Capability needed for a status change, or None if the change is not allowed."""
    return CAPABILITY_FOR.get((from_state.value, to_state.value))


def _scoped(issue: Issue, membership: Optional[Membership]) -> Optional[Membership]:
    """A membership in another project grants nothing on this issue."""
    if membership is not None and membership.project_id != issue.project_id:
        logger.warning(
            f"[ISSUE] {issue.id}: membership for project {membership.project_id} "
            f"ignored (issue belongs to {issue.project_id})"
        )
        return None
    return membership


def transition(
    issue: Issue,
    to_state: IssueStatus,
    membership: Optional[Membership],
    emitter: EventEmitter | None = None,
    now: datetime | None = None,
) -> Issue:
    """Move an issue to a new status.

    Args:
        issue: Issue to transition (left untouched)
        to_state: Target status
        membership: Acting member's membership in the issue's project
        emitter: Receives one IssueTransitioned event on success
        now: Timestamp to record (defaults to datetime.now())

    Returns:
        Updated copy of the issue

    Raises:
        InvalidTransition: If (current, target) is not a legal change
        Unauthorized: If the member lacks the required capability
    """
    from_state = issue.status
    capability = required_capability(from_state, to_state)
    if capability is None:
        raise InvalidTransition(from_state, to_state, issue.id)

    actor = _scoped(issue, membership)
    require(actor, capability, project_id=issue.project_id)

    trigger = TRIGGER_FOR[(from_state.value, to_state.value)]
    fsm = IssueFSM(issue.id, from_state.value)
    if not fsm.can(trigger):
        raise InvalidTransition(from_state, to_state, issue.id)
    getattr(fsm, trigger)()

    now = now or datetime.now()
    new_state = IssueStatus(fsm.state)

    # Closing keeps the resolution time recorded at RESOLVED
    resolved_at = (issue.resolved_at or now) if new_state in RESOLVED_CLASS else None

    updated = replace(
        issue,
        status=new_state,
        resolved_at=resolved_at,
        updated_at=now,
        tags=list(issue.tags),
        watchers=list(issue.watchers),
    )

    if emitter is not None:
        emitter.publish(DomainEvent(
            kind=EventKind.ISSUE_TRANSITIONED,
            payload={
                "issue_id": issue.id,
                "project_id": issue.project_id,
                "from": from_state.value,
                "to": new_state.value,
            },
            actor_id=actor.user_id,
            timestamp=now,
        ))

    return updated


def can_transition(issue: Issue, to_state: IssueStatus, membership: Optional[Membership]) -> bool:
    """Check whether transition() would succeed, without side effects."""
    capability = required_capability(issue.status, to_state)
    if capability is None:
        return False
    return authorize(_scoped(issue, membership), capability)


def available_transitions(issue: Issue, membership: Optional[Membership]) -> list[IssueStatus]:
    """Target statuses the member may move this issue to right now."""
    return [s for s in IssueStatus if can_transition(issue, s, membership)]
