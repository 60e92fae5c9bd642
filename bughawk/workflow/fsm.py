"""Issue lifecycle state machine using transitions library.

Declares the legal status changes for an issue as named triggers, and the
capability each one requires from the acting member.

Usage:
    from bughawk.workflow.fsm import IssueFSM

    fsm = IssueFSM("ISS-1", "open")
    fsm.start_progress()  # open -> in_progress
    fsm.submit_for_review()  # in_progress -> in_review
    fsm.resolve()  # in_review -> resolved
"""

import logging
from transitions import Machine

from bughawk.lib.types import Capability, IssueStatus

logger = logging.getLogger(__name__)


STATES = [s.value for s in IssueStatus]

INITIAL_STATE = IssueStatus.OPEN.value

# (trigger, source, dest, required capability)
WORKFLOW = [
    ("start_progress", IssueStatus.OPEN, IssueStatus.IN_PROGRESS, Capability.EDIT_ISSUE),
    ("submit_for_review", IssueStatus.IN_PROGRESS, IssueStatus.IN_REVIEW, Capability.EDIT_ISSUE),
    ("stop_progress", IssueStatus.IN_PROGRESS, IssueStatus.OPEN, Capability.EDIT_ISSUE),
    ("resolve", IssueStatus.IN_REVIEW, IssueStatus.RESOLVED, Capability.RESOLVE_ISSUE),
    ("request_changes", IssueStatus.IN_REVIEW, IssueStatus.IN_PROGRESS, Capability.EDIT_ISSUE),
    ("close", IssueStatus.RESOLVED, IssueStatus.CLOSED, Capability.EDIT_ISSUE),
    ("reopen", IssueStatus.RESOLVED, IssueStatus.REOPENED, Capability.EDIT_ISSUE),
    ("reopen", IssueStatus.CLOSED, IssueStatus.REOPENED, Capability.EDIT_ISSUE),
    ("start_progress", IssueStatus.REOPENED, IssueStatus.IN_PROGRESS, Capability.EDIT_ISSUE),
]

TRANSITIONS = [
    {"trigger": trigger, "source": source.value, "dest": dest.value}
    for trigger, source, dest, _ in WORKFLOW
]


# Pre-computed lookups keyed by (source, dest) state strings
def _build_lookups() -> tuple[dict[tuple[str, str], str], dict[tuple[str, str], Capability]]:
    """Build (source, dest) -> trigger and (source, dest) -> capability maps."""
    triggers: dict[tuple[str, str], str] = {}
    capabilities: dict[tuple[str, str], Capability] = {}
    for trigger, source, dest, capability in WORKFLOW:
        key = (source.value, dest.value)
        triggers[key] = trigger
        capabilities[key] = capability
    return triggers, capabilities


TRIGGER_FOR, CAPABILITY_FOR = _build_lookups()


class IssueFSM:
    """State machine for a single issue's status.

    Holds only the status string; the caller owns the Issue record and
    decides what to do with the new state.
    """

    def __init__(
        self,
        issue_id: str,
        status: str = INITIAL_STATE,
    ):
        """Initialize FSM for an issue.

        Args:
            issue_id: Issue identifier, used for logging
            status: Current status string
        """
        self.issue_id = issue_id

        if status not in STATES:
            raise ValueError(f"Unknown issue status '{status}' for {issue_id}")

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial=status,
            auto_transitions=False,  # Only explicit transitions
            send_event=True,  # Pass EventData to callbacks
            after_state_change="on_state_change",
        )

    def on_state_change(self, event) -> None:
        """Callback after any state transition."""
        from_state = event.transition.source
        to_state = event.transition.dest
        trigger = event.event.name

        logger.info(f"[FSM] {self.issue_id}: {from_state} -> {to_state} ({trigger})")

    def can(self, trigger: str) -> bool:
        """Check if a trigger can be executed in current state."""
        return trigger in self.machine.get_triggers(self.state)
