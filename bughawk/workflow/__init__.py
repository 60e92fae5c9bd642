"""Issue lifecycle and issue use cases.

Usage:
    from bughawk.workflow import transition, IssueService
"""

from bughawk.workflow.lifecycle import (
    available_transitions,
    can_transition,
    parse_status,
    required_capability,
    transition,
)
from bughawk.workflow.issues import IssueService
