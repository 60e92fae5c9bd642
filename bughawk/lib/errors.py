"""
Typed errors raised by BugHawk core operations.

Every error a caller needs to tell apart has its own class so the CLI
(or any other front end) can map it to the right message and status.
None of these are retried internally.
"""


class BugHawkError(Exception):
    """Base class for all domain errors."""


class Unauthorized(BugHawkError):
    """Raised when the acting member lacks a required capability."""

    def __init__(self, user_id: str | None, capability, project_id: str = ""):
        self.user_id = user_id
        self.capability = capability
        self.project_id = project_id
        super().__init__(
            f"User {user_id or '(none)'} lacks {capability.value}"
            + (f" in project {project_id}" if project_id else "")
        )


class InvalidTransition(BugHawkError):
    """Raised when attempting a status change outside the transition table."""

    def __init__(self, from_state, to_state, issue_id: str = ""):
        self.from_state = from_state
        self.to_state = to_state
        self.issue_id = issue_id
        super().__init__(
            f"Invalid transition: {from_state.value} -> {to_state.value}"
            + (f" (issue: {issue_id})" if issue_id else "")
        )


class AlreadyMember(BugHawkError):
    """Raised when adding a member that already exists."""

    def __init__(self, project_id: str, user_id: str):
        self.project_id = project_id
        self.user_id = user_id
        super().__init__(f"User {user_id} is already a member of project {project_id}")


class NotMember(BugHawkError):
    """Raised when a (project, user) pair has no membership."""

    def __init__(self, project_id: str, user_id: str):
        self.project_id = project_id
        self.user_id = user_id
        super().__init__(f"User {user_id} is not a member of project {project_id}")


class LastOwner(BugHawkError):
    """Raised when a change would leave a project without an owner."""

    def __init__(self, project_id: str, user_id: str):
        self.project_id = project_id
        self.user_id = user_id
        super().__init__(
            f"User {user_id} is the last owner of project {project_id}; "
            "add another owner first"
        )


class IssueNotFound(BugHawkError):
    """Raised by mutating operations that target a missing issue."""

    def __init__(self, issue_id: str):
        self.issue_id = issue_id
        super().__init__(f"Issue not found: {issue_id}")
