"""BugHawk domain core: project roles, authorization and the issue lifecycle."""

__version__ = "1.0.0"
