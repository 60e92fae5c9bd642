"""
Capability checks against a project membership.

All functions here are pure: the answer depends only on the membership
snapshot passed in. A missing membership is a normal "no" and never an
error, except in require() which mutating operations use to fail fast.
"""

from typing import Iterable, Optional

from bughawk.access.permissions import ALL_CAPABILITIES, default_capabilities
from bughawk.lib.errors import Unauthorized
from bughawk.lib.types import Capability, Membership, Role


def effective_capabilities(membership: Optional[Membership]) -> frozenset:
    """Role defaults plus overrides. OWNER always gets everything."""
    if membership is None:
        return frozenset()
    if membership.role == Role.OWNER:
        return ALL_CAPABILITIES
    return default_capabilities(membership.role) | frozenset(membership.overrides)


def authorize(membership: Optional[Membership], capability: Capability) -> bool:
    """Check whether a membership grants a single capability."""
    if membership is None:
        return False
    if membership.role == Role.OWNER:
        return True
    return capability in effective_capabilities(membership)


def authorize_any(membership: Optional[Membership], capabilities: Iterable[Capability]) -> bool:
    """True if at least one of the capabilities is granted."""
    return any(authorize(membership, c) for c in capabilities)


def authorize_all(membership: Optional[Membership], capabilities: Iterable[Capability]) -> bool:
    """True if every capability is granted. Empty input is vacuously granted."""
    return all(authorize(membership, c) for c in capabilities)


def require(
    membership: Optional[Membership],
    capability: Capability,
    user_id: str | None = None,
    project_id: str = "",
) -> None:
    """Raise Unauthorized unless the membership grants the capability."""
    if not authorize(membership, capability):
        if membership is not None:
            user_id = membership.user_id
            project_id = membership.project_id
        raise Unauthorized(user_id, capability, project_id)
