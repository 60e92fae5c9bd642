"""
Default capability table per project role.

Built once at import and never mutated afterwards.
"""

from types import MappingProxyType

from bughawk.lib.types import Capability, Role

ALL_CAPABILITIES = frozenset(Capability)

DEFAULT_PROJECT_PERMISSIONS = MappingProxyType({
    Role.OWNER: ALL_CAPABILITIES,
    Role.ADMIN: ALL_CAPABILITIES - {Capability.MANAGE_SETTINGS},
    Role.DEVELOPER: frozenset({
        Capability.CREATE_ISSUE,
        Capability.EDIT_ISSUE,
        Capability.ASSIGN_ISSUE,
        Capability.RESOLVE_ISSUE,
    }),
    Role.QA: frozenset({
        Capability.CREATE_ISSUE,
        Capability.EDIT_ISSUE,
        Capability.ASSIGN_ISSUE,
    }),
    Role.VIEWER: frozenset(),
})


def default_capabilities(role: Role) -> frozenset:
    """Return the capabilities a role grants without overrides."""
    return DEFAULT_PROJECT_PERMISSIONS[role]


def parse_role(value: str | None) -> Role | None:
    """Parse a role string into Role. Returns None if unknown."""
    if value is None:
        return None
    for role in Role:
        if role.value == value.lower():
            return role
    return None


def parse_capability(value: str | None) -> Capability | None:
    """Parse a capability string into Capability. Returns None if unknown."""
    if value is None:
        return None
    for capability in Capability:
        if capability.value == value.lower():
            return capability
    return None
