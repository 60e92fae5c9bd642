"""Role catalog and capability checks.

Usage:
    from bughawk.access import authorize, default_capabilities

    if authorize(membership, Capability.EDIT_ISSUE):
        ...
"""

from bughawk.access.permissions import (
    ALL_CAPABILITIES,
    DEFAULT_PROJECT_PERMISSIONS,
    default_capabilities,
    parse_capability,
    parse_role,
)
from bughawk.access.authorize import (
    authorize,
    authorize_all,
    authorize_any,
    effective_capabilities,
    require,
)
