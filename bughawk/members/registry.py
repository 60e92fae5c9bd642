"""
Project membership registry.

Source of truth for who belongs to which project and with what role.
Enforces one membership per (project, user) and that a project always
keeps at least one OWNER.

Usage:
    from bughawk.members.registry import MembershipRegistry

    registry = MembershipRegistry(MemoryStore(), emitter=bus)
    registry.add_member("bh", "u1", Role.OWNER)
    registry.add_member("bh", "u2", Role.DEVELOPER, actor_id="u1")
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Optional

from bughawk.events import DomainEvent, EventEmitter, EventKind, NullEmitter
from bughawk.lib.errors import AlreadyMember, LastOwner, NotMember
from bughawk.lib.store import MembershipStore, project_key
from bughawk.lib.types import Capability, Membership, Role

logger = logging.getLogger(__name__)


def _member_payload(membership: Membership) -> dict:
    return {
        "project_id": membership.project_id,
        "user_id": membership.user_id,
        "role": membership.role.value,
        "overrides": sorted(c.value for c in membership.overrides),
    }


class MembershipRegistry:
    """Directory of (project, user) -> Membership backed by a store.

    Mutations run under the store's per-project lock because the owner
    check reads every membership of the project.
    """

    def __init__(self, store: MembershipStore, emitter: EventEmitter | None = None):
        self.store = store
        self.emitter = emitter or NullEmitter()

    def get(self, project_id: str, user_id: str) -> Optional[Membership]:
        """Look up a membership. Returns None if the user is not a member."""
        return self.store.load_membership(project_id, user_id)

    def list_members(self, project_id: str) -> list[Membership]:
        return self.store.list_memberships(project_id)

    def owners(self, project_id: str) -> list[Membership]:
        return [m for m in self.list_members(project_id) if m.role == Role.OWNER]

    def add_member(
        self,
        project_id: str,
        user_id: str,
        role: Role,
        overrides: Iterable[Capability] = (),
        actor_id: str | None = None,
        now: datetime | None = None,
    ) -> Membership:
        """Add a user to a project.

        Raises:
            AlreadyMember: If the user already has a membership in the project
        """
        with self.store.lock(project_key(project_id)):
            if self.store.load_membership(project_id, user_id) is not None:
                raise AlreadyMember(project_id, user_id)

            membership = Membership(
                project_id=project_id,
                user_id=user_id,
                role=role,
                overrides=frozenset(overrides),
                joined_at=now or datetime.now(),
            )
            self.store.save_membership(membership)

        logger.info(f"[MEMBERS] {project_id}: added {user_id} as {role.value}")
        self._publish(EventKind.MEMBER_ADDED, _member_payload(membership), actor_id)
        return membership

    def remove_member(self, project_id: str, user_id: str, actor_id: str | None = None) -> None:
        """Remove a user from a project.

        Raises:
            NotMember: If the user has no membership in the project
            LastOwner: If the user is the project's only OWNER
        """
        with self.store.lock(project_key(project_id)):
            membership = self.store.load_membership(project_id, user_id)
            if membership is None:
                raise NotMember(project_id, user_id)
            if membership.role == Role.OWNER and self._is_last_owner(project_id, user_id):
                raise LastOwner(project_id, user_id)
            self.store.delete_membership(project_id, user_id)

        logger.info(f"[MEMBERS] {project_id}: removed {user_id}")
        self._publish(EventKind.MEMBER_REMOVED, _member_payload(membership), actor_id)

    def update_member(
        self,
        project_id: str,
        user_id: str,
        role: Role | None = None,
        overrides: Iterable[Capability] | None = None,
        actor_id: str | None = None,
    ) -> Membership:
        """Change a member's role and/or overrides. Omitted fields stay as they are.

        Raises:
            NotMember: If the user has no membership in the project
            LastOwner: If this would downgrade the project's only OWNER
        """
        with self.store.lock(project_key(project_id)):
            current = self.store.load_membership(project_id, user_id)
            if current is None:
                raise NotMember(project_id, user_id)

            new_role = role if role is not None else current.role
            if (
                current.role == Role.OWNER
                and new_role != Role.OWNER
                and self._is_last_owner(project_id, user_id)
            ):
                raise LastOwner(project_id, user_id)

            updated = replace(
                current,
                role=new_role,
                overrides=frozenset(overrides) if overrides is not None else current.overrides,
            )
            self.store.save_membership(updated)

        payload = _member_payload(updated)
        payload["previous_role"] = current.role.value
        logger.info(f"[MEMBERS] {project_id}: updated {user_id} ({current.role.value} -> {new_role.value})")
        self._publish(EventKind.MEMBER_UPDATED, payload, actor_id)
        return updated

    def _is_last_owner(self, project_id: str, user_id: str) -> bool:
        return not any(m.user_id != user_id for m in self.owners(project_id))

    def _publish(self, kind: EventKind, payload: dict, actor_id: str | None) -> None:
        self.emitter.publish(DomainEvent(kind=kind, payload=payload, actor_id=actor_id))
