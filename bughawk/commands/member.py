"""
bughawk member - Manage project membership.
"""

import sys

from bughawk.access.authorize import effective_capabilities, require
from bughawk.lib.dto import parse_add_member, parse_update_member
from bughawk.lib.types import Capability, Role


def _print_errors(errors) -> int:
    print("ERROR: Invalid member request", file=sys.stderr)
    for e in errors:
        print(f"  {e}", file=sys.stderr)
    return 1


def _require_manager(ctx, project_id: str, actor_id: str) -> None:
    actor = ctx.registry.get(project_id, actor_id)
    require(actor, Capability.MANAGE_MEMBERS, actor_id, project_id)


def _is_owner(ctx, project_id: str, actor_id: str) -> bool:
    actor = ctx.registry.get(project_id, actor_id)
    return actor is not None and actor.role == Role.OWNER


def _owner_only() -> int:
    print("ERROR: Only an owner can grant or revoke the owner role.", file=sys.stderr)
    return 1


def cmd_member_add(args, ctx) -> int:
    """Add a user to the project."""
    parsed = parse_add_member({
        k: v for k, v in {
            "user_id": args.user,
            "role": args.role,
            "permissions": args.perm,
        }.items() if v is not None
    })
    if not parsed.ok:
        return _print_errors(parsed.errors)
    request = parsed.value

    # An empty project is bootstrapped by adding its first owner
    if ctx.registry.list_members(args.project):
        _require_manager(ctx, args.project, args.actor)
        if request.role == Role.OWNER and not _is_owner(ctx, args.project, args.actor):
            return _owner_only()
    elif request.role != Role.OWNER:
        print(f"ERROR: Project '{args.project}' has no members; the first member must be an owner.",
              file=sys.stderr)
        return 1

    membership = ctx.registry.add_member(
        args.project, request.user_id, request.role, request.overrides, actor_id=args.actor,
    )
    print(f"Added {membership.user_id} to {membership.project_id} as {membership.role.value}")
    return 0


def cmd_member_remove(args, ctx) -> int:
    """Remove a user from the project."""
    target = ctx.registry.get(args.project, args.user)
    if target is not None and target.role == Role.OWNER and args.user != args.actor:
        if not _is_owner(ctx, args.project, args.actor):
            return _owner_only()
    unassigned = ctx.issues.remove_member(args.project, args.user, args.actor)
    print(f"Removed {args.user} from {args.project}")
    if unassigned:
        print(f"  Unassigned {len(unassigned)} issue(s)")
    return 0


def cmd_member_update(args, ctx) -> int:
    """Change a member's role or extra permissions."""
    raw = {}
    if args.role is not None:
        raw["role"] = args.role
    if args.clear_perms:
        raw["permissions"] = []
    elif args.perm is not None:
        raw["permissions"] = args.perm
    if not raw:
        print("ERROR: Nothing to update. Use --role, --perm or --clear-perms.", file=sys.stderr)
        return 1

    parsed = parse_update_member(raw)
    if not parsed.ok:
        return _print_errors(parsed.errors)

    _require_manager(ctx, args.project, args.actor)
    update = parsed.value
    target = ctx.registry.get(args.project, args.user)
    touches_owner = update.role == Role.OWNER or (
        target is not None and target.role == Role.OWNER and update.role not in (None, Role.OWNER)
    )
    if touches_owner and not _is_owner(ctx, args.project, args.actor):
        return _owner_only()
    membership = ctx.registry.update_member(
        args.project, args.user, role=update.role, overrides=update.overrides, actor_id=args.actor,
    )
    extra = ", ".join(sorted(c.value for c in membership.overrides)) or "none"
    print(f"Updated {membership.user_id}: role={membership.role.value} extra={extra}")
    return 0


def cmd_member_list(args, ctx) -> int:
    """List members of the project."""
    members = ctx.registry.list_members(args.project)
    if not members:
        print(f"Project {args.project}: no members")
        return 0

    print(f"Members of {args.project}")
    print("-" * 60)
    for m in members:
        extra = ", ".join(sorted(c.value for c in m.overrides))
        joined = m.joined_at.strftime("%Y-%m-%d")
        print(f"  {m.user_id:<18} {m.role.value:<10} {joined}" + (f"  +{extra}" if extra else ""))
    print()
    print(f"{len(members)} member(s)")
    return 0


def cmd_can(args, ctx) -> int:
    """Show whether a user holds a capability. Exit 0 if granted, 1 if not."""
    user_id = args.user or args.actor
    membership = ctx.registry.get(args.project, user_id)
    capability = Capability(args.capability)
    caps = effective_capabilities(membership)

    granted = capability in caps
    print(f"{user_id} {'CAN' if granted else 'CANNOT'} {capability.value} in {args.project}")
    if membership is None:
        print("  (not a member)")
    elif args.verbose:
        print(f"  role: {membership.role.value}")
        print(f"  capabilities: {', '.join(sorted(c.value for c in caps)) or 'none'}")
    return 0 if granted else 1
