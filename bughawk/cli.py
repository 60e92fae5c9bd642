#!/usr/bin/env python3
"""BugHawk CLI entrypoint."""

import sys
import argparse

from bughawk.lib.config import load_config
from bughawk.lib.context import build_context, configure_logging
from bughawk.lib.errors import BugHawkError
from bughawk.lib.locking import LockTimeout
from bughawk.lib.types import Capability, IssuePriority, IssueSeverity, IssueStatus, IssueType, Role
from bughawk.lib.validate import ValidationError
from bughawk.commands import config as cmd_config_module
from bughawk.commands import issue as cmd_issue_module
from bughawk.commands import member as cmd_member_module
from bughawk.commands import report as cmd_report_module

ROLES = [r.value for r in Role]
CAPABILITIES = [c.value for c in Capability]
STATUSES = [s.value for s in IssueStatus]
PRIORITIES = [p.value for p in IssuePriority]
SEVERITIES = [s.value for s in IssueSeverity]
TYPES = [t.value for t in IssueType]


def resolve_project(args, config) -> str:
    """Resolve project from --project or configured default."""
    project = getattr(args, 'project', None) or config.default_project
    if project:
        return project
    print("ERROR: No project specified. Use --project or 'bughawk config set default_project <id>'.",
          file=sys.stderr)
    sys.exit(2)


def resolve_actor(args, config) -> str:
    """Resolve acting user from --as or configured current user."""
    actor = getattr(args, 'as_user', None) or config.current_user
    if actor:
        return actor
    print("ERROR: No user specified. Use --as or 'bughawk config set current_user <id>'.",
          file=sys.stderr)
    sys.exit(2)


def with_context(handler, needs_project: bool = True):
    """Wrap a command that needs an actor and wired services.

    Commands that address an issue by ID take the project from the issue,
    so --project is optional for them.
    """
    def run(args):
        config = load_config()
        if args.verbose:
            config.log_level = "DEBUG"
        configure_logging(config.log_level)
        if needs_project:
            args.project = resolve_project(args, config)
        else:
            args.project = getattr(args, "project", None) or config.default_project
        args.actor = resolve_actor(args, config)
        return handler(args, build_context(config))
    return run


def _print_error(e: BugHawkError) -> None:
    print(f"ERROR: {e}", file=sys.stderr)
    if isinstance(e, ValidationError):
        for field_error in e.errors[1:]:
            print(f"  {field_error}", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='bughawk', description='BugHawk issue tracker')
    parser.add_argument('--project', '-p', help='Project ID (defaults to config default_project)')
    parser.add_argument('--as', dest='as_user', help='Act as this user (defaults to config current_user)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # bughawk member
    p_member = subparsers.add_parser('member', aliases=['members'], help='Manage project members')
    member_sub = p_member.add_subparsers(dest='member_cmd', required=True)

    p_member_add = member_sub.add_parser('add', help='Add a member')
    p_member_add.add_argument('user', help='User ID')
    p_member_add.add_argument('--role', '-r', required=True, choices=ROLES)
    p_member_add.add_argument('--perm', action='append', choices=CAPABILITIES,
                              help='Extra capability beyond the role (repeatable)')
    p_member_add.set_defaults(func=with_context(cmd_member_module.cmd_member_add))

    p_member_remove = member_sub.add_parser('remove', help='Remove a member')
    p_member_remove.add_argument('user', help='User ID')
    p_member_remove.set_defaults(func=with_context(cmd_member_module.cmd_member_remove))

    p_member_update = member_sub.add_parser('update', help='Change role or extra permissions')
    p_member_update.add_argument('user', help='User ID')
    p_member_update.add_argument('--role', '-r', choices=ROLES)
    p_member_update.add_argument('--perm', action='append', choices=CAPABILITIES,
                                 help='Replace extra capabilities (repeatable)')
    p_member_update.add_argument('--clear-perms', action='store_true', help='Remove all extra capabilities')
    p_member_update.set_defaults(func=with_context(cmd_member_module.cmd_member_update))

    p_member_list = member_sub.add_parser('list', help='List members')
    p_member_list.set_defaults(func=with_context(cmd_member_module.cmd_member_list))

    # bughawk can
    p_can = subparsers.add_parser('can', help='Check a capability')
    p_can.add_argument('capability', choices=CAPABILITIES)
    p_can.add_argument('--user', '-u', help='User to check (defaults to acting user)')
    p_can.set_defaults(func=with_context(cmd_member_module.cmd_can))

    # bughawk issue
    p_issue = subparsers.add_parser('issue', aliases=['issues'], help='Manage issues')
    issue_sub = p_issue.add_subparsers(dest='issue_cmd', required=True)

    p_issue_create = issue_sub.add_parser('create', help='Report an issue')
    p_issue_create.add_argument('--title', '-t', required=True)
    p_issue_create.add_argument('--type', default='bug', choices=TYPES)
    p_issue_create.add_argument('--priority', default='medium', choices=PRIORITIES)
    p_issue_create.add_argument('--severity', default='minor', choices=SEVERITIES)
    p_issue_create.add_argument('--description', '-d')
    p_issue_create.add_argument('--assignee', '-a')
    p_issue_create.add_argument('--tag', action='append')
    p_issue_create.add_argument('--steps', help='Steps to reproduce')
    p_issue_create.add_argument('--expected', help='Expected behavior')
    p_issue_create.add_argument('--actual', help='Actual behavior')
    p_issue_create.add_argument('--environment')
    p_issue_create.add_argument('--estimate', type=float, help='Estimated hours')
    p_issue_create.add_argument('--due', help='Due date (ISO 8601)')
    p_issue_create.set_defaults(func=with_context(cmd_issue_module.cmd_issue_create))

    p_issue_show = issue_sub.add_parser('show', help='Show an issue')
    p_issue_show.add_argument('id', help='Issue ID or unique prefix')
    p_issue_show.set_defaults(func=with_context(cmd_issue_module.cmd_issue_show, needs_project=False))

    p_issue_list = issue_sub.add_parser('list', help='List issues')
    p_issue_list.add_argument('--status', '-s', action='append', choices=STATUSES)
    p_issue_list.add_argument('--priority', action='append', choices=PRIORITIES)
    p_issue_list.add_argument('--severity', action='append', choices=SEVERITIES)
    p_issue_list.add_argument('--type', action='append', choices=TYPES)
    p_issue_list.add_argument('--assignee', action='append')
    p_issue_list.add_argument('--tag', action='append')
    p_issue_list.add_argument('--search', '-q')
    p_issue_list.add_argument('--sort', default='created_at',
                              choices=['created_at', 'updated_at', 'priority', 'severity', 'status', 'title'])
    p_issue_list.add_argument('--asc', action='store_true', help='Ascending order')
    p_issue_list.set_defaults(func=with_context(cmd_issue_module.cmd_issue_list))

    p_issue_update = issue_sub.add_parser('update', help='Edit issue fields')
    p_issue_update.add_argument('id', help='Issue ID or unique prefix')
    p_issue_update.add_argument('--title', '-t')
    p_issue_update.add_argument('--description', '-d')
    p_issue_update.add_argument('--type', choices=TYPES)
    p_issue_update.add_argument('--priority', choices=PRIORITIES)
    p_issue_update.add_argument('--severity', choices=SEVERITIES)
    p_issue_update.add_argument('--actual-hours', type=float)
    p_issue_update.add_argument('--tag', action='append', help='Replace tags (repeatable)')
    p_issue_update.set_defaults(func=with_context(cmd_issue_module.cmd_issue_update, needs_project=False))

    p_issue_move = issue_sub.add_parser('move', help='Change issue status')
    p_issue_move.add_argument('id', help='Issue ID or unique prefix')
    p_issue_move.add_argument('status', choices=STATUSES)
    p_issue_move.set_defaults(func=with_context(cmd_issue_module.cmd_issue_move, needs_project=False))

    p_issue_assign = issue_sub.add_parser('assign', help='Assign an issue')
    p_issue_assign.add_argument('id', help='Issue ID or unique prefix')
    p_issue_assign.add_argument('user', nargs='?', help='Assignee user ID')
    p_issue_assign.add_argument('--none', action='store_true', help='Unassign')
    p_issue_assign.set_defaults(func=with_context(cmd_issue_module.cmd_issue_assign, needs_project=False))

    p_issue_delete = issue_sub.add_parser('delete', help='Delete issues')
    p_issue_delete.add_argument('ids', nargs='+', help='Issue IDs or unique prefixes')
    p_issue_delete.set_defaults(func=with_context(cmd_issue_module.cmd_issue_delete, needs_project=False))

    # bughawk report
    p_report = subparsers.add_parser('report', aliases=['dashboard'], help='Project statistics')
    p_report.add_argument('--json', action='store_true', help='Machine-readable output')
    p_report.set_defaults(func=with_context(cmd_report_module.cmd_report))

    # bughawk config
    p_config = subparsers.add_parser('config', help='Show or change configuration')
    p_config.set_defaults(func=cmd_config_module.cmd_config_list)
    config_sub = p_config.add_subparsers(dest='config_cmd')

    p_config_list = config_sub.add_parser('list', help='Show all settings')
    p_config_list.set_defaults(func=cmd_config_module.cmd_config_list)

    p_config_get = config_sub.add_parser('get', help='Show one setting')
    p_config_get.add_argument('key')
    p_config_get.set_defaults(func=cmd_config_module.cmd_config_get)

    p_config_set = config_sub.add_parser('set', help='Change one setting')
    p_config_set.add_argument('key')
    p_config_set.add_argument('value')
    p_config_set.set_defaults(func=cmd_config_module.cmd_config_set)

    p_config_reset = config_sub.add_parser('reset', help='Restore defaults')
    p_config_reset.set_defaults(func=cmd_config_module.cmd_config_reset)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except ValidationError as e:
        _print_error(e)
        return 2 if e.schema_name == "config" else 1
    except BugHawkError as e:
        _print_error(e)
        return 1
    except LockTimeout as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
