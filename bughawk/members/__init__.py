"""Project membership directory."""

from bughawk.members.registry import MembershipRegistry
