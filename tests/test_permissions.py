"""Tests for bughawk.access: role table and capability checks."""

import pytest

from bughawk.access import (
    ALL_CAPABILITIES,
    DEFAULT_PROJECT_PERMISSIONS,
    authorize,
    authorize_all,
    authorize_any,
    default_capabilities,
    effective_capabilities,
    parse_capability,
    parse_role,
    require,
)
from bughawk.lib.errors import Unauthorized
from bughawk.lib.types import Capability, Membership, Role


def member(role, overrides=(), user_id="u1", project_id="P"):
    return Membership(project_id=project_id, user_id=user_id, role=role, overrides=frozenset(overrides))


class TestDefaultPermissions:
    """Tests for the default role table."""

    def test_every_role_has_an_entry(self):
        assert set(DEFAULT_PROJECT_PERMISSIONS) == set(Role)

    def test_owner_has_everything(self):
        assert default_capabilities(Role.OWNER) == ALL_CAPABILITIES

    def test_admin_lacks_only_settings(self):
        assert default_capabilities(Role.ADMIN) == ALL_CAPABILITIES - {Capability.MANAGE_SETTINGS}
        assert Capability.MANAGE_PROJECT in default_capabilities(Role.ADMIN)

    def test_developer(self):
        assert default_capabilities(Role.DEVELOPER) == {
            Capability.CREATE_ISSUE,
            Capability.EDIT_ISSUE,
            Capability.ASSIGN_ISSUE,
            Capability.RESOLVE_ISSUE,
        }

    def test_qa_cannot_resolve(self):
        assert Capability.RESOLVE_ISSUE not in default_capabilities(Role.QA)
        assert Capability.CREATE_ISSUE in default_capabilities(Role.QA)

    def test_viewer_has_nothing(self):
        assert default_capabilities(Role.VIEWER) == frozenset()

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            DEFAULT_PROJECT_PERMISSIONS[Role.VIEWER] = ALL_CAPABILITIES

    def test_role_order_is_monotone(self):
        """Each role is a superset of the next lower one."""
        ladder = [Role.VIEWER, Role.QA, Role.DEVELOPER, Role.ADMIN, Role.OWNER]
        for lower, higher in zip(ladder, ladder[1:]):
            assert default_capabilities(lower) <= default_capabilities(higher)


class TestParsing:
    def test_parse_role(self):
        assert parse_role("developer") == Role.DEVELOPER
        assert parse_role("QA") == Role.QA

    def test_parse_role_unknown(self):
        assert parse_role("superuser") is None
        assert parse_role(None) is None

    def test_parse_capability(self):
        assert parse_capability("resolve_issue") == Capability.RESOLVE_ISSUE
        assert parse_capability("VIEW_REPORTS") == Capability.VIEW_REPORTS

    def test_parse_capability_unknown(self):
        assert parse_capability("fly") is None


class TestAuthorize:
    """Tests for authorize and its variants."""

    def test_none_membership_denied(self):
        for capability in Capability:
            assert authorize(None, capability) is False

    def test_owner_granted_everything(self):
        owner = member(Role.OWNER)
        for capability in Capability:
            assert authorize(owner, capability) is True

    def test_viewer_denied_everything(self):
        viewer = member(Role.VIEWER)
        for capability in Capability:
            assert authorize(viewer, capability) is False
        assert effective_capabilities(viewer) == frozenset()

    def test_owner_overrides_ignored(self):
        owner = member(Role.OWNER, overrides=[Capability.VIEW_REPORTS, Capability.DELETE_ISSUE])
        for capability in Capability:
            assert authorize(owner, capability) is True
        assert effective_capabilities(owner) == ALL_CAPABILITIES
        assert effective_capabilities(owner) == effective_capabilities(member(Role.OWNER))

    def test_developer_can_resolve(self):
        assert authorize(member(Role.DEVELOPER), Capability.RESOLVE_ISSUE) is True

    def test_developer_cannot_manage_members(self):
        assert authorize(member(Role.DEVELOPER), Capability.MANAGE_MEMBERS) is False

    def test_admin_cannot_manage_settings(self):
        assert authorize(member(Role.ADMIN), Capability.MANAGE_SETTINGS) is False

    def test_override_grants(self):
        viewer = member(Role.VIEWER, overrides=[Capability.VIEW_REPORTS])
        assert authorize(viewer, Capability.VIEW_REPORTS) is True
        assert authorize(viewer, Capability.CREATE_ISSUE) is False

    def test_overrides_only_add(self):
        """An override set can never remove a role default."""
        dev = member(Role.DEVELOPER, overrides=[Capability.VIEW_REPORTS])
        assert default_capabilities(Role.DEVELOPER) <= effective_capabilities(dev)

    @pytest.mark.parametrize("role", list(Role))
    @pytest.mark.parametrize("capability", list(Capability))
    def test_authorize_matches_effective_set(self, role, capability):
        m = member(role, overrides=[Capability.DELETE_ISSUE])
        assert authorize(m, capability) == (capability in effective_capabilities(m))

    def test_effective_capabilities_none(self):
        assert effective_capabilities(None) == frozenset()

    def test_any(self):
        qa = member(Role.QA)
        assert authorize_any(qa, [Capability.RESOLVE_ISSUE, Capability.EDIT_ISSUE]) is True
        assert authorize_any(qa, [Capability.RESOLVE_ISSUE, Capability.DELETE_ISSUE]) is False
        assert authorize_any(qa, []) is False

    def test_all(self):
        dev = member(Role.DEVELOPER)
        assert authorize_all(dev, [Capability.EDIT_ISSUE, Capability.RESOLVE_ISSUE]) is True
        assert authorize_all(dev, [Capability.EDIT_ISSUE, Capability.DELETE_ISSUE]) is False

    def test_all_empty_is_vacuous(self):
        assert authorize_all(member(Role.VIEWER), []) is True
        assert authorize_all(None, []) is True


class TestRequire:
    def test_passes_when_granted(self):
        require(member(Role.DEVELOPER), Capability.EDIT_ISSUE)

    def test_raises_with_details(self):
        viewer = member(Role.VIEWER, user_id="u3", project_id="P")
        with pytest.raises(Unauthorized) as exc_info:
            require(viewer, Capability.EDIT_ISSUE)
        assert exc_info.value.user_id == "u3"
        assert exc_info.value.project_id == "P"
        assert exc_info.value.capability == Capability.EDIT_ISSUE
        assert "edit_issue" in str(exc_info.value)

    def test_raises_for_missing_membership(self):
        with pytest.raises(Unauthorized) as exc_info:
            require(None, Capability.CREATE_ISSUE, user_id="ghost", project_id="P")
        assert exc_info.value.user_id == "ghost"
