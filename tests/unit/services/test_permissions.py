"""Unit tests for the role catalogue and permission checks."""

import pytest

from brokerdesk.models.role import PermissionAction, PermissionModule, RoleId
from brokerdesk.services.permissions import (
    ROLES,
    accessible_roles,
    can_access_module,
    can_manage_user,
    get_role,
    has_permission,
    role_level,
    summarize_role,
)

M = PermissionModule
A = PermissionAction


class TestRoleCatalogue:
    def test_seven_roles_with_expected_levels(self):
        assert {role.value: ROLES[role].level for role in RoleId} == {
            "SuperAdmin": 100,
            "OrganizationAdmin": 90,
            "BrokerAdmin": 80,
            "Compliance": 75,
            "Underwriter": 70,
            "Agent": 60,
            "User": 50,
        }

    def test_catalogue_is_read_only(self):
        with pytest.raises(TypeError):
            ROLES[RoleId.USER] = ROLES[RoleId.SUPER_ADMIN]  # type: ignore[index]

    def test_get_role_accepts_strings(self):
        assert get_role("Underwriter") is ROLES[RoleId.UNDERWRITER]
        assert get_role("Janitor") is None


class TestHasPermission:
    @pytest.mark.parametrize(
        ("role", "module", "action", "expected"),
        [
            ("SuperAdmin", M.SYSTEM, A.CONFIGURE, True),
            ("OrganizationAdmin", M.SYSTEM, A.CONFIGURE, False),
            ("OrganizationAdmin", M.BRANDING, A.CONFIGURE, True),
            ("BrokerAdmin", M.QUOTES, A.DELETE, True),
            ("BrokerAdmin", M.QUOTES, A.APPROVE, False),
            ("Underwriter", M.QUOTES, A.APPROVE, True),
            ("Underwriter", M.QUOTES, A.CREATE, False),
            ("Compliance", M.FINANCIAL, A.AUDIT, True),
            ("Agent", M.CLAIMS, A.CREATE, True),
            ("Agent", M.CLAIMS, A.UPDATE, False),
            ("User", M.DASHBOARD, A.READ, True),
            ("User", M.QUOTES, A.READ, False),
        ],
    )
    def test_grants(self, role, module, action, expected):
        assert has_permission(role, module, action) is expected

    def test_higher_level_does_not_imply_permission(self):
        # BrokerAdmin outranks Underwriter but only Underwriter may approve quotes.
        assert role_level("BrokerAdmin") > role_level("Underwriter")
        assert not has_permission("BrokerAdmin", M.QUOTES, A.APPROVE)

    def test_unknown_role_has_no_permissions(self):
        assert not has_permission("Janitor", M.DASHBOARD, A.READ)
        assert not can_access_module("Janitor", M.DASHBOARD)

    def test_string_module_and_action(self):
        assert has_permission("Agent", "leads", "update")
        assert not has_permission("Agent", "leads", "delete")

    def test_can_access_module(self):
        assert can_access_module("Compliance", M.CLAIMS)
        assert not can_access_module("Compliance", M.QUOTES)


class TestRoleHierarchy:
    def test_role_level_of_unknown_role_is_zero(self):
        assert role_level("Janitor") == 0

    def test_can_manage_strictly_lower_roles_only(self):
        assert can_manage_user("BrokerAdmin", "Agent")
        assert not can_manage_user("BrokerAdmin", "BrokerAdmin")
        assert not can_manage_user("Agent", "BrokerAdmin")

    def test_accessible_roles_are_strictly_lower_and_sorted(self):
        roles = accessible_roles("Compliance")
        assert [r.id for r in roles] == [RoleId.UNDERWRITER, RoleId.AGENT, RoleId.USER]

    def test_lowest_role_manages_nobody(self):
        assert accessible_roles("User") == []

    def test_summarize_role_groups_by_module(self):
        summary = summarize_role(ROLES[RoleId.AGENT])
        assert summary.level == 60
        assert summary.permissions["quotes"] == ["create", "read", "update"]
        assert "financial" not in summary.permissions
