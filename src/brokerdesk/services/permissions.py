# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Static role catalogue and permission checks.

Access decisions look only at a role's capability set. Levels exist to
order roles for user management and never grant access on their own.
"""

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from beartype import beartype

from ..models.role import (
    Capability,
    PermissionAction,
    PermissionModule,
    Role,
    RoleId,
    RoleSummary,
)

M = PermissionModule
A = PermissionAction

_CRUD = (A.CREATE, A.READ, A.UPDATE, A.DELETE)


def _grants(*entries: tuple[PermissionModule, Iterable[PermissionAction]]) -> frozenset[Capability]:
    return frozenset(
        (module, action) for module, actions in entries for action in actions
    )


ROLES: Mapping[RoleId, Role] = MappingProxyType(
    {
        RoleId.SUPER_ADMIN: Role(
            id=RoleId.SUPER_ADMIN,
            name="Super Admin",
            description="Full platform access including system configuration",
            level=100,
            capabilities=_grants(
                (M.DASHBOARD, [A.READ]),
                (M.LEADS, _CRUD),
                (M.QUOTES, [*_CRUD, A.APPROVE]),
                (M.POLICIES, [*_CRUD, A.ISSUE]),
                (M.FINANCIAL, [*_CRUD, A.APPROVE]),
                (M.CLAIMS, [*_CRUD, A.APPROVE]),
                (M.USERS, [*_CRUD, A.INVITE]),
                (M.COMPLIANCE, [*_CRUD, A.AUDIT]),
                (M.SYSTEM, [A.CONFIGURE, A.BACKUP, A.RESTORE]),
            ),
        ),
        RoleId.ORGANIZATION_ADMIN: Role(
            id=RoleId.ORGANIZATION_ADMIN,
            name="Organization Admin",
            description="Complete organization management capabilities",
            level=90,
            capabilities=_grants(
                (M.DASHBOARD, [A.READ]),
                (M.LEADS, _CRUD),
                (M.QUOTES, [*_CRUD, A.APPROVE]),
                (M.POLICIES, [*_CRUD, A.ISSUE]),
                (M.FINANCIAL, [*_CRUD, A.APPROVE]),
                (M.CLAIMS, [*_CRUD, A.APPROVE]),
                (M.USERS, [*_CRUD, A.INVITE]),
                (M.COMPLIANCE, [A.READ, A.UPDATE, A.DELETE, A.AUDIT]),
                (M.BRANDING, [A.CONFIGURE]),
            ),
        ),
        RoleId.BROKER_ADMIN: Role(
            id=RoleId.BROKER_ADMIN,
            name="Broker Admin",
            description="Broker operations and team management",
            level=80,
            capabilities=_grants(
                (M.DASHBOARD, [A.READ]),
                (M.LEADS, _CRUD),
                (M.QUOTES, _CRUD),
                (M.POLICIES, _CRUD),
                (M.FINANCIAL, [A.READ, A.UPDATE]),
                (M.CLAIMS, [A.CREATE, A.READ, A.UPDATE]),
                (M.USERS, [A.READ, A.UPDATE, A.INVITE]),
                (M.COMPLIANCE, [A.READ]),
            ),
        ),
        RoleId.COMPLIANCE: Role(
            id=RoleId.COMPLIANCE,
            name="Compliance Officer",
            description="Regulatory compliance and audit",
            level=75,
            capabilities=_grants(
                (M.DASHBOARD, [A.READ]),
                (M.POLICIES, [A.READ]),
                (M.FINANCIAL, [A.READ, A.AUDIT]),
                (M.CLAIMS, [A.READ, A.AUDIT]),
                (M.COMPLIANCE, [*_CRUD, A.AUDIT]),
            ),
        ),
        RoleId.UNDERWRITER: Role(
            id=RoleId.UNDERWRITER,
            name="Underwriter",
            description="Risk evaluation and policy issuance",
            level=70,
            capabilities=_grants(
                (M.DASHBOARD, [A.READ]),
                (M.QUOTES, [A.READ, A.UPDATE, A.APPROVE]),
                (M.POLICIES, [A.CREATE, A.READ, A.UPDATE, A.ISSUE]),
                (M.FINANCIAL, [A.READ]),
                (M.CLAIMS, [A.READ, A.UPDATE, A.APPROVE]),
                (M.COMPLIANCE, [A.READ]),
            ),
        ),
        RoleId.AGENT: Role(
            id=RoleId.AGENT,
            name="Agent",
            description="Lead generation and client management",
            level=60,
            capabilities=_grants(
                (M.DASHBOARD, [A.READ]),
                (M.LEADS, [A.CREATE, A.READ, A.UPDATE]),
                (M.QUOTES, [A.CREATE, A.READ, A.UPDATE]),
                (M.POLICIES, [A.READ]),
                (M.CLAIMS, [A.CREATE, A.READ]),
            ),
        ),
        RoleId.USER: Role(
            id=RoleId.USER,
            name="User",
            description="Basic analytics and reporting access",
            level=50,
            capabilities=_grants((M.DASHBOARD, [A.READ])),
        ),
    }
)


@beartype
def get_role(role: str | RoleId) -> Role | None:
    """Look up a role by id; unknown ids return None."""
    try:
        return ROLES.get(RoleId(role))
    except ValueError:
        return None


@beartype
def has_permission(
    role: str | RoleId,
    module: str | PermissionModule,
    action: str | PermissionAction,
) -> bool:
    """Check whether ``role`` holds ``action`` on ``module``."""
    definition = get_role(role)
    if definition is None:
        return False
    try:
        capability = (PermissionModule(module), PermissionAction(action))
    except ValueError:
        return False
    return capability in definition.capabilities


@beartype
def can_access_module(role: str | RoleId, module: str | PermissionModule) -> bool:
    """Check whether ``role`` holds any action on ``module``."""
    definition = get_role(role)
    if definition is None:
        return False
    try:
        return PermissionModule(module) in definition.modules
    except ValueError:
        return False


@beartype
def role_level(role: str | RoleId) -> int:
    definition = get_role(role)
    return definition.level if definition else 0


@beartype
def can_manage_user(manager_role: str | RoleId, target_role: str | RoleId) -> bool:
    """A manager needs a strictly higher level than the target."""
    return role_level(manager_role) > role_level(target_role)


@beartype
def accessible_roles(role: str | RoleId) -> list[Role]:
    """Roles strictly below ``role``, highest level first."""
    level = role_level(role)
    return sorted(
        (r for r in ROLES.values() if r.level < level),
        key=lambda r: r.level,
        reverse=True,
    )


@beartype
def summarize_role(role: Role) -> RoleSummary:
    """Group a role's capabilities by module for display."""
    permissions: dict[str, list[str]] = {}
    for module, action in sorted(
        role.capabilities, key=lambda c: (c[0].value, c[1].value)
    ):
        permissions.setdefault(module.value, []).append(action.value)
    return RoleSummary(
        id=role.id.value,
        name=role.name,
        description=role.description,
        level=role.level,
        permissions=permissions,
    )
