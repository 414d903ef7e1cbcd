# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Organization roles and the capabilities they carry."""

from enum import Enum

from attrs import field, frozen
from beartype import beartype
from pydantic import Field

from .base import BaseModelConfig


class RoleId(str, Enum):
    """Internal user roles."""

    SUPER_ADMIN = "SuperAdmin"
    ORGANIZATION_ADMIN = "OrganizationAdmin"
    BROKER_ADMIN = "BrokerAdmin"
    COMPLIANCE = "Compliance"
    UNDERWRITER = "Underwriter"
    AGENT = "Agent"
    USER = "User"


class PermissionModule(str, Enum):
    """Areas of the platform that permissions are granted on."""

    DASHBOARD = "dashboard"
    LEADS = "leads"
    QUOTES = "quotes"
    POLICIES = "policies"
    FINANCIAL = "financial"
    CLAIMS = "claims"
    USERS = "users"
    COMPLIANCE = "compliance"
    SYSTEM = "system"
    BRANDING = "branding"


class PermissionAction(str, Enum):
    """Actions that may be granted on a module."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    APPROVE = "approve"
    ISSUE = "issue"
    INVITE = "invite"
    AUDIT = "audit"
    CONFIGURE = "configure"
    BACKUP = "backup"
    RESTORE = "restore"


Capability = tuple[PermissionModule, PermissionAction]


@frozen
class Role:
    """A role definition. Capabilities are the only source of access."""

    id: RoleId = field()
    name: str = field()
    description: str = field()
    level: int = field()
    capabilities: frozenset[Capability] = field(factory=frozenset)

    @property
    def modules(self) -> frozenset[PermissionModule]:
        return frozenset(module for module, _ in self.capabilities)


@beartype
class CurrentUser(BaseModelConfig):
    """The authenticated internal user making a request."""

    user_id: str = Field(..., min_length=1)
    role: str = Field(..., min_length=1)
    organization_id: str | None = None


@beartype
class RoleSummary(BaseModelConfig):
    """Serializable view of a role for the admin API."""

    id: str
    name: str
    description: str
    level: int
    permissions: dict[str, list[str]] = Field(default_factory=dict)
