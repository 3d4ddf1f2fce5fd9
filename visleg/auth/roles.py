# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Roles, capabilities and the authenticated principal.

Every authorization decision goes through the capability table below
rather than comparing role strings at the call site.

Roles:
- admin: full system privilege across all organizations
- org_admin: full privilege within its own organization
- user: verification scans only
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from visleg.exceptions import AuthorizationError


class Role(str, Enum):
    ADMIN = "admin"
    ORG_ADMIN = "org_admin"
    USER = "user"


class Capability(str, Enum):
    VERIFY_IDENTITY = "verify_identity"
    ACCESS_ADMIN = "access_admin"
    VIEW_ALL_ORGANIZATIONS = "view_all_organizations"
    MANAGE_ORGANIZATIONS = "manage_organizations"
    MANAGE_USERS = "manage_users"  # own organization
    MANAGE_ALL_USERS = "manage_all_users"  # any organization
    ASSIGN_ADMIN_ROLE = "assign_admin_role"
    DELETE_USERS = "delete_users"
    GENERATE_REPORTS = "generate_reports"  # own organization
    VIEW_ALL_REPORTS = "view_all_reports"
    GENERATE_COMPREHENSIVE_REPORT = "generate_comprehensive_report"
    MARK_REPORT_INVOICED = "mark_report_invoiced"
    VIEW_AUDIT_LOGS = "view_audit_logs"


CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.ADMIN: frozenset(Capability),
    Role.ORG_ADMIN: frozenset({
        Capability.VERIFY_IDENTITY,
        Capability.ACCESS_ADMIN,
        Capability.MANAGE_USERS,
        Capability.GENERATE_REPORTS,
    }),
    Role.USER: frozenset({
        Capability.VERIFY_IDENTITY,
    }),
}


def has_capability(role: Role, capability: Capability) -> bool:
    return capability in CAPABILITIES.get(role, frozenset())


@dataclass(frozen=True)
class Principal:
    """An authenticated admin user, as seen by request handlers.

    Attributes:
        user_id: Admin user id
        username: Login name
        role: Role of the user
        organization_id: Owning organization
        token: Session token the request authenticated with
    """

    user_id: int
    username: str
    role: Role
    organization_id: int
    token: Optional[str] = None

    def can(self, capability: Capability) -> bool:
        return has_capability(self.role, capability)

    def require(self, capability: Capability, message: str = "Access denied") -> None:
        """Raise AuthorizationError unless the principal holds ``capability``."""
        if not self.can(capability):
            raise AuthorizationError(message)

    def scope_organization_id(self, visibility: Capability) -> Optional[int]:
        """Organization filter for list queries.

        Returns None when the principal may see every organization's
        rows, otherwise its own organization id.
        """
        return None if self.can(visibility) else self.organization_id

    def in_scope(self, organization_id: Optional[int], cross_tenant: Capability) -> bool:
        """Row-level check for a row belonging to ``organization_id``.

        ``cross_tenant`` is the capability that lifts the own-organization
        restriction (e.g. MANAGE_ALL_USERS for user rows).
        """
        if self.can(cross_tenant):
            return True
        return organization_id == self.organization_id
