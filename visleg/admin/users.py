# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Admin user management with tenant scoping and audit.

Scoping rules:
- org admins only see and manage users of their own organization
- org admins always create users in their own organization
- only admins assign the admin role, change the status of admin accounts
  or delete users
- nobody deactivates or deletes their own account
"""

import logging
from typing import Any, Optional

from fastapi import Request

from visleg.admin.organizations import require_confirmation
from visleg.audit import logger as audit
from visleg.audit.logger import AuditLogger
from visleg.auth.passwords import hash_password
from visleg.auth.roles import Capability, Principal, Role
from visleg.db.models import AdminUser
from visleg.db.store import CredentialStore
from visleg.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from visleg.reporting.service import iso

log = logging.getLogger(__name__)


def user_to_dict(user: AdminUser) -> dict[str, Any]:
    """Serialize a user. The password hash is never included."""
    return {
        "id": user.id,
        "username": user.username,
        "organizationId": user.organization_id,
        "role": user.role,
        "isActive": user.is_active,
        "lastLogin": iso(user.last_login),
        "createdAt": iso(user.created_at),
        "updatedAt": iso(user.updated_at),
    }


def list_users(store: CredentialStore, principal: Principal) -> list[AdminUser]:
    principal.require(Capability.MANAGE_USERS, "Admin access required")
    return store.list_users(org_id=principal.scope_organization_id(Capability.MANAGE_ALL_USERS))


def _get_in_scope(store: CredentialStore, principal: Principal, user_id: int) -> AdminUser:
    user = store.get_user(user_id)
    if user is None:
        raise NotFoundError("User")
    if not principal.in_scope(user.organization_id, Capability.MANAGE_ALL_USERS):
        log.warning(
            f"User {principal.username} denied access to user {user_id} "
            f"in organization {user.organization_id}"
        )
        raise AuthorizationError("Access denied")
    return user


def create_user(
    store: CredentialStore,
    principal: Principal,
    username: str,
    password: str,
    organization_id: Optional[int],
    role: Role = Role.USER,
    request: Optional[Request] = None,
) -> AdminUser:
    """Create a user.

    For org admins the requested organization is ignored and replaced by
    their own.

    Raises:
        AuthorizationError: Caller may not manage users or assign ``role``
        NotFoundError: Target organization does not exist
        ConflictError: Username taken
    """
    principal.require(Capability.MANAGE_USERS, "Admin access required")
    role = Role(role)

    if not principal.can(Capability.MANAGE_ALL_USERS):
        organization_id = principal.organization_id
    if role == Role.ADMIN and not principal.can(Capability.ASSIGN_ADMIN_ROLE):
        raise AuthorizationError("Only admins can assign the admin role")
    if organization_id is None:
        raise ValidationError("organizationId is required")
    if store.get_organization(organization_id) is None:
        raise NotFoundError("Organization")

    user = store.create_user(
        username=username,
        password_hash=hash_password(password),
        organization_id=organization_id,
        role=role.value,
    )
    AuditLogger(store).record(
        principal,
        audit.CREATE,
        audit.USER,
        entity_id=user.id,
        entity_name=user.username,
        details={"role": user.role, "organizationId": user.organization_id},
        request=request,
    )
    return user


def set_user_active(
    store: CredentialStore,
    principal: Principal,
    user_id: int,
    active: bool,
    request: Optional[Request] = None,
) -> AdminUser:
    principal.require(Capability.MANAGE_USERS, "Admin access required")
    user = _get_in_scope(store, principal, user_id)
    if not active and user.id == principal.user_id:
        raise ValidationError("Cannot deactivate your own account")
    if user.role == Role.ADMIN.value and not principal.can(Capability.ASSIGN_ADMIN_ROLE):
        raise AuthorizationError("Only admins can change the status of admin accounts")

    user = store.set_user_active(user, active)
    AuditLogger(store).record(
        principal,
        audit.ACTIVATE if active else audit.DEACTIVATE,
        audit.USER,
        entity_id=user.id,
        entity_name=user.username,
        request=request,
    )
    log.info(f"User {user.id} {'activated' if active else 'deactivated'} by {principal.username}")
    return user


def delete_user(
    store: CredentialStore,
    principal: Principal,
    user_id: int,
    confirmation: Optional[str],
    request: Optional[Request] = None,
) -> None:
    """Permanently delete a user.

    Users who authored audit entries or reports are kept so the trail
    stays intact; deactivate them instead.
    """
    principal.require(Capability.DELETE_USERS, "Full admin access required")
    require_confirmation(confirmation)

    if user_id == principal.user_id:
        raise ValidationError("Cannot delete your own account")
    user = _get_in_scope(store, principal, user_id)

    refs = store.user_references(user.id)
    if any(refs.values()):
        raise ConflictError(
            f"User '{user.username}' is referenced by {refs['audit_logs']} audit entries "
            f"and {refs['reports']} reports. Deactivate the account instead."
        )

    username = user.username
    store.delete_user(user)
    AuditLogger(store).record(
        principal,
        audit.DELETE,
        audit.USER,
        entity_id=user_id,
        entity_name=username,
        details={"permanentDelete": True},
        request=request,
    )
    log.info(f"User {user_id} ({username}) deleted by {principal.username}")
