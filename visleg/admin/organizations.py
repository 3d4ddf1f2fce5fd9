# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Organization administration with role scoping and audit."""

import logging
from typing import Any, Optional

from fastapi import Request

from visleg import config
from visleg.audit import logger as audit
from visleg.audit.logger import AuditLogger
from visleg.auth.roles import Capability, Principal
from visleg.db.models import Organization
from visleg.db.store import CredentialStore
from visleg.exceptions import ConflictError, NotFoundError, ValidationError
from visleg.reporting.service import iso

log = logging.getLogger(__name__)


def org_to_dict(org: Organization) -> dict[str, Any]:
    return {
        "id": org.id,
        "name": org.name,
        "contactEmail": org.contact_email,
        "mfxid": org.mfxid,
        "isActive": org.is_active,
        "createdAt": iso(org.created_at),
        "updatedAt": iso(org.updated_at),
    }


def require_confirmation(confirmation: Optional[str]) -> None:
    """Destructive operations need the literal string DELETE."""
    if confirmation != config.DELETE_CONFIRMATION:
        raise ValidationError.confirmation_required()


def list_organizations(store: CredentialStore, principal: Principal) -> list[Organization]:
    """All organizations for admins, only the caller's own for org admins."""
    principal.require(Capability.ACCESS_ADMIN)
    return store.list_organizations(
        org_id=principal.scope_organization_id(Capability.VIEW_ALL_ORGANIZATIONS)
    )


def _get_or_404(store: CredentialStore, org_id: int) -> Organization:
    org = store.get_organization(org_id)
    if org is None:
        raise NotFoundError("Organization")
    return org


def create_organization(
    store: CredentialStore,
    principal: Principal,
    name: str,
    contact_email: str,
    mfxid: str,
    request: Optional[Request] = None,
) -> Organization:
    principal.require(Capability.MANAGE_ORGANIZATIONS, "Full admin access required")
    org = store.create_organization(name=name, contact_email=contact_email, mfxid=mfxid)
    AuditLogger(store).record(
        principal,
        audit.CREATE,
        audit.ORGANIZATION,
        entity_id=org.id,
        entity_name=org.name,
        details={"email": org.contact_email, "mfxid": org.mfxid},
        request=request,
    )
    return org


def set_organization_active(
    store: CredentialStore,
    principal: Principal,
    org_id: int,
    active: bool,
    request: Optional[Request] = None,
) -> Organization:
    """Deactivate or reactivate an organization. Reversible."""
    principal.require(Capability.MANAGE_ORGANIZATIONS, "Full admin access required")
    org = store.set_organization_active(_get_or_404(store, org_id), active)
    AuditLogger(store).record(
        principal,
        audit.ACTIVATE if active else audit.DEACTIVATE,
        audit.ORGANIZATION,
        entity_id=org.id,
        entity_name=org.name,
        request=request,
    )
    log.info(f"Organization {org.id} {'activated' if active else 'deactivated'} by {principal.username}")
    return org


def delete_organization(
    store: CredentialStore,
    principal: Principal,
    org_id: int,
    confirmation: Optional[str],
    request: Optional[Request] = None,
) -> None:
    """Permanently delete an organization.

    Blocked while any user, verification session or report still belongs
    to it, so no user is ever left without an organization.

    Raises:
        ValidationError: Confirmation is not "DELETE"
        NotFoundError: Unknown organization
        ConflictError: Organization still referenced
    """
    principal.require(Capability.MANAGE_ORGANIZATIONS, "Full admin access required")
    require_confirmation(confirmation)

    org = _get_or_404(store, org_id)
    refs = store.organization_references(org.id)
    if any(refs.values()):
        log.info(f"Refused delete of organization {org.id}: references {refs}")
        raise ConflictError(
            f"Organization '{org.name}' still has {refs['users']} users, "
            f"{refs['sessions']} verification sessions and {refs['reports']} reports. "
            "Deactivate it instead."
        )

    name = org.name
    store.delete_organization(org)
    AuditLogger(store).record(
        principal,
        audit.DELETE,
        audit.ORGANIZATION,
        entity_id=org_id,
        entity_name=name,
        details={"permanentDelete": True},
        request=request,
    )
    log.info(f"Organization {org_id} ({name}) deleted by {principal.username}")
