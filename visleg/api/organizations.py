# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Organization admin endpoints."""

import re
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.orm import Session

from visleg.admin import organizations as orgs
from visleg.auth.dependencies import require_admin, require_full_admin
from visleg.auth.roles import Principal
from visleg.db.session import get_db
from visleg.db.store import CredentialStore

router = APIRouter(prefix="/api/admin/organizations", tags=["organizations"])

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class CreateOrganizationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1)
    contact_email: str = Field(..., alias="contactEmail")
    mfxid: str = Field(..., min_length=1)

    @field_validator("contact_email")
    @classmethod
    def _valid_email(cls, value: str) -> str:
        if not _EMAIL_RE.match(value):
            raise ValueError("Invalid email address")
        return value

    @field_validator("mfxid")
    @classmethod
    def _mfxid_present(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("MFX ID er påkrevd")
        return value.strip()


class DeleteRequest(BaseModel):
    confirmation: Optional[str] = None


@router.get("")
async def list_organizations(
    principal: Principal = require_admin,
    db: Session = Depends(get_db),
) -> list[dict]:
    return [orgs.org_to_dict(o) for o in orgs.list_organizations(CredentialStore(db), principal)]


@router.post("")
async def create_organization(
    body: CreateOrganizationRequest,
    request: Request,
    principal: Principal = require_full_admin,
    db: Session = Depends(get_db),
) -> dict:
    org = orgs.create_organization(
        CredentialStore(db),
        principal,
        name=body.name,
        contact_email=body.contact_email,
        mfxid=body.mfxid,
        request=request,
    )
    return orgs.org_to_dict(org)


@router.patch("/{org_id}/deactivate")
async def deactivate_organization(
    org_id: int,
    request: Request,
    principal: Principal = require_full_admin,
    db: Session = Depends(get_db),
) -> dict:
    org = orgs.set_organization_active(CredentialStore(db), principal, org_id, False, request)
    return orgs.org_to_dict(org)


@router.patch("/{org_id}/activate")
async def activate_organization(
    org_id: int,
    request: Request,
    principal: Principal = require_full_admin,
    db: Session = Depends(get_db),
) -> dict:
    org = orgs.set_organization_active(CredentialStore(db), principal, org_id, True, request)
    return orgs.org_to_dict(org)


@router.delete("/{org_id}")
async def delete_organization(
    org_id: int,
    request: Request,
    body: Optional[DeleteRequest] = None,
    principal: Principal = require_full_admin,
    db: Session = Depends(get_db),
) -> dict:
    orgs.delete_organization(
        CredentialStore(db),
        principal,
        org_id,
        confirmation=body.confirmation if body else None,
        request=request,
    )
    return {"message": "Organization deleted successfully"}
