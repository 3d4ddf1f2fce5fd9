# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Admin user endpoints. Tenant scoping is enforced in visleg.admin.users."""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.orm import Session

from visleg.admin import users
from visleg.api.organizations import DeleteRequest
from visleg.auth.dependencies import require_admin, require_full_admin
from visleg.auth.passwords import MAX_PASSWORD_BYTES
from visleg.auth.roles import Principal, Role
from visleg.db.session import get_db
from visleg.db.store import CredentialStore

router = APIRouter(prefix="/api/admin/users", tags=["users"])


class CreateUserRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6)
    organization_id: Optional[int] = Field(None, alias="organizationId")
    role: Role = Role.USER

    @field_validator("password")
    @classmethod
    def _password_fits_bcrypt(cls, value: str) -> str:
        if len(value.encode()) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return value


@router.get("")
async def list_users(
    principal: Principal = require_admin,
    db: Session = Depends(get_db),
) -> list[dict]:
    return [users.user_to_dict(u) for u in users.list_users(CredentialStore(db), principal)]


@router.post("")
async def create_user(
    body: CreateUserRequest,
    request: Request,
    principal: Principal = require_admin,
    db: Session = Depends(get_db),
) -> dict:
    user = users.create_user(
        CredentialStore(db),
        principal,
        username=body.username,
        password=body.password,
        organization_id=body.organization_id,
        role=body.role,
        request=request,
    )
    return users.user_to_dict(user)


@router.patch("/{user_id}/deactivate")
async def deactivate_user(
    user_id: int,
    request: Request,
    principal: Principal = require_admin,
    db: Session = Depends(get_db),
) -> dict:
    user = users.set_user_active(CredentialStore(db), principal, user_id, False, request)
    return users.user_to_dict(user)


@router.patch("/{user_id}/activate")
async def activate_user(
    user_id: int,
    request: Request,
    principal: Principal = require_admin,
    db: Session = Depends(get_db),
) -> dict:
    user = users.set_user_active(CredentialStore(db), principal, user_id, True, request)
    return users.user_to_dict(user)


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    request: Request,
    body: Optional[DeleteRequest] = None,
    principal: Principal = require_full_admin,
    db: Session = Depends(get_db),
) -> dict:
    users.delete_user(
        CredentialStore(db),
        principal,
        user_id,
        confirmation=body.confirmation if body else None,
        request=request,
    )
    return {"message": "User deleted successfully"}
