# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Admin login/logout endpoints.

Sessions are opaque tokens held server-side; clients send them back in
``Authorization: Bearer``, ``X-Session-Id`` or ``X-Auth-Token``.
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from visleg.auth.dependencies import require_auth
from visleg.auth.roles import Principal
from visleg.auth.service import USER_DEACTIVATED, authenticate
from visleg.auth.session import get_session_store
from visleg.db.session import get_db
from visleg.db.store import CredentialStore
from visleg.exceptions import AuthenticationError

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin", tags=["auth"])


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, description="Login name")
    password: str = Field(..., min_length=1, description="Password")


@router.post("/login")
async def login(body: LoginRequest, db: Session = Depends(get_db)) -> dict:
    """Authenticate and issue a session token."""
    result = authenticate(CredentialStore(db), body.username, body.password)
    if not result.success:
        if result.reason == USER_DEACTIVATED:
            raise AuthenticationError.deactivated()
        raise AuthenticationError.invalid_credentials()

    user = result.user
    session = await get_session_store().create(user.id)
    return {
        "sessionId": session.token,
        "user": {
            "id": user.id,
            "username": user.username,
            "role": user.role,
            "organizationId": user.organization_id,
        },
    }


@router.post("/logout")
async def logout(principal: Principal = require_auth) -> dict:
    await get_session_store().delete(principal.token)
    log.info(f"User logged out: {principal.username}")
    return {"message": "Logged out successfully"}
