# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""FastAPI guards for admin session authentication.

Usage:
    @router.get("/things")
    async def list_things(principal: Principal = require_admin):
        ...

Tiers:
- require_auth: token resolves to an active user
- require_admin: require_auth plus ACCESS_ADMIN (admin, org_admin)
- require_full_admin: require_auth plus role admin
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from visleg.auth.roles import Capability, Principal, Role
from visleg.auth.session import get_session_store
from visleg.db.session import get_db
from visleg.db.store import CredentialStore
from visleg.exceptions import AuthenticationError, AuthorizationError

log = logging.getLogger(__name__)


def extract_token(request: Request) -> Optional[str]:
    """Find the session token in X-Session-Id, X-Auth-Token or a Bearer header."""
    token = request.headers.get("x-session-id") or request.headers.get("x-auth-token")
    if token:
        return token
    authorization = request.headers.get("authorization", "")
    if authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return None


async def resolve_principal(token: Optional[str], store: CredentialStore) -> Principal:
    """Expand a session token into a principal.

    Raises:
        AuthenticationError: If the token is missing, unknown, expired, or
            belongs to a missing or deactivated user
    """
    if not token:
        raise AuthenticationError.missing()

    session = await get_session_store().get(token)
    if session is None:
        raise AuthenticationError.invalid_session()

    user = store.get_user(session.user_id)
    if user is None or not user.is_active:
        log.info(f"Session presented for missing or inactive user {session.user_id}")
        raise AuthenticationError.inactive_user()

    return Principal(
        user_id=user.id,
        username=user.username,
        role=Role(user.role),
        organization_id=user.organization_id,
        token=token,
    )


async def _require_auth(request: Request, db: Session = Depends(get_db)) -> Principal:
    return await resolve_principal(extract_token(request), CredentialStore(db))


async def _require_admin(principal: Principal = Depends(_require_auth)) -> Principal:
    if not principal.can(Capability.ACCESS_ADMIN):
        raise AuthorizationError.admin_required()
    return principal


async def _require_full_admin(principal: Principal = Depends(_require_auth)) -> Principal:
    if principal.role != Role.ADMIN:
        raise AuthorizationError.full_admin_required()
    return principal


require_auth = Depends(_require_auth)
require_admin = Depends(_require_admin)
require_full_admin = Depends(_require_full_admin)
