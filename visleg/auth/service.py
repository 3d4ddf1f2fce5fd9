# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Admin credential authentication."""

import logging
from dataclasses import dataclass
from typing import Optional

from visleg.auth.passwords import verify_password
from visleg.db.models import AdminUser
from visleg.db.store import CredentialStore

log = logging.getLogger(__name__)

USER_NOT_FOUND = "user_not_found"
USER_DEACTIVATED = "user_deactivated"
INVALID_PASSWORD = "invalid_password"


@dataclass
class AuthResult:
    """Outcome of an authentication attempt.

    Attributes:
        success: Whether the credentials were accepted
        user: The authenticated user on success
        reason: One of USER_NOT_FOUND, USER_DEACTIVATED, INVALID_PASSWORD on failure
    """

    success: bool
    user: Optional[AdminUser] = None
    reason: Optional[str] = None


def authenticate(store: CredentialStore, username: str, password: str) -> AuthResult:
    """Verify a username/password pair.

    The active flag is checked before the password, so a deactivated
    account reports ``user_deactivated`` whether or not the password is
    right. The only state change is ``last_login`` on success.
    """
    user = store.get_user_by_username(username)
    if user is None:
        log.info(f"Login failed for unknown user: {username}")
        return AuthResult(success=False, reason=USER_NOT_FOUND)

    if not user.is_active:
        log.warning(f"Deactivated user attempted login: {username}")
        return AuthResult(success=False, reason=USER_DEACTIVATED)

    if not verify_password(password, user.password):
        log.info(f"Login failed for {username}: invalid password")
        return AuthResult(success=False, reason=INVALID_PASSWORD)

    store.update_last_login(user)
    log.info(f"User logged in: {username} (role={user.role})")
    return AuthResult(success=True, user=user)
