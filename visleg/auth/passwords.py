# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""bcrypt password hashing."""

import logging
from typing import Optional

import bcrypt as bcrypt_lib

from visleg.exceptions import ValidationError

log = logging.getLogger(__name__)

# bcrypt only consumes the first 72 bytes of its input
MAX_PASSWORD_BYTES = 72


def hash_password(password: str, cost_factor: Optional[int] = None) -> str:
    """Hash a password using bcrypt.

    Args:
        password: The raw password to hash
        cost_factor: bcrypt cost factor (default: VISLEG_BCRYPT_COST, 10)

    Returns:
        The bcrypt hash string

    Raises:
        ValidationError: If the password is longer than 72 bytes
    """
    if len(password.encode()) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    if cost_factor is None:
        from visleg.config import BCRYPT_COST_FACTOR

        cost_factor = BCRYPT_COST_FACTOR
    salt = bcrypt_lib.gensalt(rounds=cost_factor)
    return bcrypt_lib.hashpw(password.encode(), salt).decode()


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored hash.

    Uses bcrypt.checkpw() for constant-time comparison. A malformed or
    empty hash never verifies.
    """
    if not password_hash:
        return False
    try:
        return bcrypt_lib.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        log.warning("Stored password hash is malformed")
        return False
