# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Authentication and authorization for the kiosk admin API."""

from visleg.auth.passwords import hash_password, verify_password
from visleg.auth.roles import CAPABILITIES, Capability, Principal, Role, has_capability
from visleg.auth.service import AuthResult, authenticate
from visleg.auth.session import (
    AdminSession,
    InMemorySessionStore,
    SessionStore,
    get_session_store,
    reset_session_store,
    set_session_store,
)
