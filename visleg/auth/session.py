# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Admin session storage.

An admin session maps an opaque random token to the user it was issued
for. Sessions have a hard, non-renewing lifetime (24 hours by default)
and are checked for expiry on every read; a periodic sweep removes
the expired entries.

``SessionStore`` is the interface the access control layer talks to.
``InMemorySessionStore`` is the single-instance backend: its contents
are lost on restart and not shared between processes, so multi-instance
deployments need another backend behind the same interface.
"""

import asyncio
import logging
import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

log = logging.getLogger(__name__)


@dataclass
class AdminSession:
    """An issued admin session.

    Attributes:
        token: Opaque session token handed to the client
        user_id: Id of the authenticated admin user
        created_at: Unix time of issuance
        expires_at: Unix time after which the token is rejected
    """

    token: str
    user_id: int
    created_at: float
    expires_at: float

    def is_expired_at(self, now: float) -> bool:
        return now >= self.expires_at

    @property
    def is_expired(self) -> bool:
        return self.is_expired_at(time.time())


class SessionStore(ABC):
    """Interface for admin session backends."""

    @abstractmethod
    async def create(self, user_id: int, ttl_seconds: Optional[int] = None) -> AdminSession:
        """Issue a new session for ``user_id``."""

    @abstractmethod
    async def get(self, token: str) -> Optional[AdminSession]:
        """Return the live session for ``token``, or None."""

    @abstractmethod
    async def delete(self, token: str) -> bool:
        """Invalidate a session. Returns True if it existed."""

    @abstractmethod
    async def cleanup_expired(self) -> int:
        """Remove expired sessions. Returns the number removed."""

    @property
    @abstractmethod
    def session_count(self) -> int:
        """Number of stored sessions, expired ones included."""


class InMemorySessionStore(SessionStore):
    """Process-local session store."""

    def __init__(
        self,
        default_ttl_seconds: int = 86400,
        clock: Callable[[], float] = time.time,
    ):
        self._sessions: dict[str, AdminSession] = {}
        self._lock = asyncio.Lock()
        self._default_ttl = default_ttl_seconds
        self._clock = clock

    async def create(self, user_id: int, ttl_seconds: Optional[int] = None) -> AdminSession:
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        now = self._clock()
        session = AdminSession(
            token=secrets.token_urlsafe(32),
            user_id=user_id,
            created_at=now,
            expires_at=now + ttl,
        )
        async with self._lock:
            self._sessions[session.token] = session
        log.debug(f"Created admin session for user {user_id}")
        return session

    async def get(self, token: str) -> Optional[AdminSession]:
        if not token:
            return None
        async with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if session.is_expired_at(self._clock()):
                del self._sessions[token]
                return None
            return session

    async def delete(self, token: str) -> bool:
        async with self._lock:
            return self._sessions.pop(token, None) is not None

    async def cleanup_expired(self) -> int:
        now = self._clock()
        async with self._lock:
            expired = [t for t, s in self._sessions.items() if s.is_expired_at(now)]
            for token in expired:
                del self._sessions[token]
        if expired:
            log.info(f"Removed {len(expired)} expired admin sessions")
        return len(expired)

    @property
    def session_count(self) -> int:
        return len(self._sessions)


# Global store instance
_session_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Get the global session store, creating it on first access."""
    global _session_store
    if _session_store is None:
        from visleg.config import SESSION_TTL_SECONDS

        _session_store = InMemorySessionStore(default_ttl_seconds=SESSION_TTL_SECONDS)
    return _session_store


def set_session_store(store: SessionStore) -> None:
    """Install a different session backend."""
    global _session_store
    _session_store = store


def reset_session_store() -> None:
    """Reset the global store (for testing)."""
    global _session_store
    _session_store = None
