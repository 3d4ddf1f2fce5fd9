# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Session protocol engine for VisLeg QR scans.

One scan attempt runs through these phases:

1. **Validate** the session id shape (``VisLeg-<opaque>``, opaque part
   non-empty).
2. **Single-use check**: an already verified id is rejected with the
   original verifier's name and the Oslo-local verification time.
3. **Path selection**:
   - ``VisLeg-demo*`` ids draw from a fixed demo roster and are never
     persisted or counted.
   - Live ids fetch a provider token and look the session up with the
     merchant API. Authentication and configuration failures are always
     fatal. Other provider failures either substitute a fallback
     identity (degraded mode, logged at WARNING and stored with
     ``source="fallback"``) or surface as a verification failure,
     depending on ``allow_fallback_on_provider_error``.
4. **Persist** the verified row. The insert itself is the single-use
   enforcement: losing the unique-constraint race is reported as
   ``SessionAlreadyUsedError`` referencing the winning row.
5. **Return** the normalized result.

The engine holds no state across calls.
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

import httpx

from visleg import config
from visleg.auth.roles import Capability, Principal
from visleg.db.models import VerificationSession, utcnow
from visleg.db.store import CredentialStore
from visleg.exceptions import (
    InvalidSessionIdError,
    ProviderError,
    SessionAlreadyUsedError,
)
from visleg.provider.client import ProviderIdentity, VerificationClient
from visleg.provider.token import TokenCache

log = logging.getLogger(__name__)

SOURCE_PROVIDER = "provider"
SOURCE_FALLBACK = "fallback"
SOURCE_DEMO = "demo"

DEMO_ROSTER: tuple[ProviderIdentity, ...] = (
    ProviderIdentity(first_name="EDGAR", last_name="HETLAND", age=43),
    ProviderIdentity(first_name="ANNETTE INGVILD", last_name="BERGAN", age=29),
    ProviderIdentity(first_name="JAKOB", last_name="HALVORSEN", age=14),
    ProviderIdentity(first_name="NORA", last_name="SOLBERG", age=18),
)

FALLBACK_ROSTER: tuple[ProviderIdentity, ...] = (
    ProviderIdentity(first_name="TEST", last_name="BRUKER", age=35),
    ProviderIdentity(first_name="DEMO", last_name="PERSON", age=28),
    ProviderIdentity(first_name="UTVIKLER", last_name="TEST", age=30),
)


@dataclass
class FallbackMetrics:
    """Counters for degraded-mode verifications."""

    fallbacks: int = 0
    last_reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"fallbacks": self.fallbacks, "lastReason": self.last_reason}


_fallback_metrics = FallbackMetrics()


def get_fallback_metrics() -> FallbackMetrics:
    return _fallback_metrics


def reset_fallback_metrics() -> None:
    global _fallback_metrics
    _fallback_metrics = FallbackMetrics()


@dataclass
class VerificationResult:
    """Normalized verification outcome returned to the kiosk."""

    first_name: str
    last_name: str
    document_photo: str
    age: Optional[int]
    session_id: str
    timestamp: datetime
    source: str = SOURCE_PROVIDER

    def to_dict(self) -> dict[str, Any]:
        return {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "documentPhoto": self.document_photo,
            "age": self.age,
            "sessionId": self.session_id,
            "timestamp": _iso_utc(self.timestamp),
        }


def _iso_utc(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def validate_session_id(session_id: Any) -> str:
    """Return ``session_id`` if it is a well-formed VisLeg id.

    Raises:
        InvalidSessionIdError: Otherwise
    """
    if (
        not isinstance(session_id, str)
        or not session_id.startswith(config.SESSION_ID_PREFIX)
        or len(session_id) < config.MIN_SESSION_ID_LENGTH
        or len(session_id) == len(config.SESSION_ID_PREFIX)
    ):
        raise InvalidSessionIdError()
    return session_id


def is_demo_session(session_id: str) -> bool:
    return session_id.startswith(config.DEMO_SESSION_PREFIX)


def format_used_time(verified_at: Optional[datetime]) -> str:
    """Format a stored naive-UTC time as Oslo local ``dd.mm.yyyy, HH:MM``."""
    if verified_at is None:
        return "ukjent tid"
    if verified_at.tzinfo is None:
        verified_at = verified_at.replace(tzinfo=timezone.utc)
    local = verified_at.astimezone(ZoneInfo(config.DISPLAY_TIMEZONE))
    return local.strftime("%d.%m.%Y, %H:%M")


def already_used(row: VerificationSession) -> SessionAlreadyUsedError:
    return SessionAlreadyUsedError(
        used_at=row.verified_at,
        first_name=row.first_name,
        last_name=row.last_name,
        used_time=format_used_time(row.verified_at),
    )


def _build_result(
    identity: ProviderIdentity,
    session_id: str,
    timestamp: datetime,
    source: str,
) -> VerificationResult:
    return VerificationResult(
        first_name=identity.first_name,
        last_name=identity.last_name,
        document_photo=identity.document_photo,
        age=identity.age,
        session_id=session_id,
        timestamp=timestamp,
        source=source,
    )


def verify_demo(session_id: Any, rng: Optional[random.Random] = None) -> VerificationResult:
    """Demo verification: any well-formed id gets a roster identity.

    Nothing is persisted and the single-use check does not apply.
    """
    session_id = validate_session_id(session_id)
    identity = (rng or random).choice(DEMO_ROSTER)
    log.info(f"Demo verification for {session_id}: {identity.first_name} {identity.last_name}")
    return _build_result(identity, session_id, utcnow(), SOURCE_DEMO)


class SessionProtocolEngine:
    """Orchestrates demo, live and fallback verification paths."""

    def __init__(
        self,
        store: CredentialStore,
        http_client: httpx.AsyncClient,
        token_cache: Optional[TokenCache] = None,
        verification_client: Optional[VerificationClient] = None,
        allow_fallback_on_provider_error: Optional[bool] = None,
        rng: Optional[random.Random] = None,
    ):
        self._store = store
        self._tokens = token_cache or TokenCache(store, http_client)
        self._client = verification_client or VerificationClient(http_client)
        self._allow_fallback = (
            config.ALLOW_FALLBACK_ON_PROVIDER_ERROR
            if allow_fallback_on_provider_error is None
            else allow_fallback_on_provider_error
        )
        self._rng = rng or random.Random()

    def verify_demo(self, session_id: Any) -> VerificationResult:
        return verify_demo(session_id, self._rng)

    async def verify(self, session_id: Any, principal: Principal) -> VerificationResult:
        """Verify a scanned QR session on behalf of ``principal``.

        Raises:
            InvalidSessionIdError: Malformed session id
            SessionAlreadyUsedError: Session id already verified
            ProviderError: Provider failure that is fatal or not eligible
                for fallback
        """
        session_id = validate_session_id(session_id)
        principal.require(Capability.VERIFY_IDENTITY, "Verification access required")

        if is_demo_session(session_id):
            return self.verify_demo(session_id)

        existing = self._store.get_verification_session(session_id)
        if existing is not None and existing.verified:
            log.info(f"Rejected reuse of session {session_id} (verified {existing.verified_at})")
            raise already_used(existing)

        identity, source = await self._lookup(session_id)

        row, created = self._store.insert_verification_session(
            session_id=session_id,
            first_name=identity.first_name,
            last_name=identity.last_name,
            document_photo=identity.document_photo,
            age=identity.age,
            organization_id=principal.organization_id,
            performed_by_user_id=principal.user_id,
            source=source,
        )
        if not created:
            log.info(f"Lost single-use race for session {session_id}")
            raise already_used(row)

        log.info(
            f"Verified session {session_id} by user {principal.user_id} "
            f"org={principal.organization_id} source={source}"
        )
        return _build_result(identity, session_id, row.verified_at, source)

    async def _lookup(self, session_id: str) -> tuple[ProviderIdentity, str]:
        try:
            token = await self._tokens.get_token()
            identity = await self._client.verify(session_id, token)
            return identity, SOURCE_PROVIDER
        except ProviderError as e:
            if e.is_auth_failure:
                log.error(f"Provider authentication failed for {session_id}: {e.message}")
                raise
            if not self._allow_fallback:
                log.warning(f"Provider rejected session {session_id} (status={e.status})")
                raise

            identity = self._rng.choice(FALLBACK_ROSTER)
            metrics = get_fallback_metrics()
            metrics.fallbacks += 1
            metrics.last_reason = f"status={e.status} reason={getattr(e, 'reason', None)}"
            log.warning(
                f"degraded_fallback: provider error for {session_id} "
                f"(status={e.status}), substituting {identity.first_name} {identity.last_name}"
            )
            return ProviderIdentity(
                first_name=identity.first_name,
                last_name=identity.last_name,
                document_photo="",
                age=identity.age,
            ), SOURCE_FALLBACK

